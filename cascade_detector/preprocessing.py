# cascade_detector/preprocessing.py
"""
Colour conversion and contrast normalisation ahead of the integral images
"""
import numpy as np

# 14-bit fixed point luma weights (R, G, B)
LUMA_WEIGHTS = (4899, 9617, 1868)
LUMA_ROUNDING = 8192
LUMA_SHIFT = 14


def convert_rgba_to_grayscale(src, dst=None):
    """
    Convert a 4-channel RGBA image to a 1-channel intensity image

    Args:
        src: (height, width, 4) array with 8-bit channel values
        dst: Optional (height, width) destination; replaced if the shape differs

    Returns:
        (height, width) int32 intensity image
    """
    src = np.asarray(src)
    if src.ndim != 3 or src.shape[2] != 4:
        raise ValueError(f"Expected (height, width, 4) RGBA image, got shape {src.shape}")

    if dst is None or dst.shape != src.shape[:2]:
        dst = np.empty(src.shape[:2], dtype=np.int32)

    channels = src.astype(np.int32)
    r_weight, g_weight, b_weight = LUMA_WEIGHTS
    gray = (channels[..., 0] * r_weight +
            channels[..., 1] * g_weight +
            channels[..., 2] * b_weight +
            LUMA_ROUNDING) >> LUMA_SHIFT
    dst[...] = gray
    return dst


def equalize_histogram(src, dst=None):
    """
    Equalize the histogram of an integer image with values in [0, 255]

    Each pixel is remapped to round(cdf[value] * 255 / n), rounding halves up.
    Values outside [0, 255] are a caller error.

    Args:
        src: 2D integer image
        dst: Optional destination. If omitted, the result is written to src

    Returns:
        Destination image
    """
    if dst is None:
        dst = src

    values = np.asarray(src).astype(np.intp)
    n_pixels = values.size
    if n_pixels == 0:
        return dst

    # Histogram and its running sum
    hist = np.bincount(values.ravel(), minlength=256)
    cdf = np.cumsum(hist)

    norm = 255.0 / n_pixels
    dst[...] = np.floor(cdf[values] * norm + 0.5)
    return dst
