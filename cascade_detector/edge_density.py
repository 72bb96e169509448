# cascade_detector/edge_density.py
"""
Edge magnitude map used to prune windows before any cascade work.
Flat windows (few edges) and heavily textured windows (too many edges)
are discarded by their mean edge magnitude.
"""
import numpy as np
import cv2

try:
    from .integral_image import area_sum
except ImportError:
    from integral_image import area_sum

# 5-tap Gaussian, sigma ~ sqrt(2)
GAUSSIAN_KERNEL = np.array([0.1117, 0.2365, 0.3036, 0.2365, 0.1117], dtype=np.float64)

# Accepted band of mean edge magnitude per window
MIN_EDGE_DENSITY = 20
MAX_EDGE_DENSITY = 100

# Pixels this close to the border get no gradient
BORDER = 2


def compute_edge_magnitude(src, dst=None, buffer=None):
    """
    Gradient magnitude after 5x5 Gaussian smoothing

    Smooths horizontally then vertically with GAUSSIAN_KERNEL, applies a
    3x3 Sobel operator and returns |gx| + |gy|. The outer two pixels are 0.
    Pixels outside the image count as 0 while smoothing, so flat images get a
    weak ring just inside the zeroed border. The ring depends only on the
    image, never on what a reused buffer held before.

    Args:
        src: 2D intensity image
        dst: Optional float64 destination of the same shape
        buffer: Optional float64 scratch image for the smoothed intermediate

    Returns:
        Edge magnitude image
    """
    src = np.asarray(src, dtype=np.float64)
    if src.ndim != 2:
        raise ValueError(f"compute_edge_magnitude requires 2D array, got shape {src.shape}")

    if dst is None or dst.shape != src.shape or dst.dtype != np.float64:
        dst = np.zeros(src.shape, dtype=np.float64)
    if buffer is None or buffer.shape != src.shape or buffer.dtype != np.float64:
        buffer = np.empty(src.shape, dtype=np.float64)

    height, width = src.shape
    dst[...] = 0
    if height <= 2 * BORDER or width <= 2 * BORDER:
        return dst

    # Separable smoothing, zero outside the image
    buffer = cv2.sepFilter2D(src, cv2.CV_64F, GAUSSIAN_KERNEL, GAUSSIAN_KERNEL,
                             dst=buffer, borderType=cv2.BORDER_CONSTANT)

    grad_x = cv2.Sobel(buffer, cv2.CV_64F, 1, 0, ksize=3)
    grad_y = cv2.Sobel(buffer, cv2.CV_64F, 0, 1, ksize=3)

    inner = (slice(BORDER, height - BORDER), slice(BORDER, width - BORDER))
    dst[inner] = np.abs(grad_x[inner]) + np.abs(grad_y[inner])
    return dst


def window_edge_density(edge_sat, x, y, width, height):
    """Mean edge magnitude of a window (or many window origins)"""
    return area_sum(edge_sat, x, y, width, height) / float(width * height)


def edge_density_mask(edge_sat, x, y, width, height):
    """True where the window's edge density lies inside the accepted band"""
    density = window_edge_density(edge_sat, x, y, width, height)
    return (density >= MIN_EDGE_DENSITY) & (density <= MAX_EDGE_DENSITY)
