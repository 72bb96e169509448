# cascade_detector/scanner.py
"""
Multi-scale search: drives the single scale evaluator over growing windows
"""
try:
    from .evaluator import detect_single_scale
except ImportError:
    from evaluator import detect_single_scale

DEFAULT_SCALE_FACTOR = 1.2
DEFAULT_SCALE_MIN = 1.0


def iter_scales(integral, cascade, scale_factor=DEFAULT_SCALE_FACTOR, scale_min=DEFAULT_SCALE_MIN):
    """Ascending scales whose window is strictly smaller than the image"""
    # Unset (0 or None) falls back to the defaults
    scale_factor = scale_factor or DEFAULT_SCALE_FACTOR
    scale_min = scale_min or DEFAULT_SCALE_MIN
    if scale_factor <= 1:
        raise ValueError(f"scale_factor must be > 1, got {scale_factor}")
    if scale_min <= 0:
        raise ValueError(f"scale_min must be > 0, got {scale_min}")

    base_width, base_height = cascade.size
    scale = scale_min
    while scale * base_width < integral.width and scale * base_height < integral.height:
        yield scale
        scale *= scale_factor


def detect_multi_scale(integral, cascade, scale_factor=DEFAULT_SCALE_FACTOR, scale_min=DEFAULT_SCALE_MIN):
    """
    Evaluate a cascade at every scale

    Args:
        integral: IntegralImage of the scanned image
        cascade: CascadeClassifier
        scale_factor: Scale multiplier between rounds (> 1)
        scale_min: First scale

    Returns:
        Concatenated per-scale detections, smallest scale first
    """
    rects = []
    for scale in iter_scales(integral, cascade, scale_factor, scale_min):
        rects.extend(detect_single_scale(integral, scale, cascade))
    return rects


def detect_finest_scale(integral, cascade, scale_factor=DEFAULT_SCALE_FACTOR, scale_min=DEFAULT_SCALE_MIN):
    """
    Evaluate a cascade at increasingly coarser scales, stopping at the
    first scale that yields any detection

    Returns:
        Detections of that scale, or an empty list
    """
    for scale in iter_scales(integral, cascade, scale_factor, scale_min):
        rects = detect_single_scale(integral, scale, cascade)
        if rects:
            return rects
    return []
