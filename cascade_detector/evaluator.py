# cascade_detector/evaluator.py
"""
Single scale cascade evaluation.

Every window origin of one scale is evaluated at once with numpy index
arrays. After each stage the rejected windows are dropped from the
candidate arrays, so later stages only ever see windows that passed all
earlier ones.
"""
import numpy as np

try:
    from .edge_density import edge_density_mask
except ImportError:
    from edge_density import edge_density_mask


def window_step(scale):
    """Search grid stride in both axes; coarser as windows grow"""
    return int(0.5 * scale + 1.5)


def window_origins(width, height, window_width, window_height, step):
    """
    All window origins in raster order (x outer, y inner)

    Returns:
        (xs, ys) flat integer arrays
    """
    xs = np.arange(0, width - window_width + 1, step, dtype=np.intp)
    ys = np.arange(0, height - window_height + 1, step, dtype=np.intp)
    grid_x, grid_y = np.meshgrid(xs, ys, indexing='ij')
    return grid_x.ravel(), grid_y.ravel()


def evaluate_stage(stage, integral, xs, ys, scale, inv_area, std):
    """Sum of stump outputs of one stage for every candidate window"""
    stage_sum = np.zeros(len(xs), dtype=np.float64)
    for stump in stage.stumps:
        feature_sum = np.zeros(len(xs), dtype=np.float64)
        for feature in stump.features:
            feature_sum += feature.window_sum(integral, xs, ys, scale)
        stage_sum += np.where(feature_sum * inv_area < stump.threshold * std,
                              stump.left_val, stump.right_val)
    return stage_sum


def detect_single_scale(integral, scale, cascade):
    """
    Evaluate a cascade classifier at one scale

    Args:
        integral: IntegralImage of the scanned image (rsat required for
                  tilted cascades; edge_sat enables edge pruning)
        scale: Window scale relative to the cascade's base size
        cascade: CascadeClassifier

    Returns:
        List of (x, y, width, height) accepted windows in raster order
    """
    window_width, window_height = cascade.window_size(scale)
    if window_width < 1 or window_height < 1:
        return []
    if window_width > integral.width or window_height > integral.height:
        return []

    xs, ys = window_origins(integral.width, integral.height,
                            window_width, window_height, window_step(scale))
    inv_area = 1.0 / (window_width * window_height)

    if integral.edge_sat is not None:
        keep = edge_density_mask(integral.edge_sat, xs, ys, window_width, window_height)
        xs, ys = xs[keep], ys[keep]

    _, std = integral.window_stats(xs, ys, window_width, window_height)

    for stage in cascade.stages:
        if len(xs) == 0:
            break
        stage_sum = evaluate_stage(stage, integral, xs, ys, scale, inv_area, std)
        passed = stage_sum >= stage.threshold
        xs, ys, std = xs[passed], ys[passed], std[passed]

    return [(int(x), int(y), window_width, window_height) for x, y in zip(xs, ys)]


# Name used by callers that drive scales by hand
evaluate_window = detect_single_scale
