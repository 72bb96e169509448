# cascade_detector/integral_image.py
"""
Integral images (summed area tables) for O(1) rectangle sums.

All tables are (height + 1, width + 1) float arrays indexed [y, x] with a
zero first row and first column. Every compute function accepts an optional
destination table; a destination of the wrong shape or dtype is replaced by
a fresh one, so stale buffers from a previous frame are never trusted.
"""
import numpy as np

TABLE_DTYPE = np.float64


def _check_2d(src, name):
    if src.ndim != 2:
        raise ValueError(f"{name} requires 2D array, got shape {src.shape}")


def _table_buffer(src, dst):
    """Return a zero-bordered table for src, reusing dst when it fits"""
    height, width = src.shape
    shape = (height + 1, width + 1)
    if dst is None or dst.shape != shape or dst.dtype != TABLE_DTYPE:
        return np.zeros(shape, dtype=TABLE_DTYPE)
    dst[0, :] = 0
    dst[:, 0] = 0
    return dst


def compute_sat(src, dst=None):
    """
    Compute the integral image of a 1-channel image

    Args:
        src: 2D array (height, width)
        dst: Optional (height + 1, width + 1) table to write into

    Returns:
        Summed area table
    """
    src = np.asarray(src)
    _check_2d(src, "compute_sat")
    dst = _table_buffer(src, dst)

    # Column sums first, then accumulate along each row
    np.cumsum(src, axis=0, dtype=TABLE_DTYPE, out=dst[1:, 1:])
    np.cumsum(dst[1:, 1:], axis=1, out=dst[1:, 1:])
    return dst


def compute_squared_sat(src, dst=None):
    """Integral image of squared intensities. See compute_sat()"""
    src = np.asarray(src)
    _check_2d(src, "compute_squared_sat")
    dst = _table_buffer(src, dst)

    squared = np.square(src, dtype=TABLE_DTYPE)
    np.cumsum(squared, axis=0, out=dst[1:, 1:])
    np.cumsum(dst[1:, 1:], axis=1, out=dst[1:, 1:])
    return dst


def compute_rsat(src, dst=None):
    """
    Compute the rotated (45 degree) integral image of a 1-channel image

    Cell (x, y) holds the sum over the upright triangle whose apex is the
    source pixel (x - 1, y - 1), i.e. all pixels (px, py) with py < y and
    |px - (x - 1)| <= (y - 1) - py. Column 0 stays zero.

    Args:
        src: 2D array (height, width)
        dst: Optional (height + 1, width + 1) table to write into

    Returns:
        Rotated summed area table
    """
    src = np.asarray(src)
    _check_2d(src, "compute_rsat")
    dst = _table_buffer(src, dst)
    height, width = src.shape

    # Forward pass: running sums along the top-left -> bottom-right diagonal
    for y in range(1, height + 1):
        dst[y, 1:] = src[y - 1, :] + dst[y - 1, :-1]

    # Backward pass: fold in the opposite diagonal from the previous row.
    # The previous row's forward-pass values are needed, so keep a copy.
    previous = np.zeros(width + 1, dtype=TABLE_DTYPE)
    for y in range(1, height + 1):
        diagonal = dst[y].copy()
        dst[y, 1:width] = diagonal[1:width] + previous[1:width] + dst[y - 1, 2:]
        dst[y, width] = diagonal[width] + dst[y - 1, width]
        previous = diagonal

    return dst


def area_sum(table, x, y, width, height):
    """
    Sum of the source rectangle [x, x + width) x [y, y + height) in O(1)

    Works on SAT and squared SAT alike. x and y may be numpy index arrays,
    in which case one sum per origin is returned.
    """
    return (table[y, x] -
            table[y, x + width] -
            table[y + height, x] +
            table[y + height, x + width])


def rotated_area_sum(rsat, x, y, width, height):
    """
    Sum over a 45 degree rotated rectangle in O(1)

    (x, y) is the top corner of the rotated rectangle in table coordinates;
    width runs down-right and height runs down-left.
    """
    return (rsat[y, x] -
            rsat[y + width, x + width] -
            rsat[y + height, x - height] +
            rsat[y + width + height, x + width - height])


class IntegralImage:
    """Per-frame bundle of the tables a cascade scan reads from"""

    def __init__(self, image, tilted=False, edges=None, buffers=None):
        """
        Build the integral tables of a 1-channel image

        Args:
            image: 2D numpy array (height, width)
            tilted: Also compute the rotated table (needed by tilted features)
            edges: Optional edge magnitude image; its SAT enables edge pruning
            buffers: Optional DetectionBuffers whose tables are reused
        """
        image = np.asarray(image)
        if image.ndim != 2:
            raise ValueError("IntegralImage requires 2D array")

        self.height, self.width = image.shape

        self.sat = compute_sat(image, getattr(buffers, 'sat', None))
        self.ssat = compute_squared_sat(image, getattr(buffers, 'ssat', None))
        self.rsat = None
        self.edge_sat = None

        if tilted:
            self.rsat = compute_rsat(image, getattr(buffers, 'rsat', None))
        if edges is not None:
            self.edge_sat = compute_sat(edges, getattr(buffers, 'edge_sat', None))

        if buffers is not None:
            buffers.sat = self.sat
            buffers.ssat = self.ssat
            if self.rsat is not None:
                buffers.rsat = self.rsat
            if self.edge_sat is not None:
                buffers.edge_sat = self.edge_sat

    def rectangle_sum(self, x, y, width, height):
        """Sum of pixels in [x, x + width) x [y, y + height)"""
        return area_sum(self.sat, x, y, width, height)

    def squared_sum(self, x, y, width, height):
        return area_sum(self.ssat, x, y, width, height)

    def rotated_sum(self, x, y, width, height):
        if self.rsat is None:
            raise ValueError("Rotated table not computed. Build with tilted=True.")
        return rotated_area_sum(self.rsat, x, y, width, height)

    def window_stats(self, x, y, width, height):
        """
        Mean and standard deviation of a window (or of many window origins)

        The standard deviation is floored at 1 so it can be used as a divisor.
        """
        inv_area = 1.0 / (width * height)
        mean = self.rectangle_sum(x, y, width, height) * inv_area
        variance = self.squared_sum(x, y, width, height) * inv_area - mean * mean
        std = np.sqrt(np.maximum(variance, 1.0))
        return mean, std
