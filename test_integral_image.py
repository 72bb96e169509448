# test_integral_image.py
"""
Integral image tests: every O(1) query is checked against a brute-force sum
"""
import numpy as np

from cascade_detector.integral_image import (
    IntegralImage, area_sum, compute_rsat, compute_sat, compute_squared_sat,
    rotated_area_sum,
)


def create_test_image(height=9, width=11, seed=0):
    rng = np.random.RandomState(seed)
    return rng.randint(0, 256, size=(height, width)).astype(np.int32)


def rotated_footprint_sum(src, x, y, width, height):
    """Brute-force sum over the 45 degree rectangle with top corner (x, y)"""
    py, px = np.mgrid[0:src.shape[0], 0:src.shape[1]]
    a = px + py
    b = py - px
    a0 = x + y - 2
    b0 = y - x
    mask = (a > a0) & (a <= a0 + 2 * width) & (b > b0) & (b <= b0 + 2 * height)
    return src[mask].sum()


def test_sat_shape_and_border():
    img = create_test_image()
    sat = compute_sat(img)
    assert sat.shape == (img.shape[0] + 1, img.shape[1] + 1)
    assert np.all(sat[0, :] == 0)
    assert np.all(sat[:, 0] == 0)
    assert sat[-1, -1] == img.sum()


def test_sat_matches_brute_force():
    img = create_test_image()
    sat = compute_sat(img)
    h_img, w_img = img.shape

    for y in range(h_img):
        for x in range(w_img):
            for h in range(1, h_img - y + 1, 2):
                for w in range(1, w_img - x + 1, 3):
                    assert area_sum(sat, x, y, w, h) == img[y:y + h, x:x + w].sum()


def test_squared_sat_matches_brute_force():
    img = create_test_image(seed=1)
    ssat = compute_squared_sat(img)
    squared = img.astype(np.int64) ** 2

    for (x, y, w, h) in [(0, 0, 11, 9), (2, 3, 4, 5), (10, 8, 1, 1), (5, 0, 6, 2)]:
        assert area_sum(ssat, x, y, w, h) == squared[y:y + h, x:x + w].sum()


def test_rsat_matches_rotated_footprint():
    img = create_test_image(height=12, width=14, seed=2)
    rsat = compute_rsat(img)
    h_img, w_img = img.shape

    checked = 0
    for x in range(1, w_img + 1):
        for y in range(0, h_img + 1):
            for w in range(1, 5):
                for h in range(1, 5):
                    if x - h < 1 or x + w > w_img or y + w + h > h_img:
                        continue
                    expected = rotated_footprint_sum(img, x, y, w, h)
                    assert rotated_area_sum(rsat, x, y, w, h) == expected, (x, y, w, h)
                    checked += 1

    assert checked > 100
    print(f"✓ {checked} rotated rectangles match")


def test_rsat_small_known_values():
    # Cell (x, y) sums the upright triangle with its apex at pixel (x - 1, y - 1)
    ones = np.ones((2, 3), dtype=np.int32)
    rsat = compute_rsat(ones)
    expected = np.array([[0, 0, 0, 0],
                         [0, 1, 1, 1],
                         [0, 3, 4, 3]], dtype=np.float64)
    assert np.array_equal(rsat, expected)


def test_destination_buffers_are_reused():
    img = create_test_image()
    dst = np.full((img.shape[0] + 1, img.shape[1] + 1), 7.0)

    sat = compute_sat(img, dst)
    assert sat is dst
    assert np.array_equal(sat, compute_sat(img))

    rsat_dst = np.full_like(dst, -3.0)
    rsat = compute_rsat(img, rsat_dst)
    assert rsat is rsat_dst
    assert np.array_equal(rsat, compute_rsat(img))


def test_mismatched_buffers_are_reallocated():
    img = create_test_image()
    stale = np.ones((5, 5))

    for compute in (compute_sat, compute_squared_sat, compute_rsat):
        table = compute(img, stale)
        assert table is not stale
        assert table.shape == (img.shape[0] + 1, img.shape[1] + 1)

    wrong_dtype = np.zeros((img.shape[0] + 1, img.shape[1] + 1), dtype=np.float32)
    assert compute_sat(img, wrong_dtype) is not wrong_dtype


def test_rejects_non_2d_input():
    color = np.zeros((4, 4, 3))
    for compute in (compute_sat, compute_squared_sat, compute_rsat):
        try:
            compute(color)
        except ValueError:
            continue
        raise AssertionError(f"{compute.__name__} accepted a 3D array")


def test_integral_image_window_stats():
    uniform = np.full((10, 10), 128, dtype=np.int32)
    integral = IntegralImage(uniform)

    mean, std = integral.window_stats(0, 0, 10, 10)
    assert mean == 128
    # Zero variance is floored to a unit standard deviation
    assert std == 1.0

    img = create_test_image()
    integral = IntegralImage(img)
    mean, std = integral.window_stats(1, 2, 6, 5)
    window = img[2:7, 1:7].astype(np.float64)
    assert np.isclose(mean, window.mean())
    assert np.isclose(std, max(window.std(), 1.0))


def test_integral_image_rotated_requires_tilted():
    img = create_test_image()
    try:
        IntegralImage(img).rotated_sum(2, 0, 1, 1)
    except ValueError:
        pass
    else:
        raise AssertionError("rotated_sum should need tilted=True")

    integral = IntegralImage(img, tilted=True)
    assert integral.rotated_sum(2, 0, 1, 1) == rotated_area_sum(compute_rsat(img), 2, 0, 1, 1)


if __name__ == "__main__":
    test_sat_shape_and_border()
    test_sat_matches_brute_force()
    test_squared_sat_matches_brute_force()
    test_rsat_matches_rotated_footprint()
    test_rsat_small_known_values()
    test_destination_buffers_are_reused()
    test_mismatched_buffers_are_reallocated()
    test_rejects_non_2d_input()
    test_integral_image_window_stats()
    test_integral_image_rotated_requires_tilted()
    print("✓ All integral image tests passed")
