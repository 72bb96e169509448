# test_scanner.py
"""
Multi-scale search tests
"""
import numpy as np

from cascade_detector.cascade import cascade_from_dict
from cascade_detector.evaluator import detect_single_scale
from cascade_detector.integral_image import IntegralImage
from cascade_detector.scanner import detect_finest_scale, detect_multi_scale, iter_scales


def make_cascade(stage_threshold=-1, size=24):
    return cascade_from_dict({
        "size": [size, size],
        "tilted": False,
        "stages": [{
            "threshold": stage_threshold,
            "stumps": [{"tilted": 0, "threshold": 0, "leftVal": 1, "rightVal": 1,
                        "features": [[0, 0, size, size, 1]]}],
        }],
    })


def bright_square_cascade():
    """Fires on windows whose centre is brighter than their surround"""
    return cascade_from_dict({
        "size": [20, 20],
        "tilted": False,
        "stages": [{
            "threshold": 0,
            "stumps": [{"tilted": 0, "threshold": 0.5, "leftVal": -1, "rightVal": 1,
                        "features": [[0, 0, 20, 20, -1], [5, 5, 10, 10, 4]]}],
        }],
    })


def create_square_image(size=100, square=(40, 40, 30)):
    img = np.zeros((size, size), dtype=np.int32)
    x, y, side = square
    img[y:y + side, x:x + side] = 255
    return img


def test_scale_progression():
    integral = IntegralImage(np.zeros((100, 100), dtype=np.int32))
    scales = list(iter_scales(integral, make_cascade()))

    assert len(scales) == 8
    assert scales[0] == 1.0
    assert np.allclose(scales, [1.2 ** i for i in range(8)])
    assert all(s * 24 < 100 for s in scales)

    # Window must be strictly smaller than the image
    assert list(iter_scales(IntegralImage(np.zeros((24, 24))), make_cascade())) == []


def test_scale_min_and_factor():
    integral = IntegralImage(np.zeros((100, 100), dtype=np.int32))
    scales = list(iter_scales(integral, make_cascade(), scale_factor=2, scale_min=1.5))
    assert scales == [1.5, 3.0]


def test_unset_scale_arguments_use_defaults():
    integral = IntegralImage(np.full((40, 40), 100, dtype=np.int32))
    cascade = make_cascade()
    defaults = list(iter_scales(integral, cascade))

    assert list(iter_scales(integral, cascade, 1.2, 0)) == defaults
    assert list(iter_scales(integral, cascade, None, None)) == defaults
    assert list(iter_scales(integral, cascade, 0, 1.0)) == defaults
    assert detect_multi_scale(integral, cascade, 1.2, 0) == detect_multi_scale(integral, cascade)
    assert detect_finest_scale(integral, cascade, 0, 0) == detect_finest_scale(integral, cascade)


def test_invalid_scale_arguments_rejected():
    integral = IntegralImage(np.full((40, 40), 100, dtype=np.int32))
    cascade = make_cascade()

    for scale_factor, scale_min in ((1.0, 1.0), (0.5, 1.0), (1.2, -1.0)):
        for search in (detect_multi_scale, detect_finest_scale):
            try:
                search(integral, cascade, scale_factor, scale_min)
            except ValueError:
                continue
            raise AssertionError(f"Accepted scale_factor={scale_factor}, scale_min={scale_min}")


def test_multi_scale_is_concatenation_of_single_scales():
    img = create_square_image()
    integral = IntegralImage(img)
    cascade = bright_square_cascade()

    expected = []
    for scale in iter_scales(integral, cascade):
        expected.extend(detect_single_scale(integral, scale, cascade))

    rects = detect_multi_scale(integral, cascade)
    assert rects == expected
    assert len(rects) > 0

    # Ascending window sizes
    widths = [r[2] for r in rects]
    assert widths == sorted(widths)


def test_multi_scale_detections_touch_the_object():
    img = create_square_image()
    rects = detect_multi_scale(IntegralImage(img), bright_square_cascade())

    for x, y, w, h in rects:
        overlaps_x = x < 70 and x + w > 40
        overlaps_y = y < 70 and y + h > 40
        assert overlaps_x and overlaps_y, (x, y, w, h)


def test_finest_scale_stops_at_first_hit():
    img = create_square_image()
    integral = IntegralImage(img)
    cascade = bright_square_cascade()

    rects = detect_finest_scale(integral, cascade)
    assert len(rects) > 0
    assert len({r[2] for r in rects}) == 1

    first_scale = None
    for scale in iter_scales(integral, cascade):
        if detect_single_scale(integral, scale, cascade):
            first_scale = scale
            break
    assert rects == detect_single_scale(integral, first_scale, cascade)
    assert rects == detect_multi_scale(integral, cascade)[:len(rects)]


def test_finest_scale_without_hits():
    integral = IntegralImage(np.full((60, 60), 10, dtype=np.int32))
    assert detect_finest_scale(integral, make_cascade(stage_threshold=5)) == []
    assert detect_multi_scale(integral, make_cascade(stage_threshold=5)) == []


if __name__ == "__main__":
    test_scale_progression()
    test_scale_min_and_factor()
    test_unset_scale_arguments_use_defaults()
    test_invalid_scale_arguments_rejected()
    test_multi_scale_is_concatenation_of_single_scales()
    test_multi_scale_detections_touch_the_object()
    test_finest_scale_stops_at_first_hit()
    test_finest_scale_without_hits()
    print("✓ All scanner tests passed")
