# cascade_detector/__init__.py
from .integral_image import IntegralImage
from .cascade import CascadeClassifier, load_cascade
from .scanner import detect_multi_scale, detect_finest_scale
from .grouping import Detection, group_rectangles
from .object_detector import ObjectDetector

__all__ = ['IntegralImage', 'CascadeClassifier', 'load_cascade',
           'detect_multi_scale', 'detect_finest_scale',
           'Detection', 'group_rectangles', 'ObjectDetector']
