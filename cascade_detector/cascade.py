# cascade_detector/cascade.py
"""
Stump based cascade classifiers: immutable model and loaders.

Supported descriptions:
  - JSON interchange format
        {"size": [w, h], "tilted": bool,
         "stages": [{"threshold": t,
                     "stumps": [{"tilted": 0|1, "threshold": t,
                                 "leftVal": l, "rightVal": r,
                                 "features": [[x, y, w, h, weight], ...]}]}]}
  - OpenCV Haar cascade XML, legacy ("opencv-haar-classifier") and
    current ("opencv-cascade-classifier") layouts, stumps only
"""
import os
import json
import xml.etree.ElementTree as ET
from collections import namedtuple

import numpy as np


class RectFeature(namedtuple('RectFeature', 'x y width height weight')):
    """Axis-aligned weighted rectangle, summed on the SAT"""
    __slots__ = ()
    tilted = False

    def window_sum(self, integral, xs, ys, scale):
        """Weighted rectangle sum for every window origin in (xs, ys)"""
        sat = integral.sat
        x = (xs + self.x * scale).astype(np.intp)
        y = (ys + self.y * scale).astype(np.intp)
        w = int(self.width * scale)
        h = int(self.height * scale)
        return (sat[y, x] -
                sat[y, x + w] -
                sat[y + h, x] +
                sat[y + h, x + w]) * self.weight

    def to_list(self):
        return [self.x, self.y, self.width, self.height, self.weight]


class TiltedFeature(namedtuple('TiltedFeature', 'x y width height weight')):
    """45 degree rotated weighted rectangle, summed on the RSAT"""
    __slots__ = ()
    tilted = True

    def window_sum(self, integral, xs, ys, scale):
        rsat = integral.rsat
        x = (xs + self.x * scale).astype(np.intp)
        y = (ys + self.y * scale).astype(np.intp)
        w = int(self.width * scale)
        h = int(self.height * scale)
        return (rsat[y, x] -
                rsat[y + w, x + w] -
                rsat[y + h, x - h] +
                rsat[y + w + h, x + w - h]) * self.weight

    def to_list(self):
        return [self.x, self.y, self.width, self.height, self.weight]


class Stump(namedtuple('Stump', 'threshold left_val right_val features')):
    """Depth-one decision tree over a weighted sum of features"""
    __slots__ = ()

    @property
    def tilted(self):
        return any(feature.tilted for feature in self.features)


Stage = namedtuple('Stage', 'threshold stumps')


class CascadeClassifier(namedtuple('CascadeClassifier', 'size stages')):
    """Base window size (width, height) and ordered stages"""
    __slots__ = ()

    @property
    def tilted(self):
        return any(stump.tilted for stage in self.stages for stump in stage.stumps)

    @property
    def n_stumps(self):
        return sum(len(stage.stumps) for stage in self.stages)

    def window_size(self, scale):
        return int(self.size[0] * scale), int(self.size[1] * scale)


def make_feature(values, tilted=False):
    """Build a feature from [x, y, w, h, weight]"""
    x, y, w, h, weight = values
    feature_class = TiltedFeature if tilted else RectFeature
    return feature_class(int(x), int(y), int(w), int(h), float(weight))


def cascade_from_dict(data):
    """
    Build an immutable CascadeClassifier from the JSON interchange format

    Missing keys raise KeyError; use validate_cascade_dict() at load time.
    """
    stages = []
    for stage in data['stages']:
        stumps = []
        for stump in stage['stumps']:
            tilted = bool(stump.get('tilted', 0))
            features = tuple(make_feature(f, tilted) for f in stump['features'])
            stumps.append(Stump(float(stump['threshold']),
                                float(stump['leftVal']),
                                float(stump['rightVal']),
                                features))
        stages.append(Stage(float(stage['threshold']), tuple(stumps)))

    width, height = data['size']
    return CascadeClassifier((int(width), int(height)), tuple(stages))


def cascade_to_dict(cascade):
    """Inverse of cascade_from_dict()"""
    return {
        'size': list(cascade.size),
        'tilted': cascade.tilted,
        'stages': [
            {
                'threshold': stage.threshold,
                'stumps': [
                    {
                        'tilted': int(stump.tilted),
                        'threshold': stump.threshold,
                        'leftVal': stump.left_val,
                        'rightVal': stump.right_val,
                        'features': [f.to_list() for f in stump.features],
                    }
                    for stump in stage.stumps
                ],
            }
            for stage in cascade.stages
        ],
    }


def validate_cascade_dict(data):
    """Check the shape of a cascade description; raises ValueError"""
    if not isinstance(data, dict):
        raise ValueError("Cascade description must be an object")

    size = data.get('size')
    if not isinstance(size, (list, tuple)) or len(size) != 2:
        raise ValueError("Cascade 'size' must be [width, height]")
    if size[0] <= 0 or size[1] <= 0:
        raise ValueError(f"Cascade size must be positive, got {size}")

    stages = data.get('stages')
    if not isinstance(stages, list) or not stages:
        raise ValueError("Cascade needs a non-empty 'stages' list")

    for i, stage in enumerate(stages):
        if 'threshold' not in stage or not stage.get('stumps'):
            raise ValueError(f"Stage {i} needs 'threshold' and a non-empty 'stumps' list")
        for j, stump in enumerate(stage['stumps']):
            for key in ('threshold', 'leftVal', 'rightVal', 'features'):
                if key not in stump:
                    raise ValueError(f"Stage {i} stump {j} is missing '{key}'")
            for feature in stump['features']:
                if len(feature) != 5:
                    raise ValueError(f"Stage {i} stump {j}: features are [x, y, w, h, weight]")


def _numbers(element):
    return [float(v) for v in element.text.split()]


def _parse_legacy_xml(cascade_el):
    """Legacy layout: <size>, <stages>/<_>/<trees>/<_>/<_> nodes"""
    width, height = (int(v) for v in _numbers(cascade_el.find('size')))
    stages = []

    for stage_el in cascade_el.find('stages').findall('_'):
        stumps = []
        for tree_el in stage_el.find('trees').findall('_'):
            nodes = tree_el.findall('_')
            if len(nodes) != 1 or nodes[0].find('left_val') is None or nodes[0].find('right_val') is None:
                raise ValueError("Only stump based cascades are supported")
            node = nodes[0]
            feature_el = node.find('feature')
            tilted_el = feature_el.find('tilted')
            tilted = tilted_el is not None and int(tilted_el.text) == 1
            features = tuple(make_feature(_numbers(rect), tilted)
                             for rect in feature_el.find('rects').findall('_'))
            stumps.append(Stump(float(node.find('threshold').text),
                                float(node.find('left_val').text),
                                float(node.find('right_val').text),
                                features))
        stages.append(Stage(float(stage_el.find('stage_threshold').text), tuple(stumps)))

    return CascadeClassifier((width, height), tuple(stages))


def _parse_cascade_xml(cascade_el):
    """Current layout: <stages> of weak classifiers indexing a shared <features> list"""
    stage_type = cascade_el.find('stageType')
    feature_type = cascade_el.find('featureType')
    if stage_type is not None and stage_type.text.strip() != 'BOOST':
        raise ValueError(f"Unsupported stage type: {stage_type.text.strip()}")
    if feature_type is not None and feature_type.text.strip() != 'HAAR':
        raise ValueError(f"Unsupported feature type: {feature_type.text.strip()}")

    width = int(cascade_el.find('width').text)
    height = int(cascade_el.find('height').text)

    features = []
    for feature_el in cascade_el.find('features').findall('_'):
        tilted_el = feature_el.find('tilted')
        tilted = tilted_el is not None and int(tilted_el.text) == 1
        features.append(tuple(make_feature(_numbers(rect), tilted)
                              for rect in feature_el.find('rects').findall('_')))

    stages = []
    for stage_el in cascade_el.find('stages').findall('_'):
        stumps = []
        for weak_el in stage_el.find('weakClassifiers').findall('_'):
            nodes = _numbers(weak_el.find('internalNodes'))
            leaves = _numbers(weak_el.find('leafValues'))
            if len(nodes) != 4 or len(leaves) != 2:
                raise ValueError("Only stump based cascades are supported")
            feature_idx = int(nodes[2])
            stumps.append(Stump(nodes[3], leaves[0], leaves[1], features[feature_idx]))
        stages.append(Stage(float(stage_el.find('stageThreshold').text), tuple(stumps)))

    return CascadeClassifier((width, height), tuple(stages))


def parse_opencv_xml(xml_path):
    """Load an OpenCV Haar cascade XML file"""
    root = ET.parse(xml_path).getroot()
    if len(root) == 0:
        raise ValueError(f"No cascade found in {xml_path}")
    cascade_el = root[0]

    type_id = cascade_el.get('type_id', '')
    if type_id == 'opencv-haar-classifier':
        return _parse_legacy_xml(cascade_el)
    if type_id == 'opencv-cascade-classifier' or cascade_el.find('stageType') is not None:
        return _parse_cascade_xml(cascade_el)
    raise ValueError(f"Unrecognised cascade layout in {xml_path}")


def load_cascade(path):
    """
    Load and validate a cascade description once, ahead of any detection

    Args:
        path: .json interchange file or OpenCV .xml cascade

    Returns:
        CascadeClassifier
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Could not find cascade at {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext == '.json':
        with open(path, 'r') as f:
            data = json.load(f)
        validate_cascade_dict(data)
        cascade = cascade_from_dict(data)
    elif ext == '.xml':
        cascade = parse_opencv_xml(path)
    else:
        raise ValueError(f"Unsupported cascade file type: {ext}")

    print(f"✓ Loaded cascade {os.path.basename(path)}: "
          f"{len(cascade.stages)} stages, {cascade.n_stumps} stumps, "
          f"window {cascade.size[0]}x{cascade.size[1]}")
    return cascade


def save_cascade(cascade, path):
    """Write a cascade in the JSON interchange format"""
    with open(path, 'w') as f:
        json.dump(cascade_to_dict(cascade), f)
    print(f"✓ Saved cascade to: {path}")
