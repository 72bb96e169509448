# cascade_detector/grouping.py
"""
Collapse near-duplicate detections into mean rectangles
"""
from collections import namedtuple

Detection = namedtuple('Detection', 'x y width height neighbors')

# Similarity tolerance as a fraction of the summed smaller sides
SIMILARITY_RATIO = 0.1
# Margin by which a rectangle is grown before testing containment
CONTAINMENT_MARGIN = 0.2


def is_similar(rect1, rect2):
    """True if all four edges of the rectangles lie within the tolerance"""
    delta = SIMILARITY_RATIO * (min(rect1[2], rect2[2]) + min(rect1[3], rect2[3]))
    return (abs(rect1[0] - rect2[0]) <= delta and
            abs(rect1[1] - rect2[1]) <= delta and
            abs(rect1[0] + rect1[2] - rect2[0] - rect2[2]) <= delta and
            abs(rect1[1] + rect1[3] - rect2[1] - rect2[3]) <= delta)


def partition(rects):
    """
    Label rectangles with similarity classes in one greedy pass

    Each rectangle takes the class of the first earlier rectangle it is
    similar to, otherwise opens a new class.

    Returns:
        (labels, n_classes)
    """
    labels = [0] * len(rects)
    n_classes = 0
    for i, rect in enumerate(rects):
        for j in range(i):
            if is_similar(rect, rects[j]):
                labels[i] = labels[j]
                break
        else:
            labels[i] = n_classes
            n_classes += 1
    return labels, n_classes


def is_inside(inner, outer):
    """True if inner lies within outer grown by CONTAINMENT_MARGIN on each side"""
    dx = outer[2] * CONTAINMENT_MARGIN
    dy = outer[3] * CONTAINMENT_MARGIN
    return (inner[0] >= outer[0] - dx and
            inner[1] >= outer[1] - dy and
            inner[0] + inner[2] <= outer[0] + outer[2] + dx and
            inner[1] + inner[3] <= outer[1] + outer[3] + dy)


def group_rectangles(rects, min_neighbors=1):
    """
    Group similar rectangles and return one mean rectangle per group

    Groups with fewer than min_neighbors members are not removed; they are
    returned with their accumulated coordinates left unaveraged. Groups
    lying inside another group's (grown) rectangle are dropped.

    Args:
        rects: Sequence of (x, y, width, height)
        min_neighbors: Member count needed before a group is averaged

    Returns:
        List of Detection(x, y, width, height, neighbors)
    """
    labels, n_classes = partition(rects)

    # Accumulate [x, y, w, h, count] per class
    groups = [[0, 0, 0, 0, 0] for _ in range(n_classes)]
    for rect, label in zip(rects, labels):
        group = groups[label]
        group[0] += rect[0]
        group[1] += rect[1]
        group[2] += rect[2]
        group[3] += rect[3]
        group[4] += 1

    for group in groups:
        n_neighbors = group[4]
        if n_neighbors >= min_neighbors:
            group[0] /= n_neighbors
            group[1] /= n_neighbors
            group[2] /= n_neighbors
            group[3] /= n_neighbors

    # Drop groups nested inside another group
    filtered = []
    for i, group in enumerate(groups):
        nested = any(is_inside(group, other)
                     for j, other in enumerate(groups) if i != j)
        if not nested:
            filtered.append(Detection(*group))
    return filtered
