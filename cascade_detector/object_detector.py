# cascade_detector/object_detector.py
"""
Complete detection pipeline:
grayscale -> histogram equalization -> integral images -> multi-scale scan -> grouping
"""
import os
import json
from datetime import datetime

import numpy as np
import cv2
import matplotlib.pyplot as plt

from .preprocessing import convert_rgba_to_grayscale, equalize_histogram
from .edge_density import compute_edge_magnitude
from .integral_image import IntegralImage
from .scanner import detect_multi_scale, detect_finest_scale
from .grouping import Detection, group_rectangles

SEARCH_MODES = {
    'multi': detect_multi_scale,
    'finest': detect_finest_scale,
}


class DetectionBuffers:
    """
    Scratch images owned by one detection context

    Reused between frames to avoid per-frame allocation. Each compute step
    checks the shape of what it is handed and allocates a fresh array when
    the frame size changed. Never share one instance between threads.
    """

    def __init__(self):
        self.gray = None
        self.sat = None
        self.ssat = None
        self.rsat = None
        self.edges = None
        self.smoothing = None
        self.edge_sat = None

    def ensure(self, name, shape, dtype):
        """Return the named buffer, reallocated if its shape or dtype differ"""
        buffer = getattr(self, name)
        if buffer is None or buffer.shape != tuple(shape) or buffer.dtype != dtype:
            buffer = np.zeros(shape, dtype=dtype)
            setattr(self, name, buffer)
        return buffer


class ObjectDetector:
    """Cascade object detector for still images and video frames"""

    def __init__(self, cascade, config_path=None, **overrides):
        """
        Initialize with a loaded cascade and optional configuration

        Args:
            cascade: CascadeClassifier (see cascade.load_cascade)
            config_path: Optional JSON file overriding default_params
            overrides: Keyword overrides applied on top of the config file
        """
        self.cascade = cascade

        # Load configuration
        self.config = {}
        if config_path and os.path.exists(config_path):
            with open(config_path, 'r') as f:
                self.config = json.load(f)
        elif config_path:
            print(f"Warning: Config file '{config_path}' not found, using defaults")

        # Default parameters
        self.default_params = {
            # Working buffer height the frame is resized to
            'working_size': 200,

            # Scale search
            'scale_factor': 1.2,
            'scale_min': 1.0,
            'search': 'multi',

            # Grouping
            'min_neighbors': 1,

            # Preprocessing
            'equalize': True,
            'edge_pruning': False,

            # Keep scratch buffers between frames
            'cache_buffers': True,
            'verbose': False,
        }

        # Merge with config
        self.params = {**self.default_params, **self.config, **overrides}
        self._check_params()

        self.buffers = DetectionBuffers()
        self.last_gray = None
        self.last_edges = None

        if self.params['verbose']:
            print("=" * 60)
            print("CASCADE OBJECT DETECTOR")
            print("=" * 60)
            print(f"Window: {cascade.size[0]}x{cascade.size[1]}, "
                  f"stages: {len(cascade.stages)}, tilted: {cascade.tilted}")
            print(f"Search: {self.params['search']}, "
                  f"scale factor: {self.params['scale_factor']}, "
                  f"working size: {self.params['working_size']}")
            print("=" * 60)

    def _check_params(self):
        if self.params['scale_factor'] <= 1:
            raise ValueError(f"scale_factor must be > 1, got {self.params['scale_factor']}")
        if self.params['scale_min'] <= 0:
            raise ValueError(f"scale_min must be > 0, got {self.params['scale_min']}")
        if self.params['working_size'] < 1:
            raise ValueError(f"working_size must be >= 1, got {self.params['working_size']}")
        if self.params['search'] not in SEARCH_MODES:
            raise ValueError(f"search must be one of {sorted(SEARCH_MODES)}, "
                             f"got {self.params['search']!r}")

    @staticmethod
    def to_rgba(image):
        """Bring a BGR, RGBA or grayscale image to RGBA (grayscale passes through)"""
        if image.ndim == 2:
            return image
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2RGBA)
        if image.shape[2] == 4:
            return image
        raise ValueError(f"Unsupported image shape: {image.shape}")

    def prepare(self, image, buffers):
        """
        Grayscale, equalize and build the integral tables of a working image

        Returns:
            IntegralImage
        """
        gray = buffers.ensure('gray', image.shape[:2], np.int32)
        if image.ndim == 2:
            gray[...] = np.rint(image)
        else:
            convert_rgba_to_grayscale(image, gray)

        if self.params['equalize']:
            equalize_histogram(gray)

        edges = None
        if self.params['edge_pruning']:
            edges = buffers.ensure('edges', gray.shape, np.float64)
            smoothing = buffers.ensure('smoothing', gray.shape, np.float64)
            edges = compute_edge_magnitude(gray, edges, smoothing)

        self.last_gray = gray
        self.last_edges = edges
        return IntegralImage(gray, tilted=self.cascade.tilted, edges=edges, buffers=buffers)

    def detect(self, image, selection=None):
        """
        Detect objects in an image

        Args:
            image: (H, W, 3) BGR, (H, W, 4) RGBA or (H, W) grayscale array
            selection: Optional region of interest (x, y, width, height)

        Returns:
            List of Detection in source image coordinates, most neighbors first
        """
        if selection is None:
            selection = (0, 0, image.shape[1], image.shape[0])
        sel_x, sel_y, sel_w, sel_h = (int(v) for v in selection)

        # cv2 colour conversion and resizing take 8-bit, 16-bit or float32 input
        image = np.asarray(image)
        if image.dtype not in (np.uint8, np.uint16, np.float32):
            image = image.astype(np.float32)

        region = self.to_rgba(image)[sel_y:sel_y + sel_h, sel_x:sel_x + sel_w]
        region = np.ascontiguousarray(region)
        sel_h, sel_w = region.shape[:2]
        if sel_w == 0 or sel_h == 0:
            return []

        working_h = int(self.params['working_size'])
        working_w = max(1, int(working_h * sel_w / sel_h))
        working = cv2.resize(region, (working_w, working_h), interpolation=cv2.INTER_AREA)
        width_ratio = sel_w / working_w
        height_ratio = sel_h / working_h

        buffers = self.buffers if self.params['cache_buffers'] else DetectionBuffers()
        integral = self.prepare(working, buffers)

        search = SEARCH_MODES[self.params['search']]
        rects = search(integral, self.cascade,
                       self.params['scale_factor'], self.params['scale_min'])
        groups = group_rectangles(rects, self.params['min_neighbors'])
        groups.sort(key=lambda group: group.neighbors, reverse=True)

        if self.params['verbose']:
            print(f"Processing image: {image.shape} -> working {working_w}x{working_h}, "
                  f"{len(rects)} raw windows, {len(groups)} groups")

        return [Detection(int(group.x * width_ratio) + sel_x,
                          int(group.y * height_ratio) + sel_y,
                          int(group.width * width_ratio),
                          int(group.height * height_ratio),
                          group.neighbors)
                for group in groups]

    def visualize_results(self, image, detections, save_path=None):
        """
        Draw detections on a copy of the image

        Args:
            image: BGR or grayscale image
            detections: List of Detection
            save_path: Optional path to save the visualization
        """
        vis = image.copy()
        if vis.ndim == 2:
            vis = cv2.cvtColor(vis.astype(np.uint8), cv2.COLOR_GRAY2BGR)
        colors = [(0, 255, 0), (0, 200, 100), (255, 255, 0), (255, 165, 0), (255, 0, 0)]

        for i, det in enumerate(detections):
            color = colors[i % len(colors)]
            cv2.rectangle(vis, (det.x, det.y), (det.x + det.width, det.y + det.height), color, 2)
            cv2.putText(vis, f"{i+1}: n={det.neighbors}", (det.x, max(det.y - 5, 10)),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, color, 1)

        if save_path:
            cv2.imwrite(save_path, vis)
            print(f"✓ Saved visualization to: {save_path}")

        return vis

    def plot_pipeline(self, image, detections, save_path):
        """
        Save a figure of the pipeline stages for the last detected frame:
        input, equalized working image, edge magnitude (if computed), detections
        """
        panels = [("Input", cv2.cvtColor(self.to_bgr(image), cv2.COLOR_BGR2RGB), None)]
        if self.last_gray is not None:
            panels.append(("Equalized working image", self.last_gray, 'gray'))
        if self.last_edges is not None:
            panels.append(("Edge magnitude", self.last_edges, 'hot'))
        vis = self.visualize_results(self.to_bgr(image), detections)
        panels.append((f"Detections ({len(detections)})", cv2.cvtColor(vis, cv2.COLOR_BGR2RGB), None))

        fig, axes = plt.subplots(1, len(panels), figsize=(4 * len(panels), 4))
        for ax, (title, data, cmap) in zip(axes, panels):
            ax.imshow(data, cmap=cmap)
            ax.set_title(title)
            ax.axis('off')

        plt.tight_layout()
        plt.savefig(save_path, dpi=100, bbox_inches='tight')
        plt.close(fig)
        print(f"✓ Saved pipeline figure to: {save_path}")

    @staticmethod
    def to_bgr(image):
        if image.ndim == 2:
            return cv2.cvtColor(image.astype(np.uint8), cv2.COLOR_GRAY2BGR)
        if image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_RGBA2BGR)
        return image

    def save_results(self, image_name, detections, output_dir):
        """
        Save detections to a text file
        """
        result_file = os.path.join(output_dir, f"{image_name}_results.txt")

        with open(result_file, 'w') as f:
            f.write(f"Object Detection Results for: {image_name}\n")
            f.write(f"Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write(f"Cascade window: {self.cascade.size[0]}x{self.cascade.size[1]}\n")
            f.write(f"Search: {self.params['search']}, scale factor: {self.params['scale_factor']}\n")
            f.write(f"Number of detections: {len(detections)}\n")
            f.write("-" * 50 + "\n\n")

            for i, det in enumerate(detections):
                f.write(f"Detection {i+1}:\n")
                f.write(f"  Rectangle: [{det.x}, {det.y}, {det.width}, {det.height}]\n")
                f.write(f"  Neighbors: {det.neighbors}\n")
                f.write("-" * 30 + "\n")

        print(f"✓ Saved results to: {result_file}")
        return result_file
