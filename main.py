# main.py
"""
MAIN EXECUTION SCRIPT FOR THE CASCADE OBJECT DETECTOR
Usage: python main.py --input <image|folder> --output <folder> [--cascade cascade.xml]
"""
import argparse
import os
import sys
import json
import traceback
from pathlib import Path

import cv2
from tqdm import tqdm

from cascade_detector.cascade import load_cascade
from cascade_detector.object_detector import ObjectDetector

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.bmp', '.tiff']


def default_cascade_path():
    """Frontal face cascade shipped with OpenCV"""
    return os.path.join(cv2.data.haarcascades, 'haarcascade_frontalface_default.xml')


def create_config_file(path='config.json'):
    """Create default configuration file"""
    config = {
        "working_size": 200,
        "scale_factor": 1.2,
        "scale_min": 1.0,
        "search": "multi",
        "min_neighbors": 1,
        "equalize": True,
        "edge_pruning": False,
        "cache_buffers": True,
        "verbose": False,
    }

    with open(path, 'w') as f:
        json.dump(config, f, indent=2)

    print(f"✓ Created {path}")
    return config


def find_images(input_path):
    """Single image path or all images in a folder"""
    if os.path.isfile(input_path):
        return [Path(input_path)]

    image_files = []
    for ext in IMAGE_EXTENSIONS:
        image_files.extend(Path(input_path).glob(f'*{ext}'))
        image_files.extend(Path(input_path).glob(f'*{ext.upper()}'))
    return sorted(set(image_files))


def build_parser():
    parser = argparse.ArgumentParser(description='Cascade Object Detector')
    parser.add_argument('--input', help='Input image or folder')
    parser.add_argument('--output', help='Output folder for results')
    parser.add_argument('--cascade', default=None,
                        help='Cascade file (.json or OpenCV .xml). Default: OpenCV frontal face')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--limit', type=int, default=0, help='Limit number of images to process')
    parser.add_argument('--plot', action='store_true', help='Also save a pipeline figure per image')
    parser.add_argument('--create-config', action='store_true', help='Create default config')
    return parser


def main(argv=None):
    """Main execution function"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Create config file if requested
    if args.create_config:
        create_config_file(args.config)
        return 0

    if not args.input or not args.output:
        parser.error("--input and --output are required")

    # Validate arguments
    if not os.path.exists(args.input):
        print(f"Error: Input path '{args.input}' does not exist")
        return 1

    # Create output directory
    os.makedirs(os.path.join(args.output, 'images'), exist_ok=True)
    os.makedirs(os.path.join(args.output, 'text'), exist_ok=True)

    cascade = load_cascade(args.cascade or default_cascade_path())
    detector = ObjectDetector(cascade, args.config)

    image_files = find_images(args.input)
    print(f"Found {len(image_files)} images in '{args.input}'")

    if args.limit > 0:
        image_files = image_files[:args.limit]
        print(f"Limiting to {len(image_files)} images")

    processed_count = 0
    total_detections = 0

    for img_path in tqdm(image_files, desc="Detecting"):
        try:
            image = cv2.imread(str(img_path))
            if image is None:
                print(f"Warning: Could not load {img_path}")
                continue

            detections = detector.detect(image)
            total_detections += len(detections)

            vis_path = os.path.join(args.output, 'images', f"{img_path.stem}_result.jpg")
            detector.visualize_results(image, detections, vis_path)

            text_dir = os.path.join(args.output, 'text')
            detector.save_results(img_path.stem, detections, text_dir)

            if args.plot:
                plot_path = os.path.join(args.output, 'images', f"{img_path.stem}_pipeline.png")
                detector.plot_pipeline(image, detections, plot_path)

            processed_count += 1

        except Exception as e:
            print(f"Error processing {img_path}: {str(e)}")
            traceback.print_exc()
            continue

    # Summary
    print(f"\n{'='*60}")
    print("PROCESSING COMPLETE")
    print(f"{'='*60}")
    print(f"Total images processed: {processed_count}/{len(image_files)}")
    print(f"Total detections: {total_detections}")
    print(f"Output folder: {args.output}")
    print(f"  - Visualizations: {args.output}/images/")
    print(f"  - Text results: {args.output}/text/")
    print(f"{'='*60}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
