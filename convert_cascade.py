# convert_cascade.py
"""
Convert an OpenCV Haar cascade XML file to the JSON cascade description
Usage: python convert_cascade.py --input haarcascade.xml --output cascade.json
"""
import argparse
import os
import sys

from cascade_detector.cascade import load_cascade, save_cascade


def main(argv=None):
    parser = argparse.ArgumentParser(description='Convert OpenCV Haar cascades to JSON')
    parser.add_argument('--input', required=True, help='OpenCV cascade XML file')
    parser.add_argument('--output', default=None, help='Output JSON file (default: next to input)')

    args = parser.parse_args(argv)

    if not os.path.exists(args.input):
        print(f"Error: Cascade '{args.input}' does not exist")
        return 1

    output = args.output or os.path.splitext(args.input)[0] + '.json'

    try:
        cascade = load_cascade(args.input)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    save_cascade(cascade, output)
    print(f"  Tilted features: {'yes' if cascade.tilted else 'no'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
