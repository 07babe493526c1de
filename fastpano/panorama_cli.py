#!/usr/bin/env python3
"""
fastpano CLI
Command-line interface for FAST-based panorama stitching.

Usage:
    fastpano image1.jpg image2.jpg [--set a.jpg b.jpg c.jpg] [options]
"""

import argparse
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime

from .config import BLEND_METHODS, DETECTOR_KINDS, StitchConfig
from .image_io import read_images, write_image
from .panorama_stitcher import PanoramaStitcher, format_summary


def print_banner():
    """Print ASCII art banner."""
    banner = r"""
  __           _
 / _| __ _ ___| |_ _ __   __ _ _ __   ___
| |_ / _` / __| __| '_ \ / _` | '_ \ / _ \
|  _| (_| \__ \ |_| |_) | (_| | | | | (_) |
|_|  \__,_|___/\__| .__/ \__,_|_| |_|\___/
                  |_|
FAST corners + RANSAC homographies
    """
    print(banner)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Stitch overlapping images into panoramas'
    )

    parser.add_argument(
        'images',
        nargs='*',
        help='Images of the first set (left to right order)'
    )

    parser.add_argument(
        '--set',
        dest='sets',
        nargs='+',
        action='append',
        default=[],
        metavar='IMAGE',
        help='An additional image set; repeat for several sets'
    )

    parser.add_argument(
        '-o', '--output-dir',
        default='output',
        help='Directory for panoramas and the summary (default: output)'
    )

    parser.add_argument(
        '-c', '--config',
        help='JSON file with StitchConfig fields'
    )

    parser.add_argument('--detector', choices=DETECTOR_KINDS,
                        help='Corner detector (default: FASTR)')
    parser.add_argument('--blend', choices=BLEND_METHODS,
                        help='Blend method (default: linear)')
    parser.add_argument('--fast-threshold', type=float,
                        help='FAST intensity threshold (default: 0.15)')
    parser.add_argument('--arc-length', type=int,
                        help='Contiguous FAST arc length (default: 12)')
    parser.add_argument('--harris-threshold', type=float,
                        help='Harris response threshold for FASTR (default: 0.005)')
    parser.add_argument('--ransac-trials', type=int,
                        help='Maximum RANSAC trials (default: 500)')
    parser.add_argument('--seed', type=int,
                        help='Random seed for RANSAC sampling')

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log debug output'
    )

    return parser


def load_config(args):
    """Config file (if any) with command line overrides applied."""
    config = StitchConfig.from_file(args.config) if args.config else StitchConfig()

    overrides = {
        'detector_kind': args.detector,
        'blend_method': args.blend,
        'fast_threshold': args.fast_threshold,
        'fast_arc_length': args.arc_length,
        'harris_threshold': args.harris_threshold,
        'ransac_max_trials': args.ransac_trials,
        'ransac_seed': args.seed,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}

    return replace(config, **overrides)


def write_report(path, results, config):
    """Write the processing report next to the panoramas."""
    with open(path, 'w') as f:
        f.write('Panorama Processing Report\n\n')
        f.write(f'Date: {datetime.now():%Y-%m-%d %H:%M:%S}\n')
        f.write(f'Detector: {config.detector_kind}\n')
        f.write(f'Blend Method: {config.blend_method}\n\n')
        f.write(format_summary(results))
        f.write('\n')


def main(argv=None):
    """Main function for CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(message)s'
    )

    image_sets = ([args.images] if args.images else []) + args.sets
    if not image_sets:
        parser.error('no images given')

    try:
        config = load_config(args)
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: invalid configuration: {str(e)}")
        return 1

    print_banner()
    print(f"Processing {len(image_sets)} image set(s)\n")

    os.makedirs(args.output_dir, exist_ok=True)

    stitcher = PanoramaStitcher(config)
    results = stitcher.stitch_batch(image_sets, loader=read_images)

    for result in results:
        if not result.success:
            continue
        output_path = os.path.join(args.output_dir, f'panorama_set{result.index}.jpg')
        try:
            write_image(output_path, result.panorama)
        except IOError as e:
            print(f"Error: {str(e)}")
            result.success = False
            result.error = str(e)
            continue
        print(f"  Panorama saved: {output_path}")

    summary_path = os.path.join(args.output_dir, 'processing_summary.txt')
    write_report(summary_path, results, config)

    print()
    print(format_summary(results))
    print(f"\nProcessing complete. Results saved to {args.output_dir}")

    return 0 if any(r.success for r in results) else 1


if __name__ == '__main__':
    sys.exit(main())
