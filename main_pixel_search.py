"""
Pixel-based texture synthesis (Efros & Leung).
Usage: python main_pixel_search.py texture.png search.png --size 128 --winsize 7
"""

import argparse
import logging
import sys
import time

from texsyn import (InvalidArguments, PixelSearch, PixelSearchParams, TexsynError,
                    load_texture, save_image, visualize_results)
from texsyn.distance import METRICS
from texsyn.evaluation import evaluate_texture_quality
from main import output_size


def build_parser():
    parser = argparse.ArgumentParser(description='Pixel Search Texture Synthesis')
    parser.add_argument('input', type=str, help='Input image')
    parser.add_argument('output', type=str, nargs='?', default='search.png', help='Output image')
    parser.add_argument('-s', '--size', type=int, default=1024, help='Output image size')
    parser.add_argument('--width', type=int, default=None, help='Output image width')
    parser.add_argument('--height', type=int, default=None, help='Output image height')
    parser.add_argument('-w', '--winsize', type=int, default=15, help='Search window size. Must be odd.')
    parser.add_argument('--seed-coords', type=int, nargs=2, default=None, metavar=('X', 'Y'),
                        help='Top-left corner of the 3x3 seed in the input (default: random)')
    parser.add_argument('--metric', choices=sorted(METRICS), default='l2', help='Pixel distance')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--visualize', type=str, default=None, metavar='PATH',
                        help='Save a side-by-side comparison figure to PATH')
    parser.add_argument('--evaluate', action='store_true', help='Print texture quality metrics')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')
    width, height = output_size(args, parser)

    print(f"Loading texture from: {args.input}")
    try:
        input_texture = load_texture(args.input)
    except ValueError as e:
        print(f"Error loading texture: {e}")
        return 1

    try:
        params = PixelSearchParams((width, height), args.winsize,
                                   seed_coords=tuple(args.seed_coords) if args.seed_coords else None,
                                   distance=METRICS[args.metric])
        searcher = PixelSearch(input_texture, params, rng=args.seed)
    except InvalidArguments as e:
        print(f"Invalid arguments: {e}")
        return 1

    print(f"Synthesizing {width}x{height} pixels with a {params.window_size}px window...")
    start_time = time.time()
    try:
        result = searcher.synthesize()
    except TexsynError as e:
        print(f"Error during synthesis: {e}")
        return 1
    print(f"Synthesis completed in {time.time() - start_time:.2f} seconds")

    try:
        save_image(result, args.output)
    except ValueError as e:
        print(f"Error saving result: {e}")
        return 1
    print(f"Saved result to: {args.output}")

    if args.visualize:
        visualize_results(input_texture, result,
                          f"Pixel Search Results\nWindow: {params.window_size}",
                          save_path=args.visualize)
        print(f"Saved comparison to: {args.visualize}")

    if args.evaluate:
        evaluate_texture_quality(input_texture, result, rng=args.seed)

    return 0


if __name__ == "__main__":
    sys.exit(main())
