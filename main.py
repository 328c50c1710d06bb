"""
Main script for image quilting texture synthesis.
Usage: python main.py texture.jpg quilt.png --size 512 --blocksize 64 --overlap 12
"""

import argparse
import logging
import sys
import time

from texsyn import (InvalidArguments, Quilter, QuilterParams, TexsynError,
                    load_texture, save_image, visualize_results)
from texsyn.distance import METRICS
from texsyn.evaluation import evaluate_texture_quality


def output_size(args, parser):
    """(width, height) from either --size or --width/--height."""
    if args.width is None and args.height is None:
        return args.size, args.size
    if args.width is None or args.height is None:
        parser.error("--width and --height must be given together")
    return args.width, args.height


def build_parser():
    parser = argparse.ArgumentParser(description='Image Quilting Texture Synthesis')
    parser.add_argument('input', type=str, help='Input image')
    parser.add_argument('output', type=str, nargs='?', default='quilt.png', help='Output image')
    parser.add_argument('-s', '--size', type=int, default=1024, help='Output image size')
    parser.add_argument('--width', type=int, default=None, help='Output image width')
    parser.add_argument('--height', type=int, default=None, help='Output image height')
    parser.add_argument('-b', '--blocksize', type=int, default=64, help='Patch size')
    parser.add_argument('-o', '--overlap', type=int, default=12, help='Overlap area size')
    parser.add_argument('--selection-chance', type=float, default=None,
                        help='Probability of scoring each candidate patch (default: score all)')
    parser.add_argument('--metric', choices=sorted(METRICS), default='l1', help='Pixel distance')
    parser.add_argument('--seed', type=int, default=None, help='Random seed')
    parser.add_argument('--processes', type=int, default=None,
                        help='Worker processes for candidate scoring (default: one per CPU)')
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
    print(f"Input texture shape: {input_texture.shape}")

    try:
        params = QuilterParams((width, height), args.blocksize, args.overlap,
                               selection_chance=args.selection_chance,
                               distance=METRICS[args.metric])
        quilter = Quilter(input_texture, params, rng=args.seed, processes=args.processes)
    except InvalidArguments as e:
        print(f"Invalid arguments: {e}")
        return 1

    print(f"Algorithm parameters:")
    print(f"  Output size: {width}x{height}")
    print(f"  Patch size: {params.patch_size}")
    print(f"  Overlap: {params.overlap}")
    print(f"  Selection chance: {params.selection_chance or 'exhaustive'}")

    print("\nStarting texture synthesis...")
    start_time = time.time()
    try:
        result = quilter.quilt_image()
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
                          f"Image Quilting Results\nPatch: {params.patch_size}, Overlap: {params.overlap}",
                          save_path=args.visualize)
        print(f"Saved comparison to: {args.visualize}")

    if args.evaluate:
        evaluate_texture_quality(input_texture, result, rng=args.seed)

    return 0


if __name__ == "__main__":
    sys.exit(main())
