import argparse
import logging
import os
import sys
import time

from texsyn import InvalidArguments, Quilter, QuilterParams, TexsynError, load_texture, save_image
from texsyn.distance import METRICS

SUPPORTED_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.tiff', '.gif')


def list_images(data_dir):
    return sorted(os.path.join(data_dir, item) for item in os.listdir(data_dir)
                  if item.lower().endswith(SUPPORTED_EXTENSIONS))


def main(argv=None):
    parser = argparse.ArgumentParser(description='Quilt every texture of a directory.')
    parser.add_argument('--data_dir', type=str, default='data',
                        help='Directory containing input texture images.')
    parser.add_argument('--results_dir', type=str, default='results_batch',
                        help='Directory to save synthesized textures.')
    parser.add_argument('--output_width', type=int, default=1024,
                        help='Width of the output synthesized texture.')
    parser.add_argument('--output_height', type=int, default=1024,
                        help='Height of the output synthesized texture.')
    parser.add_argument('--block_size', type=int, default=64,
                        help='Patch size for image quilting.')
    parser.add_argument('--overlap', type=int, default=12,
                        help='Overlap between neighbouring patches.')
    parser.add_argument('--selection_chance', type=float, default=None,
                        help='Probability of scoring each candidate patch (default: score all).')
    parser.add_argument('--metric', choices=sorted(METRICS), default='l1')
    parser.add_argument('--seed', type=int, default=None, help='Random seed.')
    parser.add_argument('--processes', type=int, default=None,
                        help='Worker processes for candidate scoring.')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

    if not os.path.isdir(args.data_dir):
        print(f"Error: Data directory '{args.data_dir}' not found.")
        return 1

    os.makedirs(args.results_dir, exist_ok=True)
    print(f"Results will be saved in '{args.results_dir}'")

    image_files = list_images(args.data_dir)
    if not image_files:
        print(f"No images found in '{args.data_dir}'.")
        return 1
    print(f"Found {len(image_files)} images to process.")

    try:
        params = QuilterParams((args.output_width, args.output_height), args.block_size,
                               args.overlap, selection_chance=args.selection_chance,
                               distance=METRICS[args.metric])
    except InvalidArguments as e:
        print(f"Invalid arguments: {e}")
        return 1

    failures = 0
    total_start_time = time.time()
    for i, img_path in enumerate(image_files):
        print(f"\nProcessing image {i+1}/{len(image_files)}: {img_path}")
        try:
            input_texture = load_texture(img_path)
        except ValueError as e:
            print(f"  Error loading texture {img_path}: {e}")
            failures += 1
            continue

        start_time = time.time()
        try:
            quilter = Quilter(input_texture, params, rng=args.seed, processes=args.processes,
                              show_progress=False)
            synthesized_texture = quilter.quilt_image()
        except TexsynError as e:
            print(f"  Error during synthesis for {img_path}: {e}")
            failures += 1
            continue
        print(f"  Synthesis completed in {time.time() - start_time:.2f} seconds.")

        name, ext = os.path.splitext(os.path.basename(img_path))
        output_filename = (f"{name}_quilted_w{args.output_width}_h{args.output_height}"
                           f"_b{args.block_size}{ext if ext else '.png'}")
        output_path = os.path.join(args.results_dir, output_filename)
        save_image(synthesized_texture, output_path)
        print(f"  Saved synthesized texture to: {output_path}")

    print(f"\nBatch processing completed in {time.time() - total_start_time:.2f} seconds.")
    return 1 if failures else 0


if __name__ == '__main__':
    sys.exit(main())
