"""Command-line interface for slicvid."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

import cv2

from .engine import SuperpixelEngine
from .raster_ingest import bgr_frame_to_lab, ingest, iter_video_frames, lab_to_bgr, lab_to_rgb, read_video_info
from .types import SlicConfig, SlicMode, VideoMode
from .viz_utils import (
    FrameStatistics,
    draw_cluster_centres,
    draw_cluster_contours,
    draw_information,
    fill_superpixels,
    save_image,
)


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="slicvid",
        description="Temporally coherent SLIC superpixels for images and video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Still image
  slicvid photo.jpg -o photo_superpixels.png --step 25 --weight 10

  # Video, reusing centres between frames and spawning centres for orphans
  slicvid clip.mp4 --video -o clip_sp.mp4 --video-mode add_superpixels --stats
        """,
    )

    parser.add_argument("input", help="Input image or video path")

    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Output path (default: input name with _superpixels suffix)",
    )

    parser.add_argument(
        "--video", action="store_true", help="Treat input as a video and process every frame"
    )

    parser.add_argument(
        "--step",
        type=int,
        default=20,
        help="Sampling step, the grid spacing between seeds (default: 20)",
    )

    parser.add_argument(
        "--weight",
        type=float,
        default=10.0,
        help="Spatial distance weight (default: 10)",
    )

    parser.add_argument(
        "--threshold",
        type=float,
        default=0.5,
        help="Residual error threshold for convergence (default: 0.5)",
    )

    parser.add_argument(
        "--mode",
        choices=[m.name.lower() for m in SlicMode],
        default="error_threshold",
        help="Termination policy (default: error_threshold)",
    )

    parser.add_argument(
        "--iterations",
        type=int,
        default=10,
        help="Iteration count for fixed_iterations, cap for error_threshold (default: 10)",
    )

    parser.add_argument(
        "--video-mode",
        choices=[m.name.lower() for m in VideoMode],
        default="independent",
        help="Temporal policy between frames (default: independent)",
    )

    parser.add_argument(
        "--key-frames-ratio",
        type=int,
        default=10,
        help="Reseed every N-th frame in key_frames modes (default: 10)",
    )

    parser.add_argument(
        "--noise-std",
        type=float,
        default=1.0,
        help="Standard deviation of position jitter in noise modes (default: 1.0)",
    )

    parser.add_argument(
        "--max-clusters",
        type=int,
        default=1300,
        help="Cluster count that forces a reseed in add_superpixels modes (default: 1300)",
    )

    parser.add_argument(
        "--no-connectivity",
        action="store_true",
        help="Skip merging of undersized fragments",
    )

    parser.add_argument("--fill", action="store_true", help="Fill superpixels with their mean colour")
    parser.add_argument("--no-contours", action="store_true", help="Do not draw superpixel contours")
    parser.add_argument("--centres", action="store_true", help="Draw cluster centres")
    parser.add_argument("--stats", action="store_true", help="Draw the statistics panel (video only)")

    parser.add_argument("--seed", type=int, default=None, help="Random seed for noise modes")
    parser.add_argument(
        "--workers",
        type=int,
        default=-1,
        help="Parallel workers for the assignment step (default: -1, auto)",
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return parser


def build_config(parsed: argparse.Namespace) -> SlicConfig:
    """Translate parsed arguments into an engine configuration."""
    return SlicConfig(
        sampling_step=parsed.step,
        spatial_weight=parsed.weight,
        error_threshold=parsed.threshold,
        slic_mode=parsed.mode,
        iterations=parsed.iterations,
        video_mode=parsed.video_mode,
        key_frames_ratio=parsed.key_frames_ratio,
        noise_std=parsed.noise_std,
        max_clusters=parsed.max_clusters,
        enforce_connectivity=not parsed.no_connectivity,
        parallel_workers=parsed.workers,
        random_seed=parsed.seed,
    )


def render(lab, engine: SuperpixelEngine, parsed: argparse.Namespace, to_display):
    """Fill/outline one processed frame and convert it for output."""
    if parsed.fill:
        lab = fill_superpixels(lab, engine.labels, engine.store)
    out = to_display(lab)
    if not parsed.no_contours:
        out = draw_cluster_contours(out, engine.labels, color=(255, 255, 255))
    if parsed.centres:
        out = draw_cluster_centres(out, engine.store, color=(255, 0, 0))
    return out


def process_image_file(parsed: argparse.Namespace, config: SlicConfig, output_path: Path) -> int:
    """Run the engine on a still image and save the visualization."""
    ingested = ingest(parsed.input)
    print(f"  Loaded {ingested.width}x{ingested.height}")

    engine = SuperpixelEngine(config)
    result = engine.process_frame(ingested.image_lab)

    print(f"  Superpixels: {result.cluster_count}")
    print(f"  Iterations: {result.iterations} ({result.state.name.lower()})")
    print(f"  Residual error: {result.total_residual_error:.4f}")

    save_image(render(ingested.image_lab, engine, parsed, lab_to_rgb), output_path)
    return 0


def process_video_file(parsed: argparse.Namespace, config: SlicConfig, output_path: Path) -> int:
    """Run the engine frame by frame over a video and write the visualization."""
    fps, width, height, total_frames = read_video_info(parsed.input)
    print(f"  Video: {width}x{height} @ {fps:.1f} fps, {total_frames} frames")

    writer = cv2.VideoWriter(str(output_path), cv2.VideoWriter_fourcc(*"mp4v"), fps, (width, height))
    engine = SuperpixelEngine(config)
    stats = FrameStatistics()

    try:
        for frame in iter_video_frames(parsed.input):
            lab = bgr_frame_to_lab(frame)
            result = engine.process_frame(lab)
            stats.record(result)

            out = render(lab, engine, parsed, lab_to_bgr)
            if parsed.stats:
                out = draw_information(out, stats, result, total_frames, config.spatial_weight)
            writer.write(out)
    finally:
        writer.release()

    print(f"  Frames processed: {stats.frames}")
    print(f"  Average iterations: {stats.average_iterations:.1f}")
    print(f"  Average time: {stats.average_time_ms:.0f} ms")
    return 0


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    logging.basicConfig(
        level=logging.DEBUG if parsed.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    input_path = Path(parsed.input)
    if not input_path.exists():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        return 1

    if parsed.output:
        output_path = Path(parsed.output)
    else:
        suffix = ".mp4" if parsed.video else ".png"
        output_path = input_path.with_name(f"{input_path.stem}_superpixels{suffix}")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        config = build_config(parsed)
        print(f"Processing: {parsed.input}")
        print(f"  Step: {config.sampling_step}, weight: {config.spatial_weight:g}")
        print(f"  Mode: {config.slic_mode.name.lower()}, video mode: {config.video_mode.name.lower()}")

        if parsed.video:
            code = process_video_file(parsed, config, output_path)
        else:
            code = process_image_file(parsed, config, output_path)

        print(f"  Output saved: {output_path}")
        return code

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error processing input: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
