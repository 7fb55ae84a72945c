#!/usr/bin/env python3
"""Report the dominant colors of an image.

Samples every 10th pixel (ignoring transparent ones), buckets colors to the
nearest multiple of 10 and prints the 10 most frequent buckets.

Usage:
    python scripts/analyze_colors.py photo.jpg
    python scripts/analyze_colors.py photo.jpg --swatch               # writes color-palette.png
    python scripts/analyze_colors.py photo.jpg --report palette.yaml --top 5
"""
import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bgenerator.analysis import palette
from bgenerator.compositing.decode import DecodeError
from bgenerator.utils import fs, logging_config

logger = logging_config.get_logger("analyze_colors")


def format_report(report: palette.PaletteReport) -> str:
    lines = [f"Dominant color: {report.dominant or '-'}  ({report.sampled} samples)"]
    for i, info in enumerate(report.colors, 1):
        lines.append(f"{i:>3}. {info.hex}  {info.css:<20} {info.percentage:>3}%")
    return "\n".join(lines)


def main() -> int:
    """CLI entrypoint for dominant-color analysis."""
    parser = argparse.ArgumentParser(
        description="Analyze the dominant colors of an image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("image", type=Path, help="Image file (any format Pillow reads)")
    parser.add_argument("--step", type=int, default=10, help="Sample every Nth pixel (default: 10)")
    parser.add_argument("--top", type=int, default=10, help="Number of colors to report (default: 10)")
    parser.add_argument(
        "--swatch",
        type=Path,
        nargs="?",
        const=Path(palette.SWATCH_FILENAME),
        default=None,
        help=f"Write a palette swatch PNG (default name: {palette.SWATCH_FILENAME})",
    )
    parser.add_argument("--report", type=Path, default=None, help="Write the palette as YAML")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else "INFO"
    logging_config.setup_logging(log_level=log_level)

    try:
        report = palette.analyze_colors(palette.load_image(args.image), step=args.step, top_n=args.top)
    except (FileNotFoundError, DecodeError, ValueError) as e:
        logger.error(f"Cannot analyze {args.image}: {e}")
        return 1

    print(format_report(report))

    try:
        if args.swatch is not None:
            palette.save_palette_swatch(report, args.swatch)
        if args.report is not None:
            fs.atomic_yaml_dump({"image": str(args.image), **report.to_dict()}, args.report)
    except RuntimeError as e:
        logger.error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
