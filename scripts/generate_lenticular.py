#!/usr/bin/env python3
"""
Lenticular Image Generator

This script interlaces an ordered list of image files into a single
lenticular composite and writes it as a PNG, ready for printing under a
lens sheet. Image order on the command line is the strip cycle order.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add parent directory to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from lenticular import config as lenticular_config
from lenticular.pipeline import GenerationResult, generate


# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    handlers=[
        logging.StreamHandler(),
    ],
)
logger = logging.getLogger("generator")


def apply_overrides(config: Dict, args: argparse.Namespace) -> Dict:
    """Apply command line overrides on top of the loaded configuration.

    Args:
        config: Configuration dictionary
        args: Parsed command line arguments

    Returns:
        The updated configuration dictionary
    """
    overrides = {
        "lines_per_unit": args.lines_per_unit,
        "base_resolution": args.base_resolution,
        "orientation": args.orientation,
        "size_policy": args.size_policy,
    }
    for key, value in overrides.items():
        if value is not None:
            config["interlace"][key] = value

    return config


def run_generator(
    image_paths: List[str],
    output_path: Optional[str] = None,
    config: Optional[Dict] = None,
) -> GenerationResult:
    """Read image files, generate the composite and write it to disk.

    Args:
        image_paths: Source image files in cycle order
        output_path: Output PNG path; defaults to the configured filename
        config: Configuration dictionary

    Returns:
        The generation result
    """
    if config is None:
        config = lenticular_config.load_config()

    if output_path is None:
        output_path = config["output"]["filename"]

    blobs = []
    names = []
    for path in image_paths:
        path = Path(path)
        try:
            blobs.append(path.read_bytes())
        except OSError as e:
            logger.warning(f"Failed to read {path}: {e}")
            blobs.append(b"")
        names.append(path.name)

    logger.info(f"Generating lenticular image from {len(blobs)} files")
    result = generate(blobs, names=names, config=config, show_progress=True)

    for name, reason in result.rejected:
        logger.warning(f"Skipped {name}: {reason}")

    if not result.ok:
        logger.error(f"{result.error}: {result.message}")
        return result

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.png)
    logger.info(f"Saved {result.width}x{result.height} lenticular image to {output_path}")

    return result


def main():
    """Main function to parse arguments and run the generator."""
    parser = argparse.ArgumentParser(description="Lenticular Image Generator")
    parser.add_argument(
        "--image", "-i", dest="images", action="append", required=True,
        help="Source image file; repeat in strip cycle order (at least 2)"
    )
    parser.add_argument(
        "--output", "-o", dest="output_path", default=None,
        help="Output PNG path (default: lenticular-image.png)"
    )
    parser.add_argument(
        "--lpi", dest="lines_per_unit", type=float, default=None,
        help="Lenticule density of the lens sheet (lines per unit)"
    )
    parser.add_argument(
        "--dpi", dest="base_resolution", type=float, default=None,
        help="Print resolution used to convert pitch into pixels"
    )
    parser.add_argument(
        "--orientation", dest="orientation", default=None,
        choices=["vertical", "horizontal"],
        help="Axis along which strips are cut"
    )
    parser.add_argument(
        "--size-policy", dest="size_policy", default=None,
        choices=["min", "max"],
        help="Clamp to the smallest image or pad to the largest"
    )
    parser.add_argument(
        "--config", "-c", dest="config_path", default=None,
        help="Path to configuration file"
    )

    args = parser.parse_args()

    try:
        config = lenticular_config.load_config(args.config_path)
        config = apply_overrides(config, args)
        result = run_generator(args.images, args.output_path, config)
    except Exception as e:
        logger.exception(f"Error running generator: {e}")
        sys.exit(1)

    if not result.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
