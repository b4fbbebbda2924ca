"""Headless panorama composition from a capture manifest."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import CompositorConfig, library_dir_from_env
from .errors import PhotosphereError
from .io.compositor import PanoramaCompositor
from .io.loader import load_capture_manifest
from .io.storage import save_panorama
from .logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="photosphere-compose",
        description="Compose an equirectangular panorama from photos listed in a capture manifest.",
    )
    parser.add_argument("manifest", type=Path, help="CSV with filename, alpha, beta, gamma columns")
    parser.add_argument(
        "-o",
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for the panorama and its metadata (default: the panorama library)",
    )
    parser.add_argument("-n", "--name", default=None, help="Panorama name")
    parser.add_argument(
        "--signed-elevation",
        action="store_true",
        help="Map row elevation -90..90 onto the full image height",
    )
    parser.add_argument("--workers", type=int, default=None, help="Parallel photo decoders")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else None)

    config = CompositorConfig(
        max_workers=args.workers,
        elevation_mapping="signed" if args.signed_elevation else "legacy",
    )
    try:
        tracker = load_capture_manifest(args.manifest)
        buffer = PanoramaCompositor(config).compose(
            tracker.snapshot(),
            progress=lambda percent: logger.debug("Composition {}%", percent),
        )
        record = save_panorama(
            buffer,
            args.output_dir or library_dir_from_env(),
            args.name,
            quality=config.jpeg_quality,
        )
    except (PhotosphereError, FileNotFoundError, ValueError, OSError) as exc:
        logger.error("{}", exc)
        return 1

    print(record.path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
