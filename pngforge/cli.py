# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
PNGForge command line entry point.

    pngforge photo.jpg -o photo.png --color-type palette --palette-size 64
    pngforge scan.tif --color-type grayscale --bit-depth 4 --interlace adam7
    pngforge --info photo.png
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from .cli_args import build_argument_parser, config_from_args, get_output_path
from .core.chunks import iter_chunks
from .core.error import PNGForgeError
from .core.image import SourceImage
from .encoder import PngEncoder

logger = logging.getLogger(__name__)


def print_chunk_info(path: str) -> None:
    """Print type, length and CRC of every chunk in a PNG file."""
    data = Path(path).read_bytes()
    print(f"{path}: {len(data)} bytes")
    for chunk in iter_chunks(data):
        print(f"  {chunk.type.decode('ascii')}  length={len(chunk.data):<8d} crc=0x{chunk.crc:08X}")


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the PNGForge encoder.

    Returns:
        Exit code: 0 for success, 1 for error
    """
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.info:
            print_chunk_info(args.info)
            return 0

        if not args.inputfile:
            parser.print_usage()
            print("PNGForge Error: an input file is required (or use --info)")
            return 1

        config = config_from_args(args)
        image = SourceImage.open(args.inputfile)
        output = get_output_path(args.outputfile, args.inputfile)

        written = PngEncoder(config).save(image, output)
        logger.info("Wrote %s (%d bytes)", output, written)
        return 0

    except (PNGForgeError, OSError) as e:
        print(f"PNGForge Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
