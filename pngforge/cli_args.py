# PNGForge - A PNG Encoder
# Copyright (c) 2025-2026 Scott Bowman
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
CLI argument parsing for PNGForge.

Handles command-line argument definition, mapping of options onto an
EncoderConfig, and output file naming.
"""

from __future__ import annotations

import argparse
import os

from .core.config import EncoderConfig
from .core.constants import (
    DEFAULT_COMPRESSION_LEVEL,
    DEFAULT_IDAT_SIZE,
    MAX_PALETTE_SIZE,
    ColorType,
    FilterMethod,
    InterlaceMode,
)
from .operators.quantize import ExactQuantizer, PillowQuantizer

QUANTIZERS = {
    "pillow": PillowQuantizer,
    "exact": ExactQuantizer,
}


def _choice_names(enum_cls) -> list[str]:
    return [member.name.lower().replace("_", "-") for member in enum_cls]


def _compression_level(text: str) -> int:
    try:
        level = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid compression level: '{text}'")
    if not 0 <= level <= 9:
        raise argparse.ArgumentTypeError(f"compression level must be 0-9, got {level}")
    return level


def get_output_path(outputfile: str | None, inputfile: str) -> str:
    """
    Derive the output path from command-line arguments.

    Args:
        outputfile: The -o argument value (or None)
        inputfile: The input image path

    Returns:
        ``outputfile`` if given, else the input path with a ``.png``
        extension (``-pngforge.png`` when the input already is a PNG).
    """
    if outputfile:
        return outputfile
    base, ext = os.path.splitext(inputfile)
    if ext.lower() == ".png":
        return f"{base}-pngforge.png"
    return f"{base}.png"


def _get_version() -> str:
    from . import __version__
    return __version__


def build_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the PNGForge argument parser.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="pngforge",
        description="PNGForge - PNG Encoder",
        epilog="Reads any image format Pillow can open and writes it as PNG.",
    )

    parser.add_argument(
        "-V", "--version", action="version",
        version=f"PNGForge {_get_version()}"
    )
    parser.add_argument("inputfile", nargs="?", help="Image file to encode")
    parser.add_argument(
        "-o", "--output", dest="outputfile", help="Specify output filename"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose (debug) logging"
    )
    parser.add_argument(
        "--info", metavar="PNGFILE",
        help="List the chunks of an existing PNG file and exit"
    )

    parser.add_argument(
        "-c", "--color-type",
        choices=_choice_names(ColorType),
        help="Output color type (default: same as the input image)"
    )
    parser.add_argument(
        "-b", "--bit-depth", type=int, choices=[1, 2, 4, 8, 16],
        help="Bits per sample (default: 16 for 16-bit input, else 8)"
    )
    parser.add_argument(
        "-f", "--filter",
        choices=_choice_names(FilterMethod), default="adaptive",
        help="Scanline filter (default: adaptive)"
    )
    parser.add_argument(
        "-l", "--level", type=_compression_level, default=DEFAULT_COMPRESSION_LEVEL,
        help=f"zlib compression level 0-9 (default: {DEFAULT_COMPRESSION_LEVEL})"
    )
    parser.add_argument(
        "-i", "--interlace",
        choices=_choice_names(InterlaceMode), default="none",
        help="Interlace method (default: none)"
    )

    # Palette options
    parser.add_argument(
        "-p", "--palette-size", type=int, default=MAX_PALETTE_SIZE,
        help=f"Palette entries for --color-type palette (default: {MAX_PALETTE_SIZE})"
    )
    parser.add_argument(
        "-q", "--quantizer", choices=sorted(QUANTIZERS), default="pillow",
        help="Palette quantizer (default: pillow)"
    )
    parser.add_argument(
        "--dither", action="store_true",
        help="Dither when the pillow quantizer has to drop colors"
    )

    parser.add_argument(
        "--idat-size", type=int, default=DEFAULT_IDAT_SIZE,
        help=f"Maximum bytes per IDAT chunk (default: {DEFAULT_IDAT_SIZE})"
    )
    parser.add_argument(
        "--no-phys", action="store_true", help="Do not write resolution (pHYs)"
    )
    parser.add_argument(
        "--no-gamma", action="store_true", help="Do not write gamma (gAMA)"
    )
    parser.add_argument(
        "--no-text", action="store_true", help="Do not write text (tEXt) chunks"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> EncoderConfig:
    """Build the EncoderConfig described by parsed arguments.

    Raises:
        ConfigurationError: the options form an illegal combination.
    """
    if args.quantizer == "pillow":
        quantizer = PillowQuantizer(dither=args.dither)
    else:
        quantizer = QUANTIZERS[args.quantizer]()

    return EncoderConfig(
        color_type=args.color_type,
        bit_depth=args.bit_depth,
        filter_method=args.filter,
        compression_level=args.level,
        interlace_mode=args.interlace,
        quantizer=quantizer,
        palette_size=args.palette_size,
        idat_size=args.idat_size,
        write_physical=not args.no_phys,
        write_gamma=not args.no_gamma,
        write_text=not args.no_text,
    )
