#!/usr/bin/env python3
"""Extracts the text, the glyph positions, the raw page content or the
fonts of PDF files."""

import argparse
import logging
import sys
from collections.abc import Container, Iterable
from typing import Any, BinaryIO

import pdfextract
from pdfextract import settings
from pdfextract.high_level import (
    INFO_KEYS,
    extract_fonts,
    extract_raw_content,
    extract_text_to_fp,
    get_info,
    iter_chars,
)
from pdfextract.psexceptions import PSException

logging.basicConfig()

log = logging.getLogger(__name__)

OUTPUT_MODES = ("text", "chars", "raw-content", "font", "info")


def write_chars(
    fname: str,
    outfp: BinaryIO,
    codec: str,
    page_numbers: Container[int] | None,
    maxpages: int,
    caching: bool,
) -> None:
    for pageno, rec in iter_chars(fname, page_numbers, maxpages, caching):
        line = f"{pageno + 1}\t{rec.char}\t{rec.x:.3f}\t{rec.y:.3f}\t{rec.fontname}\t{rec.size:.3f}\n"
        outfp.write(line.encode(codec, "replace"))


def write_raw_content(
    fname: str,
    outfp: BinaryIO,
    page_numbers: Container[int] | None,
    maxpages: int,
    caching: bool,
) -> None:
    for _, data in extract_raw_content(fname, page_numbers, maxpages, caching):
        outfp.write(data)


def write_fonts(
    fname: str,
    outfp: BinaryIO,
    codec: str,
    page_numbers: Container[int] | None,
    maxpages: int,
    caching: bool,
) -> None:
    for info in extract_fonts(fname, page_numbers, maxpages, caching):
        if info.width_range is None:
            widths = "-"
        else:
            widths = "{}-{}".format(*info.width_range)
        fields = (
            str(info.pageno + 1),
            info.resource,
            info.subtype,
            info.basefont,
            info.encoding,
            widths,
            "ToUnicode" if info.tounicode else "-",
        )
        outfp.write(("\t".join(fields) + "\n").encode(codec, "replace"))


def write_info(fname: str, outfp: BinaryIO, codec: str) -> None:
    info = get_info(fname)
    keys = ["Version"]
    keys += [k for k in INFO_KEYS if k in info]
    keys += sorted(k for k in info if k not in keys)
    for key in keys:
        outfp.write(f"{key}: {info[key]}\n".encode(codec, "replace"))


def process_files(
    files: Iterable[str],
    outfp: BinaryIO,
    mode: str = "text",
    codec: str = "utf-8",
    page_numbers: Container[int] | None = None,
    maxpages: int = 0,
    caching: bool = True,
) -> None:
    for fname in files:
        if mode == "chars":
            write_chars(fname, outfp, codec, page_numbers, maxpages, caching)
        elif mode == "raw-content":
            write_raw_content(fname, outfp, page_numbers, maxpages, caching)
        elif mode == "font":
            write_fonts(fname, outfp, codec, page_numbers, maxpages, caching)
        elif mode == "info":
            write_info(fname, outfp, codec)
        else:
            extract_text_to_fp(
                fname,
                outfp,
                page_numbers=page_numbers,
                maxpages=maxpages,
                caching=caching,
                codec=codec,
            )


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, add_help=True)
    parser.add_argument(
        "files",
        type=str,
        default=None,
        nargs="+",
        help="One or more paths to PDF files.",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"pdfextract v{pdfextract.__version__}",
    )
    parser.add_argument(
        "--debug",
        "-d",
        default=False,
        action="store_true",
        help="Use debug logging level.",
    )
    parser.add_argument(
        "--strict",
        default=False,
        action="store_true",
        help="Stop at the first malformed construct instead of working around it.",
    )
    parser.add_argument(
        "--disable-caching",
        "-C",
        default=False,
        action="store_true",
        help="If caching or resources, such as fonts, should be disabled.",
    )

    mode = parser.add_argument_group(
        "Output mode",
        description="What to extract; plain text when no mode is given.",
    ).add_mutually_exclusive_group()
    mode.add_argument(
        "--chars",
        dest="mode",
        action="store_const",
        const="chars",
        help="One tab separated line per glyph: page, character, x, y, "
        "font name and font size.",
    )
    mode.add_argument(
        "--raw-content",
        dest="mode",
        action="store_const",
        const="raw-content",
        help="The decoded content streams of each page, unchanged.",
    )
    mode.add_argument(
        "--font",
        dest="mode",
        action="store_const",
        const="font",
        help="The fonts used by each page.",
    )
    mode.add_argument(
        "--info",
        dest="mode",
        action="store_const",
        const="info",
        help="The PDF version and the document information dictionary.",
    )

    parse_params = parser.add_argument_group(
        "Parser",
        description="Used during PDF parsing",
    )
    parse_params.add_argument(
        "--page-numbers",
        type=int,
        default=None,
        nargs="+",
        help="A space-seperated list of page numbers to parse.",
    )
    parse_params.add_argument(
        "--pagenos",
        "-p",
        type=str,
        help="A comma-separated list of page numbers to parse. "
        "Included for legacy applications, use --page-numbers "
        "for more idiomatic argument entry.",
    )
    parse_params.add_argument(
        "--maxpages",
        "-m",
        type=int,
        default=0,
        help="The maximum number of pages to parse.",
    )

    output_params = parser.add_argument_group(
        "Output",
        description="Used during output generation.",
    )
    output_params.add_argument(
        "--outfile",
        "-o",
        type=str,
        default="-",
        help='Path to file where output is written. Or "-" (default) to '
        "write to stdout.",
    )
    output_params.add_argument(
        "--codec",
        "-c",
        type=str,
        default="utf-8",
        help="Text encoding to use in output file.",
    )
    return parser


def parse_args(args: list[str] | None) -> argparse.Namespace:
    parsed_args = create_parser().parse_args(args=args)

    # Propagate parsed page numbers to the zero-based representation
    if parsed_args.page_numbers:
        parsed_args.page_numbers = {x - 1 for x in parsed_args.page_numbers}

    if parsed_args.pagenos:
        parsed_args.page_numbers = {int(x) - 1 for x in parsed_args.pagenos.split(",")}

    if parsed_args.mode is None:
        parsed_args.mode = "text"

    return parsed_args


def main(args: list[str] | None = None) -> int:
    parsed_args = parse_args(args)
    if parsed_args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
    settings.STRICT = parsed_args.strict

    kwargs: dict[str, Any] = {
        "mode": parsed_args.mode,
        "codec": parsed_args.codec,
        "page_numbers": parsed_args.page_numbers,
        "maxpages": parsed_args.maxpages,
        "caching": not parsed_args.disable_caching,
    }
    try:
        if parsed_args.outfile == "-":
            process_files(parsed_args.files, sys.stdout.buffer, **kwargs)
            sys.stdout.buffer.flush()
        else:
            with open(parsed_args.outfile, "wb") as outfp:
                process_files(parsed_args.files, outfp, **kwargs)
    except (PSException, OSError) as e:
        log.error("%s: %s", type(e).__name__, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
