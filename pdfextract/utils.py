"""Miscellaneous Routines."""

import io
import pathlib
import re
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any, BinaryIO, TypeVar, Union, cast

import charset_normalizer  # For str encoding detection

from pdfextract.pdfexceptions import PDFTypeError, PDFValueError

FileOrName = Union[pathlib.PurePath, str, io.IOBase]


class open_filename:
    """Context manager that allows opening a filename
    (str or pathlib.PurePath type is supported) and closes it on exit,
    (just like `open`), but does nothing for file-like objects.
    """

    def __init__(self, filename: FileOrName, *args: Any, **kwargs: Any) -> None:
        if isinstance(filename, pathlib.PurePath):
            filename = str(filename)
        if isinstance(filename, str):
            self.file_handler: BinaryIO = open(filename, *args, **kwargs)  # noqa: SIM115
            self.closing = True
        elif isinstance(filename, io.IOBase):
            self.file_handler = cast(BinaryIO, filename)
            self.closing = False
        else:
            raise PDFTypeError(f"Unsupported input type: {type(filename)}")

    def __enter__(self) -> BinaryIO:
        return self.file_handler

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if self.closing:
            self.file_handler.close()


def make_compat_str(o: object) -> str:
    """Converts everything to string, if bytes guessing the encoding."""
    if isinstance(o, bytes):
        try:
            return o.decode("utf-8")
        except UnicodeDecodeError:
            pass
        enc = charset_normalizer.detect(o)
        if enc["encoding"] is None:
            return o.decode("latin-1")
        try:
            return o.decode(enc["encoding"])
        except (UnicodeDecodeError, LookupError):
            return o.decode("latin-1")
    else:
        return str(o)


def paeth_predictor(left: int, above: int, upper_left: int) -> int:
    # From http://www.libpng.org/pub/png/spec/1.2/PNG-Filters.html
    p = left + above - upper_left
    pa = abs(p - left)
    pb = abs(p - above)
    pc = abs(p - upper_left)
    if pa <= pb and pa <= pc:
        return left
    elif pb <= pc:
        return above
    else:
        return upper_left


def apply_tiff_predictor(
    colors: int, columns: int, bitspercomponent: int, data: bytes
) -> bytes:
    """Reverse the effect of TIFF predictor 2 (horizontal differencing).

    Only 8 bits per component is supported.
    """
    if bitspercomponent != 8:
        raise PDFValueError(f"Unsupported `bitspercomponent': {bitspercomponent}")
    rowlen = colors * columns
    buf = bytearray(data)
    for start in range(0, len(buf), rowlen):
        end = min(start + rowlen, len(buf))
        for i in range(start + colors, end):
            buf[i] = (buf[i] + buf[i - colors]) & 255
    return bytes(buf)


def apply_png_predictor(
    pred: int,
    colors: int,
    columns: int,
    bitspercomponent: int,
    data: bytes,
) -> bytes:
    """Reverse the effect of the PNG predictors (10 to 15).

    Every row starts with its own filter-type byte, so ``pred`` only tells
    us that PNG prediction is in use.

    Documentation: http://www.libpng.org/pub/png/spec/1.2/PNG-Filters.html
    """
    if bitspercomponent not in (1, 2, 4, 8, 16):
        raise PDFValueError(f"Unsupported `bitspercomponent': {bitspercomponent}")

    rowlen = (colors * columns * bitspercomponent + 7) // 8
    # distance to the corresponding byte of the previous pixel
    bpp = max(1, (colors * bitspercomponent + 7) // 8)
    out = bytearray()
    prior = bytearray(rowlen)
    for start in range(0, len(data), rowlen + 1):
        filter_type = data[start]
        row = bytearray(data[start + 1 : start + 1 + rowlen])
        if len(row) < rowlen:
            row.extend(bytes(rowlen - len(row)))

        if filter_type == 0:
            # None
            pass
        elif filter_type == 1:
            # Sub: Raw(x) = Sub(x) + Raw(x - bpp)
            for i in range(bpp, rowlen):
                row[i] = (row[i] + row[i - bpp]) & 255
        elif filter_type == 2:
            # Up: Raw(x) = Up(x) + Prior(x)
            for i in range(rowlen):
                row[i] = (row[i] + prior[i]) & 255
        elif filter_type == 3:
            # Average: Raw(x) = Average(x) + floor((Raw(x-bpp) + Prior(x)) / 2)
            for i in range(rowlen):
                left = row[i - bpp] if i >= bpp else 0
                row[i] = (row[i] + (left + prior[i]) // 2) & 255
        elif filter_type == 4:
            # Paeth
            for i in range(rowlen):
                if i >= bpp:
                    left = row[i - bpp]
                    upper_left = prior[i - bpp]
                else:
                    left = upper_left = 0
                row[i] = (row[i] + paeth_predictor(left, prior[i], upper_left)) & 255
        else:
            raise PDFValueError(f"Unsupported predictor value: {filter_type}")

        out.extend(row)
        prior = row
    return bytes(out)


Point = tuple[float, float]
Rect = tuple[float, float, float, float]
Matrix = tuple[float, float, float, float, float, float]

#  Matrix operations
MATRIX_IDENTITY: Matrix = (1, 0, 0, 1, 0, 0)


def parse_rect(o: Any) -> Rect:
    try:
        (x0, y0, x1, y1) = o
        return float(x0), float(y0), float(x1), float(y1)
    except (ValueError, TypeError) as err:
        raise PDFValueError("Could not parse rectangle") from err


def mult_matrix(m1: Matrix, m0: Matrix) -> Matrix:
    """Returns the multiplication of two matrices."""
    (a1, b1, c1, d1, e1, f1) = m1
    (a0, b0, c0, d0, e0, f0) = m0
    return (
        a0 * a1 + c0 * b1,
        b0 * a1 + d0 * b1,
        a0 * c1 + c0 * d1,
        b0 * c1 + d0 * d1,
        a0 * e1 + c0 * f1 + e0,
        b0 * e1 + d0 * f1 + f0,
    )


def translate_matrix(m: Matrix, v: Point) -> Matrix:
    """Translates a matrix by (x, y) inside the projection.

    The matrix is changed so that its origin is at the specified point in its own
    coordinate system. Note that this is different from translating it within the
    original coordinate system."""
    (a, b, c, d, e, f) = m
    (x, y) = v
    return a, b, c, d, x * a + y * c + e, x * b + y * d + f


def apply_matrix_pt(m: Matrix, v: Point) -> Point:
    """Applies a matrix to a point."""
    (a, b, c, d, e, f) = m
    (x, y) = v
    return a * x + c * y + e, b * x + d * y + f


def apply_matrix_norm(m: Matrix, v: Point) -> Point:
    """Equivalent to apply_matrix_pt(M, (p,q)) - apply_matrix_pt(M, (0,0))"""
    (a, b, c, d, _e, _f) = m
    (p, q) = v
    return a * p + c * q, b * p + d * q


#  Utility functions


def isnumber(x: object) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool)


_T = TypeVar("_T")


def choplist(n: int, seq: Iterable[_T]) -> Iterator[tuple[_T, ...]]:
    """Groups every n elements of the list."""
    r = []
    for x in seq:
        r.append(x)
        if len(r) == n:
            yield tuple(r)
            r = []


def nunpack(s: bytes, default: int = 0) -> int:
    """Unpacks variable-length unsigned integers (big endian)."""
    if not s:
        return default
    return int.from_bytes(s, byteorder="big", signed=False)


# PDFDocEncoding is Latin-1 except for these code points (PDF 1.7, Annex D).
_PDFDOC_OVERRIDES = {
    0x18: "˘",
    0x19: "ˇ",
    0x1A: "ˆ",
    0x1B: "˙",
    0x1C: "˝",
    0x1D: "˛",
    0x1E: "˚",
    0x1F: "˜",
    0x7F: "�",
    0x80: "•",
    0x81: "†",
    0x82: "‡",
    0x83: "…",
    0x84: "—",
    0x85: "–",
    0x86: "ƒ",
    0x87: "⁄",
    0x88: "‹",
    0x89: "›",
    0x8A: "−",
    0x8B: "‰",
    0x8C: "„",
    0x8D: "“",
    0x8E: "”",
    0x8F: "‘",
    0x90: "’",
    0x91: "‚",
    0x92: "™",
    0x93: "ﬁ",
    0x94: "ﬂ",
    0x95: "Ł",
    0x96: "Œ",
    0x97: "Š",
    0x98: "Ÿ",
    0x99: "Ž",
    0x9A: "ı",
    0x9B: "ł",
    0x9C: "œ",
    0x9D: "š",
    0x9E: "ž",
    0x9F: "�",
    0xA0: "€",
    0xAD: "�",
}
PDFDocEncoding = "".join(_PDFDOC_OVERRIDES.get(i, chr(i)) for i in range(256))


def decode_text(s: bytes) -> str:
    """Decodes a PDF text string (PDFDocEncoding or UTF-16BE with BOM)."""
    if s.startswith(b"\xfe\xff"):
        return str(s[2:], "utf-16be", "ignore")
    elif s.startswith(b"\xef\xbb\xbf"):
        return str(s[3:], "utf-8", "ignore")
    else:
        return "".join(PDFDocEncoding[c] for c in s)


PDF_DATE = re.compile(
    r"""^(?:D:)?
    (?P<year>\d{4})(?P<month>\d{2})?(?P<day>\d{2})?
    (?P<hour>\d{2})?(?P<minute>\d{2})?(?P<second>\d{2})?
    (?P<tz>[Zz]|[+-]\d{2}(?:'?\d{2})?)?'?\s*$""",
    re.VERBOSE,
)


def parse_pdf_date(s: str) -> datetime | None:
    """Parses a PDF date string such as ``D:20230102150405+01'00'``.

    Returns None when the string does not look like a PDF date.
    """
    m = PDF_DATE.match(s.strip())
    if m is None:
        return None
    tz: timezone | None = None
    tzs = m["tz"]
    try:
        if tzs in ("Z", "z"):
            tz = timezone.utc
        elif tzs:
            sign = -1 if tzs[0] == "-" else 1
            digits = tzs[1:].replace("'", "")
            offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:4] or 0))
            # out-of-range offsets raise ValueError
            tz = timezone(sign * offset)
        return datetime(
            int(m["year"]),
            int(m["month"] or 1),
            int(m["day"] or 1),
            int(m["hour"] or 0),
            int(m["minute"] or 0),
            int(m["second"] or 0),
            tzinfo=tz,
        )
    except ValueError:
        return None
