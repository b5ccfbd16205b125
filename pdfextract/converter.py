import io
import logging
import math
from collections.abc import Iterable
from typing import BinaryIO, NamedTuple, TextIO, Union, cast

from pdfextract.pdfdevice import PDFTextDevice
from pdfextract.pdffont import PDFFont, PDFUnicodeNotDefined
from pdfextract.pdfinterp import PDFResourceManager
from pdfextract.pdfpage import PDFPage
from pdfextract.utils import Matrix, apply_matrix_norm, apply_matrix_pt

log = logging.getLogger(__name__)

AnyIO = Union[TextIO, BinaryIO]

# Baselines further apart than this fraction of the font size start a new line.
LINE_MARGIN = 0.5
# Gaps wider than this fraction of the space width separate words.
WORD_MARGIN = 0.5


class CharRecord(NamedTuple):
    """One glyph shown on a page, in device space."""

    char: str
    x: float
    y: float
    fontname: str
    size: float
    adv: float
    spacewidth: float
    cid: int
    gid: int | None = None


class CharRecorder(PDFTextDevice):
    """Collects a CharRecord for every glyph of the current page."""

    def __init__(self, rsrcmgr: PDFResourceManager) -> None:
        PDFTextDevice.__init__(self, rsrcmgr)
        self.pageno = 0
        self.records: list[CharRecord] = []

    def begin_page(self, page: PDFPage, ctm: Matrix) -> None:
        self.records = []

    def end_page(self, page: PDFPage) -> None:
        self.pageno += 1

    def render_char(
        self,
        matrix: Matrix,
        font: PDFFont,
        fontsize: float,
        scaling: float,
        rise: float,
        cid: int,
    ) -> float:
        try:
            text = font.to_unichr(cid)
            assert isinstance(text, str), str(type(text))
        except PDFUnicodeNotDefined:
            text = self.handle_undefined_char(font, cid)
        adv = font.char_width(cid) * fontsize * scaling
        (ox, oy) = (0.0, rise)
        disp = font.char_disp(cid)
        if isinstance(disp, tuple):
            # vertical writing: the pen is at the glyph's vertical origin
            (dispx, dispy) = disp
            ox -= fontsize * 0.5 if dispx is None else dispx * fontsize * 0.001
            oy -= dispy * fontsize * 0.001
        (x, y) = apply_matrix_pt(matrix, (ox, oy))
        (dx, _) = apply_matrix_norm(matrix, (adv, 0))
        (sx, _) = apply_matrix_norm(matrix, (font.get_space_width() * fontsize * scaling, 0))
        (vx, vy) = apply_matrix_norm(matrix, (0, fontsize))
        self.records.append(
            CharRecord(
                char=text,
                x=x,
                y=y,
                fontname=str(font.fontname),
                size=math.hypot(vx, vy),
                adv=dx,
                spacewidth=abs(sx),
                cid=cid,
                gid=font.to_gid(cid),
            )
        )
        return adv

    def handle_undefined_char(self, font: PDFFont, cid: int) -> str:
        log.debug(f"undefined: {font!r}, {cid!r}")
        return f"(cid:{cid})"


def records_to_text(records: Iterable[CharRecord]) -> str:
    """Joins the characters of a page in content order.

    A new line starts where the baseline moves by more than half the font
    size; a space is put where the gap to the previous glyph is wider than
    half a space.
    """
    parts: list[str] = []
    prev: CharRecord | None = None
    for rec in records:
        if prev is not None:
            if abs(rec.y - prev.y) > max(prev.size, rec.size) * LINE_MARGIN:
                parts.append("\n")
            elif not prev.char.isspace() and not rec.char.isspace():
                gap = rec.x - (prev.x + prev.adv)
                if gap > prev.spacewidth * WORD_MARGIN:
                    parts.append(" ")
        parts.append(rec.char)
        prev = rec
    text = "".join(parts)
    if text and not text.endswith("\n"):
        text += "\n"
    return text


class TextConverter(CharRecorder):
    """Writes the plain text of each page, followed by a form feed."""

    def __init__(
        self,
        rsrcmgr: PDFResourceManager,
        outfp: AnyIO,
        codec: str = "utf-8",
    ) -> None:
        super().__init__(rsrcmgr)
        self.outfp = outfp
        self.codec = codec
        self.outfp_binary = self._is_binary_stream(self.outfp)

    @staticmethod
    def _is_binary_stream(outfp: AnyIO) -> bool:
        """Test if an stream is binary or not"""
        if "b" in getattr(outfp, "mode", ""):
            return True
        elif hasattr(outfp, "mode"):
            # output stream has a mode, but it does not contain 'b'
            return False
        elif isinstance(outfp, io.BytesIO):
            return True
        elif isinstance(outfp, (io.StringIO, io.TextIOBase)):
            return False

        return True

    def write_text(self, text: str) -> None:
        if self.outfp_binary:
            cast(BinaryIO, self.outfp).write(text.encode(self.codec, "ignore"))
        else:
            cast(TextIO, self.outfp).write(text)

    def end_page(self, page: PDFPage) -> None:
        super().end_page(page)
        self.write_text(records_to_text(self.records))
        self.write_text("\f")
