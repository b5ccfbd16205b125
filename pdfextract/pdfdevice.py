from collections.abc import Iterable
from types import TracebackType
from typing import TYPE_CHECKING, Union

from pdfextract import utils
from pdfextract.pdffont import PDFFont
from pdfextract.utils import Matrix, Point

if TYPE_CHECKING:
    from pdfextract.pdfinterp import PDFResourceManager, PDFTextState
    from pdfextract.pdfpage import PDFPage


PDFTextSeq = Iterable[Union[int, float, bytes]]


class PDFDevice:
    """Translate the output of PDFPageInterpreter to the output that is needed"""

    def __init__(self, rsrcmgr: "PDFResourceManager") -> None:
        self.rsrcmgr = rsrcmgr
        self.ctm: Matrix | None = None

    def __repr__(self) -> str:
        return "<PDFDevice>"

    def __enter__(self) -> "PDFDevice":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        pass

    def set_ctm(self, ctm: Matrix) -> None:
        self.ctm = ctm

    def begin_page(self, page: "PDFPage", ctm: Matrix) -> None:
        pass

    def end_page(self, page: "PDFPage") -> None:
        pass

    def render_string(self, textstate: "PDFTextState", seq: PDFTextSeq) -> None:
        pass


class PDFTextDevice(PDFDevice):
    """Positions every glyph of a text-showing operator.

    The position within the current line is kept in
    ``textstate.linematrix``, an offset in unscaled text space that the
    positioning operators reset.
    """

    def render_string(self, textstate: "PDFTextState", seq: PDFTextSeq) -> None:
        assert self.ctm is not None
        matrix = utils.mult_matrix(textstate.matrix, self.ctm)
        font = textstate.font
        fontsize = textstate.fontsize
        scaling = textstate.scaling * 0.01
        charspace = textstate.charspace * scaling
        wordspace = textstate.wordspace * scaling
        rise = textstate.rise
        assert font is not None
        if font.is_multibyte():
            wordspace = 0
        dxscale = 0.001 * fontsize * scaling
        if font.is_vertical():
            textstate.linematrix = self.render_string_vertical(
                seq,
                matrix,
                textstate.linematrix,
                font,
                fontsize,
                scaling,
                charspace,
                wordspace,
                rise,
                dxscale,
            )
        else:
            textstate.linematrix = self.render_string_horizontal(
                seq,
                matrix,
                textstate.linematrix,
                font,
                fontsize,
                scaling,
                charspace,
                wordspace,
                rise,
                dxscale,
            )

    def render_string_horizontal(
        self,
        seq: PDFTextSeq,
        matrix: Matrix,
        pos: Point,
        font: PDFFont,
        fontsize: float,
        scaling: float,
        charspace: float,
        wordspace: float,
        rise: float,
        dxscale: float,
    ) -> Point:
        (x, y) = pos
        for obj in seq:
            if utils.isnumber(obj):
                x -= obj * dxscale
            elif isinstance(obj, bytes):
                for cid in font.decode(obj):
                    x += self.render_char(
                        utils.translate_matrix(matrix, (x, y)),
                        font,
                        fontsize,
                        scaling,
                        rise,
                        cid,
                    )
                    x += charspace
                    if cid == 32 and wordspace:
                        x += wordspace
        return (x, y)

    def render_string_vertical(
        self,
        seq: PDFTextSeq,
        matrix: Matrix,
        pos: Point,
        font: PDFFont,
        fontsize: float,
        scaling: float,
        charspace: float,
        wordspace: float,
        rise: float,
        dxscale: float,
    ) -> Point:
        (x, y) = pos
        for obj in seq:
            if utils.isnumber(obj):
                y -= obj * dxscale
            elif isinstance(obj, bytes):
                for cid in font.decode(obj):
                    y += self.render_char(
                        utils.translate_matrix(matrix, (x, y)),
                        font,
                        fontsize,
                        scaling,
                        rise,
                        cid,
                    )
                    y += charspace
                    if cid == 32 and wordspace:
                        y += wordspace
        return (x, y)

    def render_char(
        self,
        matrix: Matrix,
        font: PDFFont,
        fontsize: float,
        scaling: float,
        rise: float,
        cid: int,
    ) -> float:
        return 0
