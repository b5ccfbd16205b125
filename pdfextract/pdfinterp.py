import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Union, cast

from pdfextract import settings
from pdfextract.casting import safe_float, safe_matrix, safe_matrix_list
from pdfextract.cmapdb import CMap, CMapBase, CMapDB
from pdfextract.pdfdevice import PDFDevice, PDFTextSeq
from pdfextract.pdfexceptions import PDFException, PDFValueError
from pdfextract.pdffont import (
    PDFCIDFont,
    PDFDefaultFont,
    PDFFont,
    PDFFontError,
    PDFTrueTypeFont,
    PDFType1Font,
    PDFType3Font,
)
from pdfextract.pdfpage import PDFPage
from pdfextract.pdftypes import (
    LITERALS_ASCII85_DECODE,
    PDFObjRef,
    PDFStream,
    dict_value,
    list_value,
    resolve1,
    stream_value,
)
from pdfextract.psexceptions import PSEOF, PSException, PSSyntaxError, PSTypeError
from pdfextract.psparser import (
    KWD,
    LIT,
    PSKeyword,
    PSLiteral,
    PSStackParser,
    PSStackType,
    keyword_name,
    literal_name,
)
from pdfextract.utils import (
    MATRIX_IDENTITY,
    Matrix,
    Point,
    choplist,
    mult_matrix,
    translate_matrix,
)

log = logging.getLogger(__name__)


class PDFInterpreterError(PDFException):
    pass


LITERAL_FONT = LIT("Font")
LITERAL_FORM = LIT("Form")

# Operators without any effect on text extraction, with their number of
# operands.
OPERATOR_ARITY = {
    "w": 1,
    "J": 1,
    "j": 1,
    "M": 1,
    "d": 2,
    "ri": 1,
    "i": 1,
    "gs": 1,
    "m": 2,
    "l": 2,
    "c": 6,
    "v": 4,
    "y": 4,
    "h": 0,
    "re": 4,
    "S": 0,
    "s": 0,
    "f": 0,
    "F": 0,
    "f*": 0,
    "B": 0,
    "B*": 0,
    "b": 0,
    "b*": 0,
    "n": 0,
    "W": 0,
    "W*": 0,
    "CS": 1,
    "cs": 1,
    "G": 1,
    "g": 1,
    "RG": 3,
    "rg": 3,
    "K": 4,
    "k": 4,
    "sh": 1,
    "Tr": 1,
    "MP": 1,
    "DP": 2,
    "BMC": 1,
    "BDC": 2,
    "EMC": 0,
    "d0": 2,
    "d1": 6,
}
# Color operators take one operand per color component.
VARIABLE_ARITY_OPERATORS = {"SC", "SCN", "sc", "scn"}
# T* is do_T_a, ' is do__q and " is do__w
OPERATOR_METHOD_NAMES = str.maketrans({"*": "_a", "'": "_q", '"': "_w"})


class PDFTextState:
    """Text parameters of the graphics state and the current text matrix.

    ``linematrix`` holds the pen position relative to the start of the
    line, in unscaled text space.
    """

    matrix: Matrix
    linematrix: Point

    def __init__(self) -> None:
        self.font: PDFFont | None = None
        self.fontsize: float = 0
        self.charspace: float = 0
        self.wordspace: float = 0
        self.scaling: float = 100
        self.leading: float = 0
        self.rise: float = 0
        self.reset()

    def __repr__(self) -> str:
        return (
            f"<PDFTextState: font={self.font!r}, fontsize={self.fontsize!r}, "
            f"matrix={self.matrix!r}, linematrix={self.linematrix!r}>"
        )

    def copy(self) -> "PDFTextState":
        obj = PDFTextState()
        obj.__dict__.update(self.__dict__)
        return obj

    def reset(self) -> None:
        self.matrix = MATRIX_IDENTITY
        self.linematrix = (0, 0)


class PDFResourceManager:
    """Repository of shared resources.

    ResourceManager facilitates reuse of shared resources
    such as fonts so that large objects are not
    allocated multiple times.
    """

    def __init__(self, caching: bool = True) -> None:
        self.caching = caching
        self._cached_fonts: dict[object, PDFFont] = {}
        self.default_font = PDFDefaultFont()

    def get_cmap(self, cmapname: str, strict: bool = False) -> CMapBase:
        try:
            return CMapDB.get_cmap(cmapname)
        except CMapDB.CMapNotFound:
            if strict:
                raise
            log.warning("CMap %r is not available, using an empty CMap", cmapname)
            return CMap()

    def get_font(self, objid: object, spec: Mapping[str, Any]) -> PDFFont:
        """Returns the font for a font dictionary.

        A font that cannot be built is replaced by the default font.
        """
        if objid and objid in self._cached_fonts:
            return self._cached_fonts[objid]
        log.debug("get_font: create: objid=%r, spec=%r", objid, spec)
        try:
            font = self._create_font(spec)
        except (PSException, KeyError, TypeError, ValueError) as e:
            if settings.STRICT:
                raise
            log.warning("Cannot use font %r, using the default font: %s", objid, e)
            font = self.default_font
        if objid and self.caching:
            self._cached_fonts[objid] = font
        return font

    def _create_font(self, spec: Mapping[str, Any]) -> PDFFont:
        if not spec:
            raise PDFFontError("Font dictionary is missing")
        if settings.STRICT and spec.get("Type") is not LITERAL_FONT:
            raise PDFFontError("Type is not /Font")
        # Create a Font object.
        if "Subtype" in spec:
            subtype = literal_name(resolve1(spec["Subtype"]))
        else:
            if settings.STRICT:
                raise PDFFontError("Font Subtype is not specified.")
            subtype = "Type1"
        if subtype in ("Type1", "MMType1"):
            # Type1 Font
            return PDFType1Font(self, spec)
        elif subtype == "TrueType":
            # TrueType Font
            return PDFTrueTypeFont(self, spec)
        elif subtype == "Type3":
            # Type3 Font
            return PDFType3Font(self, spec)
        elif subtype in ("CIDFontType0", "CIDFontType2"):
            # CID Font
            return PDFCIDFont(self, spec)
        elif subtype == "Type0":
            # Type0 Font
            dfonts = list_value(spec.get("DescendantFonts", []))
            if not dfonts:
                raise PDFFontError("Type0 font has no descendant font")
            subspec = dict_value(dfonts[0]).copy()
            for k in ("Encoding", "ToUnicode"):
                if k in spec:
                    subspec[k] = resolve1(spec[k])
            if "BaseFont" in spec:
                subspec["BaseFont"] = spec["BaseFont"]
            return PDFCIDFont(self, subspec)
        if settings.STRICT:
            raise PDFFontError(f"Invalid Font spec: {spec!r}")
        log.warning("Unknown font subtype %r, reading it as Type1", subtype)
        return PDFType1Font(self, spec)


# The image data ends at the first EI that stands on its own.
INLINE_DATA_END = re.compile(rb"(?:\r\n|[\x00\s])?EI(?=[\x00\s]|\Z)")


def get_content_data(streams: Sequence[object]) -> bytes:
    """Decodes and concatenates the content streams of a page.

    Streams that could not be decoded are left out.
    """
    chunks = []
    for obj in streams:
        strm = stream_value(obj)
        data = strm.get_data()
        if strm.unresolved:
            log.warning("Skipping undecodable content stream %r", strm.objid)
            continue
        chunks.append(data)
    return b"\n".join(chunks)


class PDFContentParser(PSStackParser[Union[PSKeyword, PDFStream]]):
    """Splits the concatenated content streams into operands and operators."""

    def __init__(self, streams: Sequence[object]) -> None:
        super().__init__(get_content_data(streams))

    def flush(self) -> None:
        self.add_results(*self.popall())

    KEYWORD_BI = KWD(b"BI")
    KEYWORD_ID = KWD(b"ID")
    KEYWORD_EI = KWD(b"EI")

    def read_inline_data(self, target: bytes) -> tuple[int, bytes]:
        lexer = self.lexer
        start = lexer.tell()
        # a single white-space character separates ID from the data
        if lexer.data[start : start + 1] in (b" ", b"\n", b"\r", b"\t", b"\x00", b"\x0c"):
            start += 1
        lexer.seek(start)
        if target != b"EI":
            (pos, data) = lexer.get_inline_data(target)
            if pos == -1:
                return (start, lexer.read(start, lexer.end - start))
            return (start, data)
        m = INLINE_DATA_END.search(lexer.data, start)
        if m is None:
            return (start, lexer.read(start, lexer.end - start))
        data = lexer.data[start : m.start()]
        lexer.seek(m.end())
        return (start, data)

    def do_keyword(self, pos: int, token: PSKeyword) -> None:
        if token is self.KEYWORD_BI:
            # inline image within a content stream
            self.start_type(pos, "inline")
        elif token is self.KEYWORD_ID:
            try:
                (_, objs) = self.end_type("inline")
                if len(objs) % 2 != 0:
                    error_msg = f"Invalid dictionary construct: {objs!r}"
                    raise PSTypeError(error_msg)
                d = {literal_name(k): resolve1(v) for (k, v) in choplist(2, objs)}
                eos = b"EI"
                filter = d.get("F", d.get("Filter"))
                if filter is not None:
                    if isinstance(filter, PSLiteral):
                        filter = [filter]
                    if filter and filter[0] in LITERALS_ASCII85_DECODE:
                        eos = b"~>"
                (pos, data) = self.read_inline_data(eos)
                obj = PDFStream(d, data)
                self.push((pos, obj))
                self.push((pos, self.KEYWORD_EI))
            except PSTypeError:
                if settings.STRICT:
                    raise
                log.warning("Invalid inline image at %d, skipped", pos)
        elif token is self.KEYWORD_EI and self.curtype is None and not self.curstack:
            # the EI after ~> terminated data, already pushed
            pass
        else:
            self.push((pos, token))


# Types that may appear on the PDF argument stack.
PDFStackT = PSStackType[PDFStream]


class PDFPageInterpreter:
    """Runs the operators of a page's content streams against a device.

    Operators with a ``do_*`` method are executed with as many operands as
    the method takes; the others are skipped by ``skip_operator``.
    """

    def __init__(self, rsrcmgr: PDFResourceManager, device: PDFDevice) -> None:
        self.rsrcmgr = rsrcmgr
        self.device = device
        # Track stream IDs currently being executed to detect circular references
        self.stream_ids: set[int] = set()
        # Track stream IDs from parent interpreters in the call stack
        self.parent_stream_ids: set[int] = set()
        # Operators already reported as unknown on the current page
        self.unknown_operators: set[str] = set()

    def dup(self) -> "PDFPageInterpreter":
        return self.__class__(self.rsrcmgr, self.device)

    def subinterp(self) -> "PDFPageInterpreter":
        """Create a sub-interpreter for processing nested content streams.

        This is used when invoking Form XObjects to prevent circular references.
        Unlike dup(), this method propagates the stream ID tracking from the
        parent interpreter, allowing detection of circular references across
        nested XObject invocations.
        """
        interp = self.dup()
        interp.parent_stream_ids.update(self.parent_stream_ids)
        interp.parent_stream_ids.update(self.stream_ids)
        interp.unknown_operators = self.unknown_operators
        return interp

    def init_resources(self, resources: dict[object, object]) -> None:
        """Prepare the fonts and XObjects listed in the Resource attribute."""
        self.resources = resources
        self.fontmap: dict[object, PDFFont] = {}
        self.xobjmap: dict[object, object] = {}
        if not resources:
            return

        for k, v in dict_value(resources).items():
            log.debug("Resource: %r: %r", k, v)
            if k == "Font":
                for fontid, spec in dict_value(v).items():
                    objid = None
                    if isinstance(spec, PDFObjRef):
                        objid = spec.objid
                    spec = dict_value(spec)
                    self.fontmap[fontid] = self.rsrcmgr.get_font(objid, spec)
            elif k == "XObject":
                for xobjid, xobjstrm in dict_value(v).items():
                    self.xobjmap[xobjid] = xobjstrm

    def init_state(self, ctm: Matrix) -> None:
        """Initialize the text and graphic states for rendering a page."""
        # gstack: stack for graphical states.
        self.gstack: list[tuple[Matrix, PDFTextState]] = []
        self.ctm = ctm
        self.device.set_ctm(self.ctm)
        self.textstate = PDFTextState()
        # argstack: stack for command arguments.
        self.argstack: list[PDFStackT] = []
        # depth of BX/EX compatibility sections
        self.compat = 0

    def push(self, obj: PDFStackT) -> None:
        self.argstack.append(obj)

    def pop(self, n: int) -> list[PDFStackT]:
        if n == 0:
            return []
        x = self.argstack[-n:]
        self.argstack = self.argstack[:-n]
        return x

    def get_current_state(self) -> tuple[Matrix, PDFTextState]:
        return (self.ctm, self.textstate.copy())

    def set_current_state(self, state: tuple[Matrix, PDFTextState]) -> None:
        (self.ctm, self.textstate) = state
        self.device.set_ctm(self.ctm)

    def _number(self, operand: PDFStackT, operator: str) -> float | None:
        value = safe_float(operand)
        if value is None:
            if settings.STRICT:
                raise PDFValueError(f"Invalid operand {operand!r} for {operator}")
            log.warning("Invalid operand %r for %s, ignored", operand, operator)
        return value

    def do_q(self) -> None:
        self.gstack.append(self.get_current_state())

    def do_Q(self) -> None:
        if self.gstack:
            self.set_current_state(self.gstack.pop())
        else:
            log.debug("Q without matching q, ignored")

    def do_cm(
        self,
        a: PDFStackT,
        b: PDFStackT,
        c: PDFStackT,
        d: PDFStackT,
        e: PDFStackT,
        f: PDFStackT,
    ) -> None:
        """Concatenates a matrix to the current transformation matrix."""
        matrix = safe_matrix(a, b, c, d, e, f)
        if matrix is None:
            log.warning("Invalid operands for cm, ignored: %r", (a, b, c, d, e, f))
            return
        self.ctm = mult_matrix(matrix, self.ctm)
        self.device.set_ctm(self.ctm)

    def do_BT(self) -> None:
        self.textstate.reset()

    def do_ET(self) -> None:
        pass

    def do_BX(self) -> None:
        self.compat += 1

    def do_EX(self) -> None:
        self.compat = max(0, self.compat - 1)

    def do_Tc(self, space: PDFStackT) -> None:
        value = self._number(space, "Tc")
        if value is not None:
            self.textstate.charspace = value

    def do_Tw(self, space: PDFStackT) -> None:
        value = self._number(space, "Tw")
        if value is not None:
            self.textstate.wordspace = value

    def do_Tz(self, scale: PDFStackT) -> None:
        """Horizontal scaling, in percent."""
        value = self._number(scale, "Tz")
        if value is not None:
            self.textstate.scaling = value

    def do_TL(self, leading: PDFStackT) -> None:
        # kept negated: T* moves down by the leading
        value = self._number(leading, "TL")
        if value is not None:
            self.textstate.leading = -value

    def do_Ts(self, rise: PDFStackT) -> None:
        value = self._number(rise, "Ts")
        if value is not None:
            self.textstate.rise = value

    def do_Tf(self, fontid: PDFStackT, fontsize: PDFStackT) -> None:
        try:
            self.textstate.font = self.fontmap[literal_name(fontid)]
        except KeyError as err:
            if settings.STRICT:
                raise PDFInterpreterError(f"Undefined Font id: {fontid!r}") from err
            log.warning("Undefined font %r, using the default font", fontid)
            self.textstate.font = self.rsrcmgr.default_font
        size = self._number(fontsize, "Tf")
        if size is not None:
            self.textstate.fontsize = size

    def _next_line(self, tx: PDFStackT, ty: PDFStackT, operator: str) -> float | None:
        """Moves to the next line, offset by (tx, ty) from the current one.

        Returns ty, or None when the offset is invalid.
        """
        (tx_, ty_) = (safe_float(tx), safe_float(ty))
        self.textstate.linematrix = (0, 0)
        if tx_ is None or ty_ is None:
            if settings.STRICT:
                raise PDFValueError(f"Invalid offset ({tx!r}, {ty!r}) for {operator}")
            log.warning("Invalid offset (%r, %r) for %s, ignored", tx, ty, operator)
            return None
        self.textstate.matrix = translate_matrix(self.textstate.matrix, (tx_, ty_))
        return ty_

    def do_Td(self, tx: PDFStackT, ty: PDFStackT) -> None:
        self._next_line(tx, ty, "Td")

    def do_TD(self, tx: PDFStackT, ty: PDFStackT) -> None:
        """Like Td, and sets the leading to -ty."""
        ty_ = self._next_line(tx, ty, "TD")
        if ty_ is not None:
            self.textstate.leading = ty_

    def do_Tm(
        self,
        a: PDFStackT,
        b: PDFStackT,
        c: PDFStackT,
        d: PDFStackT,
        e: PDFStackT,
        f: PDFStackT,
    ) -> None:
        matrix = safe_matrix(a, b, c, d, e, f)
        if matrix is None:
            log.warning("Invalid operands for Tm, ignored: %r", (a, b, c, d, e, f))
            return
        self.textstate.matrix = matrix
        self.textstate.linematrix = (0, 0)

    def do_T_a(self) -> None:
        self.textstate.matrix = translate_matrix(
            self.textstate.matrix, (0, self.textstate.leading)
        )
        self.textstate.linematrix = (0, 0)

    def do_TJ(self, seq: PDFStackT) -> None:
        if self.textstate.font is None:
            if settings.STRICT:
                raise PDFInterpreterError("No font specified!")
            log.warning("Text shown before any font was selected, using the default font")
            self.textstate.font = self.rsrcmgr.default_font
        if not isinstance(seq, list):
            log.warning("TJ operand %r is not an array, ignored", seq)
            return
        self.device.render_string(self.textstate, cast(PDFTextSeq, seq))

    def do_Tj(self, s: PDFStackT) -> None:
        self.do_TJ([s])

    def do__q(self, s: PDFStackT) -> None:
        """The ' operator: T* then Tj."""
        self.do_T_a()
        self.do_TJ([s])

    def do__w(self, aw: PDFStackT, ac: PDFStackT, s: PDFStackT) -> None:
        """The " operator: Tw, Tc, then '."""
        self.do_Tw(aw)
        self.do_Tc(ac)
        self.do__q(s)

    def do_BI(self) -> None:
        pass

    def do_ID(self) -> None:
        pass

    def do_EI(self, obj: PDFStackT) -> None:
        log.debug("Skipping inline image: %r", obj)

    def do_Do(self, xobjid_arg: PDFStackT) -> None:
        """Runs a form XObject; other XObjects carry no text."""
        xobjid = literal_name(xobjid_arg)
        try:
            xobj = stream_value(self.xobjmap[xobjid])
        except KeyError as err:
            if settings.STRICT:
                raise PDFInterpreterError(f"Undefined xobject id: {xobjid!r}") from err
            log.warning("Undefined XObject %r, ignored", xobjid)
            return
        log.debug("Processing xobj: %r", xobj)
        if xobj.get("Subtype") is not LITERAL_FORM:
            return
        matrix = safe_matrix_list(
            resolve1(v) for v in list_value(xobj.get("Matrix", MATRIX_IDENTITY))
        )
        if matrix is None:
            log.warning("Invalid /Matrix in form %r, using identity", xobjid)
            matrix = MATRIX_IDENTITY
        # forms without /Resources (before PDF 1.2) use the page's resources
        xobjres = xobj.get("Resources")
        resources = dict_value(xobjres) if xobjres else self.resources.copy()
        self.subinterp().render_contents(
            resources,
            [xobj],
            ctm=mult_matrix(matrix, self.ctm),
        )
        # the form may have changed the device's matrix
        self.device.set_ctm(self.ctm)

    def process_page(self, page: PDFPage) -> None:
        log.debug("Processing page: %r", page)
        self.unknown_operators = set()
        (x0, y0, x1, y1) = page.mediabox
        if page.rotate == 90:
            ctm: Matrix = (0, -1, 1, 0, -y0, x1)
        elif page.rotate == 180:
            ctm = (-1, 0, 0, -1, x1, y1)
        elif page.rotate == 270:
            ctm = (0, 1, -1, 0, y1, -x0)
        else:
            ctm = (1, 0, 0, 1, -x0, -y0)
        self.device.begin_page(page, ctm)
        self.render_contents(page.resources, page.contents, ctm=ctm)
        self.device.end_page(page)

    def render_contents(
        self,
        resources: dict[object, object],
        streams: Sequence[object],
        ctm: Matrix = MATRIX_IDENTITY,
    ) -> None:
        """Render the content streams.

        This method may be called recursively.
        """
        log.debug(
            "render_contents: resources=%r, streams=%r, ctm=%r",
            resources,
            streams,
            ctm,
        )
        self.init_resources(resources)
        self.init_state(ctm)
        self.execute(list_value(streams))

    def skip_operator(self, name: str) -> None:
        """Consume the operands of an operator that is not interpreted."""
        if name in OPERATOR_ARITY:
            self.pop(OPERATOR_ARITY[name])
            return
        self.argstack = []
        if name in VARIABLE_ARITY_OPERATORS:
            return
        if settings.STRICT and not self.compat:
            raise PDFInterpreterError(f"Unknown operator: {name!r}")
        if self.compat or name in self.unknown_operators:
            log.debug("Skipping unknown operator %r", name)
        else:
            self.unknown_operators.add(name)
            log.warning("Unknown operator %r, operands discarded", name)

    def execute(self, streams: Sequence[object]) -> None:
        # streams already running further up the call stack are skipped
        valid_streams: list[PDFStream] = []
        self.stream_ids.clear()
        for obj in streams:
            stream = stream_value(obj)
            if stream.objid in self.parent_stream_ids:
                log.warning(
                    "Refusing to execute circular reference to content stream %d",
                    stream.objid,
                )
                continue
            valid_streams.append(stream)
            if stream.objid is not None:
                self.stream_ids.add(stream.objid)
        parser = PDFContentParser(valid_streams)
        while True:
            try:
                (_, obj) = parser.nextobject()
            except PSEOF:
                break
            except PSSyntaxError as e:
                if settings.STRICT:
                    raise
                log.warning("Content stream is malformed, stopped reading it: %s", e)
                break
            if isinstance(obj, PSKeyword):
                name = keyword_name(obj)
                method = "do_" + name.translate(OPERATOR_METHOD_NAMES)
                if hasattr(self, method):
                    func = getattr(self, method)
                    nargs = func.__code__.co_argcount - 1
                    if nargs:
                        args = self.pop(nargs)
                        log.debug("exec: %s %r", name, args)
                        if len(args) == nargs:
                            func(*args)
                        else:
                            log.warning(
                                "Operator %r needs %d operands, got %d; skipped",
                                name,
                                nargs,
                                len(args),
                            )
                    else:
                        log.debug("exec: %s", name)
                        func()
                else:
                    self.skip_operator(name)
            else:
                self.push(obj)
