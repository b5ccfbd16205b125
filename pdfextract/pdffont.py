import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any, cast

from pdfextract import settings
from pdfextract.cmapdb import (
    CMapBase,
    CMapDB,
    CMapParser,
    FileCMap,
    FileUnicodeMap,
    UnicodeMap,
)
from pdfextract.encodingdb import EncodingDB
from pdfextract.pdfexceptions import PDFException
from pdfextract.pdftypes import (
    PDFStream,
    dict_value,
    int_value,
    list_value,
    num_value,
    resolve1,
)
from pdfextract.psparser import LIT, PSLiteral, literal_name
from pdfextract.utils import (
    Matrix,
    Point,
    apply_matrix_norm,
    choplist,
    isnumber,
    make_compat_str,
    nunpack,
)

if TYPE_CHECKING:
    from pdfextract.pdfinterp import PDFResourceManager

log = logging.getLogger(__name__)

LITERAL_STANDARD_ENCODING = LIT("StandardEncoding")
LITERAL_IDENTITY = LIT("Identity")

# Widths are in thousandths of a text space unit.
DEFAULT_SIMPLE_WIDTH = 500
DEFAULT_CID_WIDTH = 1000
DEFAULT_SPACE_WIDTH = 200


class PDFFontError(PDFException):
    pass


class PDFUnicodeNotDefined(PDFFontError):
    pass


def get_widths(seq: Iterable[object]) -> dict[int, float]:
    """Build a mapping of character widths for horizontal writing.

    ``seq`` is a /W array: ``c [w1 w2 ...]`` or ``cfirst clast w``.
    """
    widths: dict[int, float] = {}
    r: list[float] = []
    for v in seq:
        v = resolve1(v)
        if isinstance(v, list):
            if r:
                char1 = int(r[-1])
                for i, w in enumerate(v):
                    w = resolve1(w)
                    if isnumber(w):
                        widths[char1 + i] = w
                r = []
        elif isnumber(v):
            r.append(cast(float, v))
            if len(r) == 3:
                (char1, char2, w) = r
                for i in range(int(char1), int(char2) + 1):
                    widths[i] = w
                r = []
    return widths


def get_widths2(seq: Iterable[object]) -> dict[int, tuple[float, Point]]:
    """Build a mapping of character widths for vertical writing (/W2)."""
    widths: dict[int, tuple[float, Point]] = {}
    r: list[float] = []
    for v in seq:
        v = resolve1(v)
        if isinstance(v, list):
            if r:
                char1 = int(r[-1])
                for i, (w, vx, vy) in enumerate(choplist(3, v)):
                    widths[char1 + i] = (w, (vx, vy))
                r = []
        elif isnumber(v):
            r.append(cast(float, v))
            if len(r) == 5:
                (char1, char2, w, vx, vy) = r
                for i in range(int(char1), int(char2) + 1):
                    widths[i] = (w, (vx, vy))
                r = []
    return widths


def load_unicode_map(spec: Mapping[str, Any]) -> UnicodeMap | None:
    """Parse the /ToUnicode stream of a font, if there is one."""
    if "ToUnicode" not in spec:
        return None
    strm = resolve1(spec["ToUnicode"])
    if not isinstance(strm, PDFStream):
        log.debug("Ignoring non-stream ToUnicode: %r", strm)
        return None
    unicode_map = FileUnicodeMap()
    CMapParser(unicode_map, strm.get_data()).run()
    return unicode_map


class PDFFont:
    """Code to (width, character) lookups for one font resource.

    Widths are kept in glyph space (thousandths of an em for all but
    Type3 fonts); ``char_width`` returns them scaled to text space.
    """

    subtype = "Unknown"
    basefont = "unknown"
    encoding_name = "unknown"
    unicode_map: UnicodeMap | None = None

    def __init__(
        self,
        descriptor: Mapping[str, Any],
        widths: dict[int, float],
        default_width: float | None = None,
    ) -> None:
        self.descriptor = descriptor
        self.widths = widths
        self.fontname = resolve1(descriptor.get("FontName", "unknown"))
        if isinstance(self.fontname, PSLiteral):
            self.fontname = literal_name(self.fontname)
        if default_width is None:
            default_width = num_value(descriptor.get("MissingWidth", DEFAULT_SIMPLE_WIDTH))
        self.default_width = default_width
        self.hscale = 0.001
        self.space_width = self._get_space_width()

    def __repr__(self) -> str:
        return "<PDFFont>"

    def _get_space_width(self) -> float:
        width = self.widths.get(32)
        if width:
            return width
        values = [w for w in self.widths.values() if w]
        if values:
            return sum(values) / len(values)
        return DEFAULT_SPACE_WIDTH

    def is_vertical(self) -> bool:
        return False

    def is_multibyte(self) -> bool:
        return False

    def decode(self, data: bytes) -> Iterable[int]:
        return bytearray(data)

    def char_width(self, cid: int) -> float:
        """Returns the advance of a character in text space (at size 1)"""
        return self.widths.get(cid, self.default_width) * self.hscale

    def char_disp(self, cid: int) -> float | tuple[float | None, float]:
        """Returns 0 for horizontal fonts, a displacement vector for vertical fonts."""
        return 0

    def to_gid(self, cid: int) -> int | None:
        """Glyph index of a CID; simple fonts have none."""
        return None

    def get_space_width(self) -> float:
        return self.space_width * self.hscale

    def width_range(self) -> tuple[int, int] | None:
        if not self.widths:
            return None
        return (min(self.widths), max(self.widths))

    def to_unichr(self, cid: int) -> str:
        raise NotImplementedError


class PDFDefaultFont(PDFFont):
    """Stands in for a missing or unusable font resource.

    Every code is one byte, maps to the character with the same number
    and has the default width.
    """

    subtype = "Default"

    def __init__(self, name: str = "default") -> None:
        super().__init__({"FontName": name}, {}, default_width=DEFAULT_SIMPLE_WIDTH)
        self.basefont = name
        self.encoding_name = "Identity"

    def __repr__(self) -> str:
        return f"<PDFDefaultFont: name={self.fontname!r}>"

    def to_unichr(self, cid: int) -> str:
        return chr(cid)


class PDFSimpleFont(PDFFont):
    def __init__(
        self,
        descriptor: Mapping[str, Any],
        widths: dict[int, float],
        spec: Mapping[str, Any],
    ) -> None:
        # Font encoding is specified either by a name of
        # built-in encoding or a dictionary that describes
        # the differences.
        if "Encoding" in spec:
            encoding = resolve1(spec["Encoding"])
        else:
            encoding = LITERAL_STANDARD_ENCODING
        if isinstance(encoding, dict):
            name = literal_name(encoding.get("BaseEncoding", LITERAL_STANDARD_ENCODING))
            diff = list_value(encoding.get("Differences", []))
            self.encoding = EncodingDB.get_encoding(name, diff)
            encoding_name = f"{name}+Differences" if diff else name
        else:
            encoding_name = literal_name(encoding)
            self.encoding = EncodingDB.get_encoding(encoding_name)
        super().__init__(descriptor, widths)
        self.encoding_name = encoding_name
        self.unicode_map = load_unicode_map(spec)

    def to_unichr(self, cid: int) -> str:
        if self.unicode_map:
            try:
                return self.unicode_map.get_unichr(cid)
            except KeyError:
                pass
        try:
            return self.encoding[cid]
        except KeyError:
            raise PDFUnicodeNotDefined(None, cid) from None


def _simple_widths(spec: Mapping[str, Any]) -> dict[int, float]:
    firstchar = int_value(spec.get("FirstChar", 0))
    widths = list_value(spec.get("Widths", []))
    return {
        i + firstchar: resolve1(w)
        for (i, w) in enumerate(widths)
        if isnumber(resolve1(w))
    }


def _basefont(spec: Mapping[str, Any]) -> str:
    try:
        return literal_name(resolve1(spec["BaseFont"]))
    except KeyError:
        if settings.STRICT:
            raise PDFFontError("BaseFont is missing") from None
        return "unknown"


class PDFType1Font(PDFSimpleFont):
    subtype = "Type1"

    def __init__(self, rsrcmgr: "PDFResourceManager", spec: Mapping[str, Any]) -> None:
        basefont = _basefont(spec)
        descriptor = dict_value(spec.get("FontDescriptor", {}))
        if "FontName" not in descriptor:
            descriptor = dict(descriptor, FontName=basefont)
        super().__init__(descriptor, _simple_widths(spec), spec)
        self.basefont = basefont

    def __repr__(self) -> str:
        return f"<PDFType1Font: basefont={self.basefont!r}>"


class PDFTrueTypeFont(PDFType1Font):
    subtype = "TrueType"

    def __repr__(self) -> str:
        return f"<PDFTrueTypeFont: basefont={self.basefont!r}>"


class PDFType3Font(PDFSimpleFont):
    subtype = "Type3"

    def __init__(self, rsrcmgr: "PDFResourceManager", spec: Mapping[str, Any]) -> None:
        if "FontDescriptor" in spec:
            descriptor = dict_value(spec["FontDescriptor"])
        else:
            descriptor = {"FontName": spec.get("Name", "unknown")}
        super().__init__(descriptor, _simple_widths(spec), spec)
        # glyph widths are in glyph space; missing ones are zero
        self.default_width = num_value(descriptor.get("MissingWidth", 0))
        self.matrix = cast(
            Matrix,
            tuple(list_value(spec.get("FontMatrix", [0.001, 0, 0, 0.001, 0, 0]))),
        )
        (self.hscale, _) = apply_matrix_norm(self.matrix, (1, 1))
        self.basefont = str(self.fontname)

    def __repr__(self) -> str:
        return "<PDFType3Font>"


class PDFCIDFont(PDFFont):
    subtype = "Type0"

    def __init__(
        self,
        rsrcmgr: "PDFResourceManager",
        spec: Mapping[str, Any],
    ) -> None:
        basefont = _basefont(spec)
        self.cidsysteminfo = dict_value(spec.get("CIDSystemInfo", {}))
        cid_registry = resolve1(self.cidsysteminfo.get("Registry", b"unknown"))
        cid_ordering = resolve1(self.cidsysteminfo.get("Ordering", b"unknown"))
        self.cidcoding = f"{make_compat_str(cid_registry)}-{make_compat_str(cid_ordering)}"
        self.cmap: CMapBase = self.get_cmap_from_spec(spec, rsrcmgr)
        self.cid2gid = self._get_cid2gid(spec)

        try:
            descriptor = dict_value(spec["FontDescriptor"])
        except KeyError:
            if settings.STRICT:
                raise PDFFontError("FontDescriptor is missing") from None
            descriptor = {}
        if "FontName" not in descriptor:
            descriptor = dict(descriptor, FontName=basefont)

        self.vertical = self.cmap.is_vertical()
        if self.vertical:
            # writing mode: vertical
            widths2 = get_widths2(list_value(spec.get("W2", [])))
            self.disps = {cid: (vx, vy) for (cid, (_, (vx, vy))) in widths2.items()}
            (vy, w) = resolve1(spec.get("DW2", [880, -1000]))
            self.default_disp: float | tuple[float | None, float] = (None, vy)
            widths = {cid: w for (cid, (w, _)) in widths2.items()}
            default_width = w
        else:
            # writing mode: horizontal
            self.disps = {}
            self.default_disp = 0
            widths = get_widths(list_value(spec.get("W", [])))
            default_width = num_value(spec.get("DW", DEFAULT_CID_WIDTH))
        super().__init__(descriptor, widths, default_width=default_width)
        self.basefont = basefont
        self.unicode_map = load_unicode_map(spec)

    def get_cmap_from_spec(
        self,
        spec: Mapping[str, Any],
        rsrcmgr: "PDFResourceManager",
    ) -> CMapBase:
        """Get cmap from font specification

        For certain PDFs, Encoding Type isn't mentioned as an attribute of
        Encoding but as an attribute of CMapName, where CMapName is an
        attribute of spec['Encoding'].
        The horizontal/vertical modes are mentioned with different name
        such as 'DLIdent-H/V','OneByteIdentityH/V','Identity-H/V'.
        """
        encoding = resolve1(spec.get("Encoding"))
        if isinstance(encoding, PDFStream):
            cmap = FileCMap()
            CMapParser(cmap, encoding.get_data()).run()
            if "WMode" in encoding:
                cmap.set_attr("WMode", int_value(encoding["WMode"]))
            self.encoding_name = literal_name(encoding.get("CMapName", "embedded"))
            return cmap

        if isinstance(encoding, PSLiteral):
            cmap_name = literal_name(encoding)
        else:
            if settings.STRICT:
                raise PDFFontError("Encoding is unspecified")
            cmap_name = "unknown"
        if cmap_name in ("DLIdent-H", "DLIdent-V"):
            cmap_name = cmap_name.replace("DLIdent", "Identity")
        self.encoding_name = cmap_name
        try:
            return rsrcmgr.get_cmap(cmap_name, strict=settings.STRICT)
        except CMapDB.CMapNotFound as e:
            raise PDFFontError(e) from e

    def _get_cid2gid(self, spec: Mapping[str, Any]) -> dict[int, int] | None:
        mapping = resolve1(spec.get("CIDToGIDMap", LITERAL_IDENTITY))
        if isinstance(mapping, PDFStream):
            data = mapping.get_data()
            return {i // 2: nunpack(data[i : i + 2]) for i in range(0, len(data) - 1, 2)}
        return None

    def __repr__(self) -> str:
        return f"<PDFCIDFont: basefont={self.basefont!r}, cidcoding={self.cidcoding!r}>"

    def is_vertical(self) -> bool:
        return self.vertical

    def is_multibyte(self) -> bool:
        return True

    def decode(self, data: bytes) -> Iterable[int]:
        return self.cmap.decode(data)

    def char_disp(self, cid: int) -> float | tuple[float | None, float]:
        """Returns an integer for horizontal fonts, a tuple for vertical fonts."""
        return self.disps.get(cid, self.default_disp)

    def to_gid(self, cid: int) -> int:
        if self.cid2gid is None:
            return cid
        return self.cid2gid.get(cid, 0)

    def to_unichr(self, cid: int) -> str:
        if self.unicode_map is None:
            raise PDFUnicodeNotDefined(self.cidcoding, cid)
        try:
            return self.unicode_map.get_unichr(cid)
        except KeyError:
            raise PDFUnicodeNotDefined(self.cidcoding, cid) from None
