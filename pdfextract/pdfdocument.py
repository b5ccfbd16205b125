import logging
import re
from collections.abc import Iterator
from typing import Any, NamedTuple, Union

from pdfextract import settings
from pdfextract.casting import safe_int
from pdfextract.pdfexceptions import PDFObjectNotFound, PDFUnsupportedInput
from pdfextract.pdfparser import PDFParser, PDFStreamParser, PDFSyntaxError
from pdfextract.pdftypes import (
    PDFStream,
    dict_value,
    int_value,
    list_value,
    resolve1,
    stream_value,
)
from pdfextract.psexceptions import PSEOF, PSException
from pdfextract.psparser import KWD, LIT, PSLexer
from pdfextract.utils import choplist, nunpack

log = logging.getLogger(__name__)


class PDFHeaderError(PDFSyntaxError):
    pass


class PDFNoValidXRef(PDFSyntaxError):
    pass


class PDFXRefCycle(PDFSyntaxError):
    def __init__(self, pos: int) -> None:
        super().__init__(f"Cross-reference section at offset {pos} is read twice")
        self.pos = pos


class PDFNoRootError(PDFSyntaxError):
    pass


class PDFEncryptedDocument(PDFUnsupportedInput):
    pass


# some predefined literals and keywords.
LITERAL_OBJSTM = LIT("ObjStm")
LITERAL_XREF = LIT("XRef")
LITERAL_CATALOG = LIT("Catalog")
KEYWORD_TRAILER = KWD(b"trailer")

# the header must start within this many bytes
HEADER_SEARCH_LIMIT = 1024
HEADER = re.compile(rb"%PDF-(\d+\.\d+)")

# keys of an xref stream dictionary that do not belong to the trailer
XREF_STREAM_KEYS = frozenset(
    ("Type", "Length", "Filter", "DecodeParms", "W", "Index", "Prev", "XRefStm"),
)


class XRefFree(NamedTuple):
    genno: int = 0


class XRefInUse(NamedTuple):
    offset: int
    genno: int = 0


class XRefCompressed(NamedTuple):
    strmid: int
    index: int
    genno: int = 0


XRefEntry = Union[XRefFree, XRefInUse, XRefCompressed]


class PDFBaseXRef:
    """One cross-reference section and the trailer that goes with it."""

    hybrid = False

    def __init__(self) -> None:
        self.entries: dict[int, XRefEntry] = {}
        self.trailer: dict[str, Any] = {}

    def get_trailer(self) -> dict[str, Any]:
        return self.trailer

    def get_entries(self) -> Iterator[tuple[int, XRefEntry]]:
        return iter(self.entries.items())

    def load(self, parser: PDFParser, pos: int) -> None:
        raise NotImplementedError


class PDFXRef(PDFBaseXRef):
    """A classical ``xref`` table followed by a ``trailer`` dictionary."""

    def __repr__(self) -> str:
        return f"<PDFXRef: objids={list(self.entries)!r}>"

    def load(self, parser: PDFParser, pos: int) -> None:
        parser.seek(pos)
        (_, kwd) = parser.nexttoken()
        if kwd is not parser.KEYWORD_XREF:
            raise PDFNoValidXRef(f"xref not found at offset {pos}: {kwd!r}")
        parser.nextline()
        while True:
            try:
                (linepos, line) = parser.nextline()
            except PSEOF as err:
                raise PDFNoValidXRef("Unexpected EOF - file corrupted?") from err
            line = line.strip()
            if not line:
                continue
            if line.startswith(b"trailer"):
                parser.seek(linepos)
                break
            self.load_subsection(parser, line)
        log.debug("xref objects: %r", self.entries)
        self.load_trailer(parser)

    def load_subsection(self, parser: PDFParser, header: bytes) -> None:
        f = header.split()
        if len(f) != 2:
            raise PDFNoValidXRef(f"Trailer not found: line={header!r}")
        (start, nobjs) = (safe_int(f[0]), safe_int(f[1]))
        if start is None or nobjs is None:
            raise PDFNoValidXRef(f"Invalid line: {header!r}")
        for objid in range(start, start + nobjs):
            try:
                (_, line) = parser.nextline()
            except PSEOF as err:
                raise PDFNoValidXRef("Unexpected EOF - file corrupted?") from err
            f = line.split()
            if len(f) != 3 or f[2] not in (b"n", b"f"):
                raise PDFNoValidXRef(f"Invalid XRef format: line={line!r}")
            (pos_b, genno_b, use_b) = f
            pos_i = safe_int(pos_b)
            genno_i = safe_int(genno_b)
            if pos_i is None or genno_i is None:
                log.warning(
                    "Not adding object %d to xref because position %r "
                    "or generation number %r cannot be parsed as an int",
                    objid,
                    pos_b,
                    genno_b,
                )
            elif use_b == b"n":
                self.entries[objid] = XRefInUse(pos_i, genno_i)
            else:
                self.entries[objid] = XRefFree(genno_i)

    def load_trailer(self, parser: PDFParser) -> None:
        try:
            (_, kwd) = parser.nexttoken()
            if kwd is not KEYWORD_TRAILER:
                raise PDFNoValidXRef(f"trailer expected, got {kwd!r}")
            (_, dic) = parser.nextobject()
        except PSEOF:
            raise PDFNoValidXRef("Unexpected EOF - file corrupted") from None
        self.trailer.update(dict_value(dic))
        log.debug("trailer=%r", self.trailer)


class PDFXRefStream(PDFBaseXRef):
    """A cross-reference stream (PDF 1.5), the stream dictionary being
    the trailer.
    """

    def __init__(self, hybrid: bool = False) -> None:
        super().__init__()
        self.hybrid = hybrid
        self.ranges: list[tuple[int, int]] = []
        self.widths: tuple[int, int, int] = (1, 0, 0)

    def __repr__(self) -> str:
        return f"<PDFXRefStream: ranges={self.ranges!r}>"

    def load(self, parser: PDFParser, pos: int) -> None:
        (_, _, stream) = parser.read_indirect(pos)
        if not isinstance(stream, PDFStream) or stream.get("Type") is not LITERAL_XREF:
            raise PDFNoValidXRef(f"Invalid PDF stream spec at offset {pos}")
        size = int_value(stream.get("Size", 0))
        index_array = list_value(stream.get("Index", (0, size)))
        if len(index_array) % 2 != 0:
            raise PDFNoValidXRef("Invalid index number")
        self.ranges = [(int_value(a), int_value(b)) for (a, b) in choplist(2, index_array)]
        widths = [int_value(w) for w in list_value(stream.get("W", []))]
        if len(widths) != 3 or min(widths) < 0:
            raise PDFNoValidXRef(f"Invalid /W: {widths!r}")
        self.widths = (widths[0], widths[1], widths[2])
        data = stream.get_data()
        if stream.unresolved:
            raise PDFNoValidXRef("Cross-reference stream cannot be decoded")
        self.trailer = {k: v for (k, v) in stream.attrs.items() if k not in XREF_STREAM_KEYS}
        self.trailer.update((k, stream[k]) for k in ("Prev", "XRefStm") if k in stream)
        self.load_entries(data)
        log.debug(
            "xref stream: ranges=%s, fields=%d,%d,%d",
            ", ".join(map(repr, self.ranges)),
            *self.widths,
        )

    def load_entries(self, data: bytes) -> None:
        (fl1, fl2, fl3) = self.widths
        entlen = fl1 + fl2 + fl3
        offset = 0
        for start, nobjs in self.ranges:
            for objid in range(start, start + nobjs):
                ent = data[offset : offset + entlen]
                offset += entlen
                if len(ent) < entlen:
                    log.warning("Cross-reference stream ends before object %d", objid)
                    return
                # a missing type field means "in use"
                f1 = nunpack(ent[:fl1], 1)
                f2 = nunpack(ent[fl1 : fl1 + fl2])
                f3 = nunpack(ent[fl1 + fl2 :])
                if f1 == 0:
                    self.entries[objid] = XRefFree(f3)
                elif f1 == 1:
                    self.entries[objid] = XRefInUse(f2, f3)
                elif f1 == 2:
                    self.entries[objid] = XRefCompressed(f2, f3)
                else:
                    # other types are reserved and read as null references
                    log.debug("Unknown xref entry type %d for object %d", f1, objid)


class PDFXRefFallback(PDFBaseXRef):
    """Rebuilds the cross-reference table by scanning the whole file for
    ``objid genno obj`` markers, for files whose xref is missing or broken.
    """

    PDFOBJ_CUE = re.compile(rb"(?<![^\r\n])[\x00\t\x0c ]*(\d+)[\x00\s]+(\d+)[\x00\s]+obj\b")
    TRAILER_CUE = re.compile(rb"(?<![^\r\n])[\x00\t\x0c ]*trailer\b")

    def __repr__(self) -> str:
        return f"<PDFXRefFallback: objids={list(self.entries)!r}>"

    def load(self, parser: PDFParser, pos: int = 0) -> None:
        data = parser.lexer.data
        # later definitions belong to later updates and win
        for m in self.PDFOBJ_CUE.finditer(data, pos):
            objid = int(m[1])
            genno = int(m[2])
            self.entries[objid] = XRefInUse(m.start(1), genno)
            self.expand(parser, objid, m.start(1))
        for m in self.TRAILER_CUE.finditer(data, pos):
            parser.seek(m.end())
            try:
                (_, dic) = parser.nextobject()
            except PSException as err:
                log.warning("Unreadable trailer at offset %d: %s", m.start(), err)
                continue
            if isinstance(dic, dict):
                self.trailer.update(dic)
        log.debug("trailer: %r", self.trailer)

    def expand(self, parser: PDFParser, objid: int, pos: int) -> None:
        """Registers the objects kept inside an object stream and picks up
        the trailer keys of a cross-reference stream."""
        try:
            (_, _, obj) = parser.read_indirect(pos)
        except PSException as err:
            log.debug("Unreadable object %d at offset %d: %s", objid, pos, err)
            return
        if not isinstance(obj, PDFStream):
            return
        if obj.get("Type") is LITERAL_XREF:
            self.trailer.update(
                (k, v) for (k, v) in obj.attrs.items() if k not in XREF_STREAM_KEYS
            )
        elif obj.get("Type") is LITERAL_OBJSTM:
            (header, _) = read_objstm_header(obj)
            for index, (objid1, _) in enumerate(header):
                if not isinstance(self.entries.get(objid1), XRefInUse):
                    self.entries[objid1] = XRefCompressed(objid, index)


def read_objstm_header(stream: PDFStream) -> tuple[list[tuple[int, int]], int]:
    """Returns the (objid, offset) pairs at the start of an object stream
    and the offset where the pairs end.
    """
    n = int_value(stream.get("N", 0))
    lexer = PSLexer(stream.get_data())
    header = []
    try:
        for _ in range(n):
            (_, objid) = lexer.nexttoken()
            (_, offset) = lexer.nexttoken()
            if not isinstance(objid, int) or not isinstance(offset, int):
                raise PDFSyntaxError(f"Invalid object stream header: {objid!r} {offset!r}")
            header.append((objid, offset))
    except PSException as err:
        if settings.STRICT:
            raise
        log.warning("Object stream %r: %s", stream.objid, err)
    return (header, lexer.tell())


class PDFDocument:
    """PDFDocument object represents a PDF document.

    The cross-reference sections are read when the document is created
    and merged into one table. Objects are parsed on first access and
    kept in a cache for the lifetime of the document.

    Typical usage:
      doc = PDFDocument(PDFParser(data))
      obj = doc.getobj(objid)

    """

    def __init__(
        self,
        parser: PDFParser,
        caching: bool = True,
        fallback: bool = True,
    ) -> None:
        """Set the document to use a given PDFParser object."""
        self.caching = caching
        self.data = parser.lexer.data
        self.xrefs: list[PDFBaseXRef] = []
        self.xref_table: dict[int, XRefEntry] = {}
        self.trailer: dict[str, Any] = {}
        self.info: list[dict[str, Any]] = []
        self.catalog: dict[str, Any] = {}
        self.fallback = False
        self._cached_objs: dict[tuple[int, int], object] = {}
        self._parsed_objs: dict[int, list[tuple[int, object]]] = {}
        self._resolving: set[int] = set()
        self._parser = parser
        self._parser.set_document(self)
        self.version = self.read_header()
        try:
            pos = self.find_xref(parser)
            self.read_xref_from(parser, pos, self.xrefs)
        except PDFXRefCycle:
            raise
        except PDFNoValidXRef as err:
            if not fallback:
                raise
            log.warning("%s; scanning the file for objects", err)
            self.fallback = True
            parser.fallback = True
            newxref = PDFXRefFallback()
            newxref.load(parser)
            if not newxref.entries:
                raise PDFNoValidXRef("No objects found - Is this really a PDF?") from err
            self.xrefs = [newxref]
        self.merge_xrefs()

        if "Encrypt" in self.trailer:
            raise PDFEncryptedDocument("Encrypted documents are not supported")
        for xref in self.xrefs:
            trailer = xref.get_trailer()
            if "Info" in trailer:
                info = dict_value(trailer["Info"])
                if info:
                    self.info.append(info)
        root = resolve1(self.trailer.get("Root"))
        self.catalog = root if isinstance(root, dict) else self.find_catalog()
        if self.catalog.get("Type") is not LITERAL_CATALOG and settings.STRICT:
            raise PDFSyntaxError("Catalog not found!")

    def read_header(self) -> str:
        m = HEADER.search(self.data, 0, HEADER_SEARCH_LIMIT)
        if m is None:
            raise PDFHeaderError("%PDF- header not found - Is this really a PDF?")
        return m[1].decode("ascii")

    def merge_xrefs(self) -> None:
        """Builds xref_table and trailer out of the sections, newest first."""
        for xref in self.xrefs:
            for objid, entry in xref.get_entries():
                current = self.xref_table.get(objid)
                if current is None or (xref.hybrid and isinstance(current, XRefFree)):
                    self.xref_table[objid] = entry
        for xref in reversed(self.xrefs):
            if xref.hybrid:
                continue
            self.trailer.update(
                (k, v) for (k, v) in xref.get_trailer().items() if k != "Prev"
            )
        self.trailer.pop("XRefStm", None)

    def find_catalog(self) -> dict[str, Any]:
        """Looks for a /Type /Catalog object when /Root is unusable."""
        log.warning("Trailer has no usable /Root, looking for a catalog object")
        for objid in self.get_objids():
            obj = self.getobj(objid)
            if isinstance(obj, dict) and obj.get("Type") is LITERAL_CATALOG:
                return obj
        raise PDFNoRootError("No /Root object! - Is this really a PDF?")

    def get_objids(self) -> list[int]:
        """Numbers of all objects that are in use, in ascending order."""
        return sorted(
            objid
            for (objid, entry) in self.xref_table.items()
            if not isinstance(entry, XRefFree)
        )

    def _get_objects(self, stream: PDFStream) -> list[tuple[int, object]]:
        if stream.get("Type") is not LITERAL_OBJSTM and settings.STRICT:
            raise PDFSyntaxError(f"Not a stream object: {stream!r}")
        (header, end) = read_objstm_header(stream)
        data = stream.get_data()
        # without /First the bodies are taken to follow the header
        first = int_value(stream["First"]) if "First" in stream else end
        bounds = [first + offset for (_, offset) in header] + [len(data)]
        objs: list[tuple[int, object]] = []
        for i, (objid, _) in enumerate(header):
            parser = PDFStreamParser(data[bounds[i] : max(bounds[i], bounds[i + 1])])
            parser.set_document(self)
            try:
                (_, obj) = parser.nextobject()
            except PSEOF:
                obj = None
            objs.append((objid, obj))
        return objs

    def _getobj_objstm(self, strmid: int, index: int, objid: int) -> object:
        if strmid in self._parsed_objs:
            objs = self._parsed_objs[strmid]
        else:
            stream = stream_value(self.getobj(strmid))
            objs = self._get_objects(stream)
            if self.caching:
                self._parsed_objs[strmid] = objs
        try:
            (objid1, obj) = objs[index]
        except IndexError as err:
            raise PDFSyntaxError(f"index too big: {index!r}") from err
        if objid1 != objid:
            log.warning(
                "Object stream %d holds object %d at index %d, not %d",
                strmid,
                objid1,
                index,
                objid,
            )
        return obj

    def _getobj_parse(self, pos: int, objid: int) -> object:
        parser = PDFParser(self.data)
        parser.fallback = self.fallback
        parser.set_document(self)
        (objid1, _, obj) = parser.read_indirect(pos)
        if objid1 != objid:
            raise PDFSyntaxError(f"objid mismatch: {objid1!r}={objid!r}")
        return obj

    def getobj(self, objid: int, genno: int | None = None) -> object:
        """Get object from PDF

        An object that is free, missing from the xref, or cannot be parsed
        is returned as None (an exception is raised in strict mode).

        :raises PDFObjectNotFound if objid does not exist in PDF (strict)
        """
        log.debug("getobj: objid=%r", objid)
        entry = self.xref_table.get(objid)
        if entry is None:
            if settings.STRICT:
                raise PDFObjectNotFound(objid)
            log.warning("Object %d is not in the cross-reference table", objid)
            return None
        if isinstance(entry, XRefFree):
            log.debug("Object %d is free", objid)
            return None
        if genno is not None and genno != entry.genno:
            log.warning(
                "Object %d has generation %d, reference asks for %d",
                objid,
                entry.genno,
                genno,
            )
        key = (objid, entry.genno)
        if key in self._cached_objs:
            return self._cached_objs[key]
        if objid in self._resolving:
            log.warning("Object %d refers to itself while being read", objid)
            return None

        self._resolving.add(objid)
        try:
            if isinstance(entry, XRefCompressed):
                obj = self._getobj_objstm(entry.strmid, entry.index, objid)
            else:
                obj = self._getobj_parse(entry.offset, objid)
        except PSException as err:
            if settings.STRICT:
                raise
            log.warning("Cannot read object %d: %s", objid, err)
            obj = None
        finally:
            self._resolving.discard(objid)

        if isinstance(obj, PDFStream):
            obj.set_objid(objid, entry.genno)
        log.debug("register: objid=%r: %r", objid, obj)
        if self.caching:
            self._cached_objs[key] = obj
        return obj

    # find_xref
    def find_xref(self, parser: PDFParser) -> int:
        """Internal function used to locate the first XRef."""
        # search the last xref table by scanning the file backwards.
        prev = b""
        for line in parser.revreadlines():
            line = line.strip()
            log.debug("find_xref: %r", line)

            if line == b"startxref":
                log.debug("xref found: pos=%r", prev)

                if not prev.isdigit():
                    raise PDFNoValidXRef(f"Invalid xref position: {prev!r}")

                return int(prev)

            if line:
                prev = line

        raise PDFNoValidXRef("startxref not found")

    def load_xref(self, parser: PDFParser, pos: int, hybrid: bool = False) -> PDFBaseXRef:
        parser.seek(pos)
        try:
            (_, token) = parser.nexttoken()
            log.debug("load_xref: pos=%d, token=%r", pos, token)
            xref: PDFBaseXRef
            if isinstance(token, int):
                # XRefStream: PDF-1.5
                xref = PDFXRefStream(hybrid)
            else:
                xref = PDFXRef()
            xref.load(parser, pos)
        except PDFNoValidXRef:
            raise
        except PSException as err:
            raise PDFNoValidXRef(f"Unreadable xref at offset {pos}: {err}") from err
        return xref

    # read xref table
    def read_xref_from(
        self,
        parser: PDFParser,
        start: int,
        xrefs: list[PDFBaseXRef],
    ) -> None:
        """Reads XRefs from the given location following /XRefStm and /Prev.

        :raises PDFXRefCycle if an offset is visited twice
        """
        visited: set[int] = set()
        pos: int | None = start
        while pos is not None:
            if pos in visited:
                raise PDFXRefCycle(pos)
            visited.add(pos)
            xref = self.load_xref(parser, pos)
            xrefs.append(xref)
            trailer = xref.get_trailer()
            log.debug("trailer: %r", trailer)
            if "XRefStm" in trailer:
                stmpos = int_value(trailer["XRefStm"])
                if stmpos in visited:
                    raise PDFXRefCycle(stmpos)
                visited.add(stmpos)
                try:
                    xrefs.append(self.load_xref(parser, stmpos, hybrid=True))
                except PDFNoValidXRef as err:
                    if settings.STRICT:
                        raise
                    log.warning("Ignoring /XRefStm: %s", err)
            pos = int_value(trailer["Prev"]) if "Prev" in trailer else None
