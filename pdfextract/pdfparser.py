import logging
import re
from typing import TYPE_CHECKING, Any, Union

from pdfextract import settings
from pdfextract.pdfexceptions import PDFException
from pdfextract.pdftypes import PDFObjRef, PDFStream, dict_value, resolve1
from pdfextract.psparser import KWD, PSEOF, PSKeyword, PSStackParser

if TYPE_CHECKING:
    from pdfextract.pdfdocument import PDFDocument

log = logging.getLogger(__name__)


class PDFSyntaxError(PDFException):
    pass


class PDFUnexpectedToken(PDFSyntaxError):
    def __init__(self, expected: str, got: object, pos: int) -> None:
        super().__init__(f"Expected {expected} at offset {pos}, got {got!r}")
        self.expected = expected
        self.got = got
        self.pos = pos


class PDFMissingStreamKeyword(PDFSyntaxError):
    def __init__(self, pos: int) -> None:
        super().__init__(f"endstream without stream at offset {pos}")
        self.pos = pos


# end-of-line after the declared stream length, then the closing keyword
ENDSTREAM_AFTER_DATA = re.compile(rb"(?:\r\n|\r|\n)?[\x00\s]*endstream")

# Stack slots may be occupied by any of:
#  * the PSBaseParserToken types
#  * list (via KEYWORD_ARRAY)
#  * dict (via KEYWORD_DICT)
#  * PDFObjRef, PDFStream and None added here
PDFStackT = Union[PSKeyword, PDFStream, PDFObjRef, None]


class PDFParser(PSStackParser[PDFStackT]):
    """PDFParser fetches PDF objects from an in-memory file.

    It can handle indirect references by referring to
    a PDF document set by set_document method.

    Typical usage:
      parser = PDFParser(data)
      parser.set_document(doc)
      (objid, genno, obj) = parser.read_indirect(offset)

    """

    def __init__(self, data: bytes) -> None:
        super().__init__(data)
        self.doc: PDFDocument | None = None
        self.fallback = False

    def set_document(self, doc: "PDFDocument") -> None:
        """Associates the parser with a PDFDocument object."""
        self.doc = doc

    KEYWORD_R = KWD(b"R")
    KEYWORD_NULL = KWD(b"null")
    KEYWORD_OBJ = KWD(b"obj")
    KEYWORD_ENDOBJ = KWD(b"endobj")
    KEYWORD_STREAM = KWD(b"stream")
    KEYWORD_ENDSTREAM = KWD(b"endstream")
    KEYWORD_XREF = KWD(b"xref")
    KEYWORD_STARTXREF = KWD(b"startxref")

    def do_keyword(self, pos: int, token: PSKeyword) -> None:
        """Handles PDF-related keywords."""
        if token in (self.KEYWORD_XREF, self.KEYWORD_STARTXREF):
            self.add_results(*self.pop(1))

        elif token is self.KEYWORD_ENDOBJ:
            self.add_results(*self.pop(4))

        elif token is self.KEYWORD_OBJ:
            # "N G obj" of the next object: the previous one lacks endobj
            if len(self.curstack) >= 3:
                log.warning("Missing endobj before offset %d", pos)
                value = self.curstack[-3]
                self.curstack = []
                self.add_results(value)
            else:
                self.push((pos, token))

        elif token is self.KEYWORD_NULL:
            # null object
            self.push((pos, None))

        elif token is self.KEYWORD_R:
            self.do_reference(pos)

        elif token is self.KEYWORD_STREAM:
            if not self.curstack:
                raise PDFUnexpectedToken("stream dictionary", None, pos)
            ((_, dic),) = self.pop(1)
            self.push((pos, self.read_stream(pos, dict_value(dic))))

        elif token is self.KEYWORD_ENDSTREAM:
            raise PDFMissingStreamKeyword(pos)

        else:
            # others
            self.push((pos, token))

    def do_reference(self, pos: int) -> None:
        """Turns ``objid genno R`` on the stack into a PDFObjRef."""
        if len(self.curstack) >= 2:
            ((_, objid), (_, genno)) = self.curstack[-2:]
            if all(isinstance(x, int) and not isinstance(x, bool) for x in (objid, genno)):
                self.pop(2)
                self.push((pos, PDFObjRef(self.doc, objid, genno)))  # type: ignore[arg-type]
                return
        if settings.STRICT:
            raise PDFSyntaxError(f"Malformed reference at offset {pos}")
        log.warning("Malformed reference at offset %d, ignored", pos)

    def declared_length(self, dic: dict[str, Any]) -> int | None:
        if "Length" not in dic:
            if settings.STRICT:
                raise PDFSyntaxError(f"/Length is undefined: {dic!r}")
            return None
        length = resolve1(dic["Length"])
        if isinstance(length, int) and not isinstance(length, bool) and length >= 0:
            return length
        log.warning("Unusable stream /Length: %r", length)
        return None

    def scan_length(self, start: int) -> int | None:
        """Length of the stream data found by searching for ``endstream``.

        One end-of-line marker in front of the keyword belongs to the
        keyword, not to the data.
        """
        data = self.lexer.data
        end = data.find(b"endstream", start)
        if end == -1:
            return None
        if data[start:end].endswith(b"\r\n"):
            end -= 2
        elif data[start:end].endswith((b"\n", b"\r")):
            end -= 1
        return end - start

    def read_stream(self, pos: int, dic: dict[str, Any]) -> PDFStream:
        """Reads the data of a stream whose ``stream`` keyword is at pos.

        The declared /Length is used when ``endstream`` directly follows
        it. Otherwise (or when the scan finds a longer body) the length
        found by scanning for ``endstream`` is used.
        """
        self.lexer.seek(pos)
        try:
            (_, line) = self.nextline()  # 'stream'
        except PSEOF:
            if settings.STRICT:
                raise PDFSyntaxError("Unexpected EOF") from None
            line = b""
        start = pos + len(line)
        data = self.lexer.data

        declared = None if self.fallback else self.declared_length(dic)
        verified = declared is not None and bool(
            ENDSTREAM_AFTER_DATA.match(data, start + declared),
        )
        scanned = self.scan_length(start)

        if verified and scanned is not None:
            objlen = max(declared, scanned)  # type: ignore[type-var]
        elif verified:
            objlen = declared  # type: ignore[assignment]
        elif scanned is not None:
            if declared is not None:
                log.warning(
                    "Stream /Length %d at offset %d is wrong, using %d",
                    declared,
                    pos,
                    scanned,
                )
            objlen = scanned
        else:
            if settings.STRICT:
                raise PDFSyntaxError(f"Stream at offset {pos} has no endstream")
            log.warning("Stream at offset %d has no endstream", pos)
            objlen = len(data) - start
            if declared is not None:
                objlen = min(declared, objlen)

        rawdata = self.read(start, objlen)
        m = ENDSTREAM_AFTER_DATA.match(data, start + objlen)
        if m:
            self.lexer.seek(m.end())
        log.debug(
            "Stream: pos=%d, objlen=%d, dic=%r, data=%r...",
            pos,
            objlen,
            dic,
            rawdata[:10],
        )
        return PDFStream(dic, rawdata)

    def read_indirect(self, pos: int) -> tuple[int, int, Any]:
        """Parses ``objid genno obj ... endobj`` starting at pos."""
        self.seek(pos)
        (_, objid) = self.nexttoken()
        (_, genno) = self.nexttoken()
        (kwdpos, kwd) = self.nexttoken()
        if not isinstance(objid, int) or not isinstance(genno, int):
            raise PDFUnexpectedToken("object number", (objid, genno), pos)
        if kwd is not self.KEYWORD_OBJ:
            raise PDFUnexpectedToken("obj", kwd, kwdpos)
        (_, obj) = self.nextobject()
        return (objid, genno, obj)


class PDFStreamParser(PDFParser):
    """PDFStreamParser is used to parse the objects stored inside an
    object stream.

    Such objects are stored without the obj and endobj keywords, so every
    object is delivered as soon as the whole buffer has been read.
    A reference to a PDF document is needed because the objects can
    contain indirect references to other objects in the same document.
    """

    def do_keyword(self, pos: int, token: PSKeyword) -> None:
        if token in (self.KEYWORD_R, self.KEYWORD_NULL):
            super().do_keyword(pos, token)
        elif token in (self.KEYWORD_OBJ, self.KEYWORD_ENDOBJ):
            if settings.STRICT:
                # See PDF Spec 3.4.6: Only the object values are stored in the
                # stream; the obj and endobj keywords are not used.
                raise PDFSyntaxError(f"Keyword {token.name!r} found in stream")
        else:
            # others
            self.push((pos, token))
