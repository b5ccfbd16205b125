"""Adobe character mapping (CMap) support.

CMaps provide the mapping between character codes and Unicode
code-points to character ids (CIDs).

Only the predefined Identity CMaps are built in. Other CMaps come from
the document itself: an embedded /Encoding stream of a Type0 font, or a
/ToUnicode stream of any font.

More information is available on:

  https://github.com/adobe-type-tools/cmap-resources

"""

import logging
import struct
from collections.abc import Iterator, MutableMapping
from typing import Any

from pdfextract.encodingdb import name2unicode
from pdfextract.pdfexceptions import PDFException, PDFTypeError
from pdfextract.psexceptions import PSEOF, PSSyntaxError
from pdfextract.psparser import KWD, PSKeyword, PSLiteral, PSStackParser, literal_name
from pdfextract.utils import choplist, nunpack

log = logging.getLogger(__name__)


class CMapError(PDFException):
    pass


class CMapBase:
    def __init__(self, **kwargs: object) -> None:
        self.attrs: MutableMapping[str, object] = kwargs.copy()

    def is_vertical(self) -> bool:
        return self.attrs.get("WMode", 0) != 0

    def set_attr(self, k: str, v: object) -> None:
        self.attrs[k] = v

    def add_codespace(self, low: bytes, high: bytes) -> None:
        pass

    def add_code2cid(self, code: bytes, cid: int) -> None:
        pass

    def add_cid2unichr(self, cid: int, code: PSLiteral | bytes | int) -> None:
        pass

    def use_cmap(self, cmap: "CMapBase") -> None:
        pass

    def decode(self, code: bytes) -> Iterator[int]:
        raise NotImplementedError


class CMap(CMapBase):
    """Maps byte sequences to CIDs.

    The code space ranges decide how many bytes make up each code; a
    valid code without a mapping is read as CID 0 (notdef).
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.codespaces: list[tuple[bytes, bytes]] = []
        self.code2cid: dict[bytes, int] = {}

    def __repr__(self) -> str:
        return "<CMap: {}>".format(self.attrs.get("CMapName"))

    def use_cmap(self, cmap: CMapBase) -> None:
        if isinstance(cmap, CMap):
            self.codespaces.extend(cmap.codespaces)
            for code, cid in cmap.code2cid.items():
                self.code2cid.setdefault(code, cid)
        elif isinstance(cmap, IdentityCMap):
            self.set_attr("UseIdentity", cmap.width)

    def code_length(self, code: bytes, i: int) -> int:
        for low, high in self.codespaces:
            n = len(low)
            chunk = code[i : i + n]
            if len(chunk) == n and all(a <= c <= b for (a, c, b) in zip(low, chunk, high)):
                return n
        # without a matching code space, try the lengths of known codes
        for n in sorted({len(k) for k in self.code2cid}):
            if code[i : i + n] in self.code2cid:
                return n
        if self.codespaces:
            return min(len(low) for (low, _) in self.codespaces)
        identity = self.attrs.get("UseIdentity")
        return identity if isinstance(identity, int) else 1

    def decode(self, code: bytes) -> Iterator[int]:
        log.debug("decode: %r, %r", self, code)
        i = 0
        while i < len(code):
            n = self.code_length(code, i)
            chunk = code[i : i + n]
            i += n
            cid = self.code2cid.get(chunk)
            if cid is None:
                identity = self.attrs.get("UseIdentity")
                cid = nunpack(chunk) if identity else 0
            yield cid


class IdentityCMap(CMapBase):
    """Two-byte codes that are their own CIDs."""

    width = 2

    def decode(self, code: bytes) -> Iterator[int]:
        n = len(code) // self.width
        fmt = ">%dH" if self.width == 2 else ">%dB"
        return iter(struct.unpack(fmt % n, code[: n * self.width]))


class IdentityCMapByte(IdentityCMap):
    width = 1


class UnicodeMap(CMapBase):
    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.cid2unichr: dict[int, str] = {}

    def __repr__(self) -> str:
        return "<UnicodeMap: {}>".format(self.attrs.get("CMapName"))

    def get_unichr(self, cid: int) -> str:
        log.debug("get_unichr: %r, %r", self, cid)
        return self.cid2unichr[cid]


class FileCMap(CMap):
    def add_codespace(self, low: bytes, high: bytes) -> None:
        self.codespaces.append((low, high))

    def add_code2cid(self, code: bytes, cid: int) -> None:
        self.code2cid[code] = cid


class FileUnicodeMap(UnicodeMap):
    def add_cid2unichr(self, cid: int, code: PSLiteral | bytes | int) -> None:
        assert isinstance(cid, int), str(type(cid))
        if isinstance(code, PSLiteral):
            # Interpret as an Adobe glyph name.
            try:
                unichr = name2unicode(literal_name(code))
            except KeyError as e:
                log.debug(str(e))
                return
        elif isinstance(code, bytes):
            # Interpret as UTF-16BE.
            unichr = code.decode("UTF-16BE", "ignore")
        elif isinstance(code, int):
            unichr = chr(code)
        else:
            raise PDFTypeError(code)

        # A0 = non-breaking space, some weird fonts can have a collision on a cid here.
        if unichr == " " and self.cid2unichr.get(cid) == " ":
            return
        self.cid2unichr[cid] = unichr


class CMapDB:
    class CMapNotFound(CMapError):
        pass

    @classmethod
    def get_cmap(cls, name: str) -> CMapBase:
        if name == "Identity-H":
            return IdentityCMap(WMode=0)
        elif name == "Identity-V":
            return IdentityCMap(WMode=1)
        elif name == "OneByteIdentityH":
            return IdentityCMapByte(WMode=0)
        elif name == "OneByteIdentityV":
            return IdentityCMapByte(WMode=1)
        raise CMapDB.CMapNotFound(name)


def _increment(base: bytes, i: int) -> bytes:
    """base + i, keeping the length of base (at most the last 4 bytes vary)."""
    var = base[-4:]
    prefix = base[:-4]
    return prefix + struct.pack(">L", nunpack(var) + i)[-len(var) :]


class CMapParser(PSStackParser[PSKeyword]):
    def __init__(self, cmap: CMapBase, data: bytes) -> None:
        super().__init__(data)
        self.cmap = cmap
        # some ToUnicode maps don't have "begincmap" keyword.
        self._in_cmap = True
        self._warnings: set[str] = set()

    def run(self) -> None:
        try:
            while True:
                self.nextobject()
        except PSEOF:
            pass
        except PSSyntaxError as e:
            log.warning("CMap %r is truncated: %s", self.cmap, e)

    KEYWORD_BEGINCMAP = KWD(b"begincmap")
    KEYWORD_ENDCMAP = KWD(b"endcmap")
    KEYWORD_USECMAP = KWD(b"usecmap")
    KEYWORD_DEF = KWD(b"def")
    KEYWORD_ENDCODESPACERANGE = KWD(b"endcodespacerange")
    KEYWORD_ENDCIDRANGE = KWD(b"endcidrange")
    KEYWORD_ENDCIDCHAR = KWD(b"endcidchar")
    KEYWORD_ENDBFRANGE = KWD(b"endbfrange")
    KEYWORD_ENDBFCHAR = KWD(b"endbfchar")
    KEYWORD_ENDNOTDEFRANGE = KWD(b"endnotdefrange")
    KEYWORDS_BEGIN = (
        KWD(b"begincodespacerange"),
        KWD(b"begincidrange"),
        KWD(b"begincidchar"),
        KWD(b"beginbfrange"),
        KWD(b"beginbfchar"),
        KWD(b"beginnotdefrange"),
    )

    def do_keyword(self, pos: int, token: PSKeyword) -> None:
        """ToUnicode CMaps

        See Section 5.9.2 - ToUnicode CMaps of the PDF Reference.
        """
        if token is self.KEYWORD_BEGINCMAP:
            self._in_cmap = True
            self.popall()
        elif token is self.KEYWORD_ENDCMAP:
            self._in_cmap = False
        elif not self._in_cmap:
            pass
        elif token is self.KEYWORD_DEF:
            if len(self.curstack) >= 2:
                ((_, k), (_, v)) = self.pop(2)
                if isinstance(k, PSLiteral):
                    self.cmap.set_attr(literal_name(k), v)
        elif token is self.KEYWORD_USECMAP:
            if self.curstack:
                ((_, cmapname),) = self.pop(1)
                try:
                    self.cmap.use_cmap(CMapDB.get_cmap(literal_name(cmapname)))
                except CMapDB.CMapNotFound:
                    log.warning("usecmap: CMap %r is not available", cmapname)
        elif token in self.KEYWORDS_BEGIN or token is self.KEYWORD_ENDNOTDEFRANGE:
            self.popall()
        elif token is self.KEYWORD_ENDCODESPACERANGE:
            self.end_codespacerange(self.popall_values())
        elif token is self.KEYWORD_ENDCIDRANGE:
            self.end_cidrange(self.popall_values())
        elif token is self.KEYWORD_ENDCIDCHAR:
            self.end_cidchar(self.popall_values())
        elif token is self.KEYWORD_ENDBFRANGE:
            self.end_bfrange(self.popall_values())
        elif token is self.KEYWORD_ENDBFCHAR:
            self.end_bfchar(self.popall_values())
        else:
            self.push((pos, token))

    def popall_values(self) -> list[Any]:
        return [obj for (_, obj) in self.popall()]

    def end_codespacerange(self, objs: list[Any]) -> None:
        for low, high in choplist(2, objs):
            if isinstance(low, bytes) and isinstance(high, bytes) and len(low) == len(high):
                self.cmap.add_codespace(low, high)
            else:
                self._warn_once("Invalid code space range.")

    def _check_range(self, start: object, end: object) -> bool:
        if not isinstance(start, bytes) or not isinstance(end, bytes):
            self._warn_once("The start or end of a range is not a string.")
            return False
        if len(start) != len(end):
            self._warn_once("The start and end of a range have different lengths.")
            return False
        return True

    def end_cidrange(self, objs: list[Any]) -> None:
        for start, end, cid in choplist(3, objs):
            if not self._check_range(start, end) or not isinstance(cid, int):
                continue
            n = nunpack(end[-4:]) - nunpack(start[-4:]) + 1
            for i in range(max(n, 0)):
                self.cmap.add_code2cid(_increment(start, i), cid + i)

    def end_cidchar(self, objs: list[Any]) -> None:
        for code, cid in choplist(2, objs):
            if isinstance(code, bytes) and isinstance(cid, int):
                self.cmap.add_code2cid(code, cid)

    def end_bfrange(self, objs: list[Any]) -> None:
        for start_byte, end_byte, code in choplist(3, objs):
            if not self._check_range(start_byte, end_byte):
                continue
            start = nunpack(start_byte)
            end = nunpack(end_byte)
            if isinstance(code, list):
                if len(code) != end - start + 1:
                    self._warn_once(
                        "The difference between the start and end "
                        "offsets does not match the code length.",
                    )
                for cid, unicode_value in zip(range(start, end + 1), code):
                    self.cmap.add_cid2unichr(cid, unicode_value)
            elif isinstance(code, bytes):
                for i in range(end - start + 1):
                    self.cmap.add_cid2unichr(start + i, _increment(code, i))
            else:
                self._warn_once("The destination of a bfrange is not a string.")

    def end_bfchar(self, objs: list[Any]) -> None:
        for cid, code in choplist(2, objs):
            if isinstance(cid, bytes) and isinstance(code, (bytes, PSLiteral)):
                self.cmap.add_cid2unichr(nunpack(cid), code)

    def _warn_once(self, msg: str) -> None:
        """Warn once for each unique message"""
        if msg not in self._warnings:
            self._warnings.add(msg)
            base_msg = (
                "Ignoring (part of) a CMap because the PDF data "
                "does not conform to the format. This could result in "
                "(cid) values in the output. "
            )
            log.warning(base_msg + msg)
