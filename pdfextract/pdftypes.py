import logging
import zlib
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Optional, cast

from pdfextract import settings
from pdfextract.ascii85 import ascii85decode, asciihexdecode
from pdfextract.lzw import lzwdecode
from pdfextract.pdfexceptions import (
    PDFException,
    PDFNotImplementedError,
    PDFObjectNotFound,
    PDFTypeError,
    PDFValueError,
)
from pdfextract.psparser import LIT, PSObject
from pdfextract.runlength import rldecode
from pdfextract.utils import apply_png_predictor, apply_tiff_predictor, isnumber

if TYPE_CHECKING:
    from pdfextract.pdfdocument import PDFDocument

log = logging.getLogger(__name__)

LITERAL_CRYPT = LIT("Crypt")
LITERAL_IDENTITY = LIT("Identity")

# Abbreviation of Filter names in PDF 4.8.6. "Inline Images"
LITERALS_FLATE_DECODE = (LIT("FlateDecode"), LIT("Fl"))
LITERALS_LZW_DECODE = (LIT("LZWDecode"), LIT("LZW"))
LITERALS_ASCII85_DECODE = (LIT("ASCII85Decode"), LIT("A85"))
LITERALS_ASCIIHEX_DECODE = (LIT("ASCIIHexDecode"), LIT("AHx"))
LITERALS_RUNLENGTH_DECODE = (LIT("RunLengthDecode"), LIT("RL"))
LITERALS_CCITTFAX_DECODE = (LIT("CCITTFaxDecode"), LIT("CCF"))
LITERALS_DCT_DECODE = (LIT("DCTDecode"), LIT("DCT"))
LITERALS_JBIG2_DECODE = (LIT("JBIG2Decode"),)
LITERALS_JPX_DECODE = (LIT("JPXDecode"),)

# filters whose output may carry a predictor
PREDICTED_FILTERS = LITERALS_FLATE_DECODE + LITERALS_LZW_DECODE


class PDFObject(PSObject):
    pass


class PDFUnsupportedFilter(PDFNotImplementedError):
    pass


class PDFObjRef(PDFObject):
    """An indirect reference ``objid genno R``.

    References only carry the key of the object; the object itself is
    looked up in the owning document when resolved.
    """

    def __init__(
        self,
        doc: Optional["PDFDocument"],
        objid: int,
        genno: int = 0,
    ) -> None:
        if objid == 0 and settings.STRICT:
            raise PDFValueError("PDF object id cannot be 0.")
        self.doc = doc
        self.objid = objid
        self.genno = genno

    def __repr__(self) -> str:
        return f"<PDFObjRef:{self.objid} {self.genno}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PDFObjRef):
            return NotImplemented
        return (self.objid, self.genno) == (other.objid, other.genno)

    def __hash__(self) -> int:
        return hash((self.objid, self.genno))

    def resolve(self, default: object = None) -> Any:
        if self.doc is None:
            return default
        try:
            return self.doc.getobj(self.objid, self.genno)
        except PDFObjectNotFound:
            return default


def resolve1(x: object, default: object = None) -> Any:
    """Resolves an object.

    If this is an array or dictionary, it may still contains
    some indirect objects inside.
    """
    while isinstance(x, PDFObjRef):
        x = x.resolve(default=default)
    return x


def resolve_all(x: object, default: object = None) -> Any:
    """Recursively resolves the given object and all the internals.

    Make sure there is no indirect reference within the nested object.
    A reference that is already being resolved further up (such as a
    page's /Parent) is left as a reference.
    """
    return _resolve_all(x, default, set())


def _resolve_all(x: object, default: object, seen: set[int]) -> Any:
    key = None
    while isinstance(x, PDFObjRef):
        if x.objid in seen:
            return x
        key = x.objid
        seen.add(key)
        x = x.resolve(default=default)
    try:
        if isinstance(x, list):
            return [_resolve_all(v, default, seen) for v in x]
        if isinstance(x, dict):
            return {k: _resolve_all(v, default, seen) for (k, v) in x.items()}
        return x
    finally:
        if key is not None:
            seen.discard(key)


# Type checking
def int_value(x: object) -> int:
    x = resolve1(x)
    if not isinstance(x, int) or isinstance(x, bool):
        if settings.STRICT:
            raise PDFTypeError(f"Integer required: {x!r}")
        return 0
    return x


def num_value(x: object) -> float:
    x = resolve1(x)
    if not isnumber(x):
        if settings.STRICT:
            raise PDFTypeError(f"Int or Float required: {x!r}")
        return 0
    return cast(float, x)


def list_value(x: object) -> list[Any] | tuple[Any, ...]:
    x = resolve1(x)
    if not isinstance(x, (list, tuple)):
        if settings.STRICT:
            raise PDFTypeError(f"List required: {x!r}")
        return []
    return x


def dict_value(x: object) -> dict[str, Any]:
    x = resolve1(x)
    if not isinstance(x, dict):
        if settings.STRICT:
            log.error("PDFTypeError : Dict required: %r", x)
            raise PDFTypeError(f"Dict required: {x!r}")
        return {}
    return x


def stream_value(x: object) -> "PDFStream":
    x = resolve1(x)
    if not isinstance(x, PDFStream):
        if settings.STRICT:
            raise PDFTypeError(f"PDFStream required: {x!r}")
        return PDFStream({}, b"")
    return x


def decompress_corrupted(data: bytes) -> bytes:
    """Called on some data that can't be properly decoded because of CRC checksum
    error. Attempt to decode it skipping the CRC.
    """
    d = zlib.decompressobj()
    parts = []
    i = 0
    try:
        for i in range(len(data)):
            parts.append(d.decompress(data[i : i + 1]))
    except zlib.error:
        # Let the error propagates if we're not yet in the CRC checksum
        if i < len(data) - 3:
            log.warning("Data-loss while decompressing corrupted data")
    return b"".join(parts)


class PDFStream(PDFObject):
    """A stream object: its dictionary plus the raw bytes of the body.

    The body is decoded through the /Filter chain on first access by
    get_data(). When a filter cannot be applied the undecoded bytes are
    returned instead and ``unresolved`` is set.
    """

    def __init__(
        self,
        attrs: dict[str, Any],
        rawdata: bytes,
    ) -> None:
        assert isinstance(attrs, dict), str(type(attrs))
        self.attrs = attrs
        self.rawdata: bytes | None = rawdata
        self.data: bytes | None = None
        self.objid: int | None = None
        self.genno: int | None = None
        self.unresolved = False

    def set_objid(self, objid: int, genno: int) -> None:
        self.objid = objid
        self.genno = genno

    def __repr__(self) -> str:
        if self.data is None:
            assert self.rawdata is not None
            return f"<PDFStream({self.objid!r}): raw={len(self.rawdata)}, {self.attrs!r}>"
        return f"<PDFStream({self.objid!r}): len={len(self.data)}, {self.attrs!r}>"

    def __contains__(self, name: object) -> bool:
        return name in self.attrs

    def __getitem__(self, name: str) -> Any:
        return self.attrs[name]

    def get(self, name: str, default: object = None) -> Any:
        return self.attrs.get(name, default)

    def get_any(self, names: Iterable[str], default: object = None) -> Any:
        for name in names:
            if name in self.attrs:
                return self.attrs[name]
        return default

    def get_filters(self) -> list[tuple[Any, Any]]:
        filters = resolve1(self.get_any(("F", "Filter")))
        params = resolve1(self.get_any(("DP", "DecodeParms", "FDecodeParms"), {}))
        if not filters:
            return []
        if not isinstance(filters, list):
            filters = [filters]
        if not isinstance(params, list):
            # Make sure the parameters list is the same as filters.
            params = [params] * len(filters)
        if settings.STRICT and len(params) != len(filters):
            raise PDFException("Parameters len filter mismatch")

        resolved_filters = [resolve1(f) for f in filters]
        resolved_params = [dict_value(params) if params else {} for params in params]
        # zip() truncates; missing parameters default to none
        resolved_params += [{}] * (len(resolved_filters) - len(resolved_params))
        return list(zip(resolved_filters, resolved_params))

    def _unsupported(self, msg: str) -> None:
        if settings.STRICT:
            raise PDFUnsupportedFilter(msg)
        log.warning("%s; returning the stream undecoded (objid=%r)", msg, self.objid)
        self.unresolved = True

    def _decode_one(self, f: Any, params: dict[str, Any], data: bytes) -> bytes | None:
        if f in LITERALS_FLATE_DECODE:
            try:
                return zlib.decompress(data)
            except zlib.error as e:
                if settings.STRICT:
                    raise PDFException(f"Invalid zlib bytes: {e!r}") from e
                log.warning("Damaged Flate data (objid=%r): %s", self.objid, e)
                return decompress_corrupted(data)
        elif f in LITERALS_LZW_DECODE:
            return lzwdecode(data)
        elif f in LITERALS_ASCII85_DECODE:
            return ascii85decode(data)
        elif f in LITERALS_ASCIIHEX_DECODE:
            return asciihexdecode(data)
        elif f in LITERALS_RUNLENGTH_DECODE:
            return rldecode(data)
        elif f is LITERAL_CRYPT and resolve1(params.get("Name")) is LITERAL_IDENTITY:
            return data
        self._unsupported(f"Unsupported filter: {f!r}")
        return None

    def _apply_predictor(self, params: dict[str, Any], data: bytes) -> bytes | None:
        pred = int_value(params.get("Predictor", 1))
        if pred == 1:
            return data
        colors = int_value(params.get("Colors", 1))
        columns = int_value(params.get("Columns", 1))
        bitspercomponent = int_value(params.get("BitsPerComponent", 8))
        if pred == 2:
            return apply_tiff_predictor(colors, columns, bitspercomponent, data)
        if 10 <= pred <= 15:
            return apply_png_predictor(pred, colors, columns, bitspercomponent, data)
        self._unsupported(f"Unsupported predictor: {pred!r}")
        return None

    def decode(self) -> None:
        assert self.data is None and self.rawdata is not None, str(
            (self.data, self.rawdata),
        )
        data = self.rawdata
        for f, params in self.get_filters():
            try:
                decoded = self._decode_one(f, params, data)
                if decoded is not None and f in PREDICTED_FILTERS:
                    decoded = self._apply_predictor(params, decoded)
            except (ValueError, PDFException) as e:
                # PDFUnsupportedFilter is raised in strict mode only
                if settings.STRICT:
                    raise
                log.warning("Cannot decode %r (objid=%r): %s", f, self.objid, e)
                self.unresolved = True
                decoded = None
            if decoded is None:
                data = self.rawdata
                break
            data = decoded
        self.data = data
        self.rawdata = None

    def get_data(self) -> bytes:
        if self.data is None:
            self.decode()
            assert self.data is not None
        return self.data
