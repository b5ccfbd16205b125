"""Builds small PDF files in memory, with exact cross-reference offsets."""

import re
import zlib
from collections.abc import Iterable

HELVETICA = b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>"


class PDFBuilder:
    """Collects numbered objects and writes them out as a PDF file.

    Objects are given as the bytes between ``N 0 obj`` and ``endobj``.
    ``build()`` writes either a classical xref table or an xref stream;
    objects put into an object stream need the xref stream form.
    """

    def __init__(self, version: str = "1.7") -> None:
        self.version = version
        self.objects: dict[int, bytes] = {}
        self.compressed: dict[int, tuple[int, int]] = {}

    def next_objid(self) -> int:
        used = set(self.objects) | set(self.compressed)
        return max(used, default=0) + 1

    def add(self, body: bytes, objid: int | None = None) -> int:
        if objid is None:
            objid = self.next_objid()
        self.objects[objid] = body
        return objid

    def add_stream(
        self,
        data: bytes,
        extra: bytes = b"",
        objid: int | None = None,
        compress: bool = False,
    ) -> int:
        if compress:
            data = zlib.compress(data)
            extra = b"/Filter /FlateDecode " + extra
        body = b"<< /Length %d %s>>\nstream\n%s\nendstream" % (len(data), extra, data)
        return self.add(body, objid)

    def add_objstm(self, objs: dict[int, bytes], compress: bool = False) -> int:
        """Puts objs into a new object stream and returns its number."""
        header = []
        bodies = b""
        for objid, body in objs.items():
            header.append(b"%d %d" % (objid, len(bodies)))
            bodies += body + b"\n"
        head = b" ".join(header) + b"\n"
        strmid = self.add_stream(
            head + bodies,
            b"/Type /ObjStm /N %d /First %d " % (len(objs), len(head)),
            compress=compress,
        )
        for index, objid in enumerate(objs):
            self.compressed[objid] = (strmid, index)
        return strmid

    def _body(self) -> tuple[bytes, dict[int, int]]:
        out = b"%%PDF-%s\n%%\xe2\xe3\xcf\xd3\n" % self.version.encode()
        offsets = {}
        for objid in sorted(self.objects):
            offsets[objid] = len(out)
            out += b"%d 0 obj\n%s\nendobj\n" % (objid, self.objects[objid])
        return (out, offsets)

    def build(
        self,
        root: int = 1,
        info: int | None = None,
        xref: str = "table",
        prev: int | None = None,
        trailer_extra: bytes = b"",
    ) -> bytes:
        (out, offsets) = self._body()
        keys = b"/Root %d 0 R " % root
        if info is not None:
            keys += b"/Info %d 0 R " % info
        if prev is not None:
            keys += b"/Prev %d " % prev
        keys += trailer_extra

        if xref == "table":
            size = max(offsets) + 1
            startxref = len(out)
            out += b"xref\n0 %d\n" % size
            for objid in range(size):
                if objid in offsets:
                    out += b"%010d 00000 n \n" % offsets[objid]
                else:
                    out += b"0000000000 65535 f \n"
            out += b"trailer\n<< /Size %d %s>>\n" % (size, keys)
        else:
            xrefid = max(set(offsets) | set(self.compressed)) + 1
            size = xrefid + 1
            startxref = len(out)
            offsets[xrefid] = startxref
            rows = b""
            for objid in range(size):
                if objid in offsets:
                    rows += bytes((1,)) + offsets[objid].to_bytes(4, "big") + b"\0\0"
                elif objid in self.compressed:
                    (strmid, index) = self.compressed[objid]
                    rows += bytes((2,)) + strmid.to_bytes(4, "big")
                    rows += index.to_bytes(2, "big")
                else:
                    rows += b"\0\0\0\0\0\xff\xff"
            out += b"%d 0 obj\n<< /Type /XRef /Size %d /W [1 4 2] /Length %d %s>>\n" % (
                xrefid,
                size,
                len(rows),
                keys,
            )
            out += b"stream\n" + rows + b"\nendstream\nendobj\n"
        out += b"startxref\n%d\n%%%%EOF\n" % startxref
        return out


def find_startxref(data: bytes) -> int:
    return int(re.findall(rb"startxref\s+(\d+)", data)[-1])


def append_update(
    data: bytes,
    objects: dict[int, bytes],
    root: int = 1,
    info: int | None = None,
    trailer_extra: bytes = b"",
) -> bytes:
    """Appends an incremental update that (re)defines objects."""
    prev = find_startxref(data)
    out = data
    offsets = {}
    for objid, body in sorted(objects.items()):
        offsets[objid] = len(out)
        out += b"%d 0 obj\n%s\nendobj\n" % (objid, body)
    startxref = len(out)
    out += b"xref\n"
    for objid, offset in offsets.items():
        out += b"%d 1\n%010d 00000 n \n" % (objid, offset)
    keys = b"/Root %d 0 R /Prev %d " % (root, prev)
    if info is not None:
        keys += b"/Info %d 0 R " % info
    size = max(offsets) + 1
    out += b"trailer\n<< /Size %d %s%s>>\n" % (size, keys, trailer_extra)
    out += b"startxref\n%d\n%%%%EOF\n" % startxref
    return out


def make_pdf(
    contents: Iterable[bytes],
    font: bytes = HELVETICA,
    xref: str = "table",
    info: bytes | None = None,
    compress: bool = False,
) -> bytes:
    """A document with one page per content stream.

    Object 1 is the catalog, 2 the page tree, 3 the font /F1 shared
    through the resources of the page tree.
    """
    builder = PDFBuilder()
    builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
    builder.add(font, 3)
    kids = []
    for content in contents:
        strmid = builder.add_stream(content, compress=compress)
        kids.append(builder.add(b"<< /Type /Page /Parent 2 0 R /Contents %d 0 R >>" % strmid))
    builder.add(
        b"<< /Type /Pages /Kids [%s] /Count %d "
        b"/Resources << /Font << /F1 3 0 R >> >> /MediaBox [0 0 612 792] >>"
        % (b" ".join(b"%d 0 R" % kid for kid in kids), len(kids)),
        2,
    )
    infoid = None
    if info is not None:
        infoid = builder.add(info)
    return builder.build(info=infoid, xref=xref)


def widths_font(widths: dict[str, int], basefont: bytes = b"Helvetica") -> bytes:
    """A Type1 font dictionary with an explicit /Widths array."""
    codes = [ord(c) for c in widths]
    first = min(codes)
    array = [0] * (max(codes) - first + 1)
    for c, w in widths.items():
        array[ord(c) - first] = w
    return b"<< /Type /Font /Subtype /Type1 /BaseFont /%s /FirstChar %d /Widths [%s] >>" % (
        basefont,
        first,
        b" ".join(b"%d" % w for w in array),
    )
