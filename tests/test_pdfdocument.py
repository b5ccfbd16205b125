import pytest

from pdfextract import settings
from pdfextract.pdfdocument import (
    PDFDocument,
    PDFEncryptedDocument,
    PDFHeaderError,
    PDFNoValidXRef,
    PDFXRefCycle,
    XRefCompressed,
    XRefFree,
    XRefInUse,
)
from pdfextract.pdfexceptions import PDFObjectNotFound, PDFUnsupportedInput
from pdfextract.pdfparser import PDFParser
from pdfextract.pdftypes import PDFObjRef, PDFStream, resolve_all
from pdfextract.psparser import LIT
from tests.helpers import PDFBuilder, append_update, find_startxref


def open_doc(data: bytes, **kwargs) -> PDFDocument:
    return PDFDocument(PDFParser(data), **kwargs)


def sample_builder() -> PDFBuilder:
    builder = PDFBuilder()
    builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
    builder.add(b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>", 2)
    builder.add(b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 200 100] /Contents 4 0 R >>", 3)
    builder.add_stream(b"BT /F1 9 Tf (x) Tj ET", objid=4)
    builder.add(b"<< /Title (Sample) /Author <FEFF0041> >>", 5)
    builder.add(b"[1 2.5 (three) /Four null true]", 6)
    return builder


class TestPdfDocument:
    def test_version(self):
        doc = open_doc(sample_builder().build(info=5))
        assert doc.version == "1.7"

    def test_catalog_and_info(self):
        doc = open_doc(sample_builder().build(info=5))
        assert doc.catalog["Type"] is LIT("Catalog")
        assert doc.info == [{"Title": b"Sample", "Author": b"\xfe\xff\x00A"}]

    def test_get_objids(self):
        doc = open_doc(sample_builder().build())
        assert doc.get_objids() == [1, 2, 3, 4, 5, 6]

    def test_getobj_is_cached(self):
        doc = open_doc(sample_builder().build())
        obj = doc.getobj(6)
        assert obj == [1, 2.5, b"three", LIT("Four"), None, True]
        assert doc.getobj(6) is obj

    def test_getobj_without_caching(self):
        doc = open_doc(sample_builder().build(), caching=False)
        assert doc.getobj(6) == doc.getobj(6)
        assert doc.getobj(6) is not doc.getobj(6)

    def test_stream_gets_objid(self):
        doc = open_doc(sample_builder().build())
        stream = doc.getobj(4)
        assert isinstance(stream, PDFStream)
        assert stream.objid == 4
        assert stream.get_data() == b"BT /F1 9 Tf (x) Tj ET"

    def test_missing_object_is_none(self, caplog):
        doc = open_doc(sample_builder().build())
        assert doc.getobj(42) is None
        assert PDFObjRef(doc, 42).resolve() is None
        assert "not in the cross-reference table" in caplog.text

    def test_missing_object_strict(self, monkeypatch):
        doc = open_doc(sample_builder().build())
        monkeypatch.setattr(settings, "STRICT", True)
        with pytest.raises(PDFObjectNotFound):
            doc.getobj(42)

    def test_free_entry_is_none(self):
        builder = sample_builder()
        builder.add(b"(gone)", 8)
        doc = open_doc(builder.build())
        assert isinstance(doc.xref_table[7], XRefFree)
        assert doc.getobj(7) is None
        assert doc.getobj(8) == b"gone"

    def test_xref_stream_equals_table(self):
        builder = sample_builder()
        doc_table = open_doc(builder.build(info=5, xref="table"))
        doc_stream = open_doc(builder.build(info=5, xref="stream"))
        assert doc_table.get_objids() == [1, 2, 3, 4, 5, 6]
        # the xref stream itself is object 7
        assert doc_stream.get_objids() == [1, 2, 3, 4, 5, 6, 7]
        for objid in (1, 2, 3, 5, 6):
            assert doc_table.getobj(objid) == doc_stream.getobj(objid)
        assert doc_table.getobj(4).get_data() == doc_stream.getobj(4).get_data()
        assert doc_stream.trailer["Root"] == PDFObjRef(None, 1)
        assert doc_table.info == doc_stream.info

    def test_object_stream(self):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(b"<< /Type /Pages /Kids [] /Count 0 >>", 2)
        strmid = builder.add_objstm(
            {4: b"<< /Name (in stream) >>", 5: b"[4 0 R 42]"},
            compress=True,
        )
        doc = open_doc(builder.build(xref="stream"))
        assert doc.xref_table[5] == XRefCompressed(strmid, 1)
        assert doc.getobj(4) == {"Name": b"in stream"}
        assert doc.getobj(5) == [PDFObjRef(None, 4), 42]
        assert resolve_all(doc.getobj(5)) == [{"Name": b"in stream"}, 42]

    def test_hybrid_file(self):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(b"<< /Type /Pages /Kids [] /Count 0 >>", 2)
        strmid = builder.add_objstm({4: b"<< /Title (Hybrid) >>"})
        data = builder.build(xref="stream", trailer_extra=b"/Origin (stream) /Extra 1 ")
        stmpos = find_startxref(data)
        # a classical table whose /XRefStm points at the xref stream; object 4 is free in it
        data = data[: data.rindex(b"startxref")]
        startxref = len(data)
        data += b"xref\n0 5\n0000000000 65535 f \n"
        for objid in (1, 2, strmid):
            data += b"%010d 00000 n \n" % (data.index(b"\n%d 0 obj" % objid) + 1)
        data += b"0000000000 65535 f \n"
        data += b"trailer\n<< /Size 5 /Root 1 0 R /Info 4 0 R /Origin (table) "
        data += b"/XRefStm %d >>\n" % stmpos
        data += b"startxref\n%d\n%%%%EOF\n" % startxref

        doc = open_doc(data)
        assert len(doc.xrefs) == 2
        assert doc.xref_table[4] == XRefCompressed(strmid, 0)
        assert doc.getobj(4) == {"Title": b"Hybrid"}
        assert doc.info == [{"Title": b"Hybrid"}]
        assert doc.trailer["Origin"] == b"table"
        assert "Extra" not in doc.trailer
        assert "XRefStm" not in doc.trailer

    def test_incremental_update_newest_wins(self):
        data = sample_builder().build(info=5)
        data = append_update(data, {6: b"(updated)", 7: b"<< /Title (New) >>"}, info=7)
        doc = open_doc(data)
        assert len(doc.xrefs) == 2
        assert doc.getobj(6) == b"updated"
        assert doc.getobj(3)["MediaBox"] == [0, 0, 200, 100]
        assert isinstance(doc.xref_table[6], XRefInUse)
        assert doc.trailer["Info"] == PDFObjRef(None, 7)
        assert "Prev" not in doc.trailer
        assert doc.info == [{"Title": b"New"}, {"Title": b"Sample", "Author": b"\xfe\xff\x00A"}]

    def test_prev_cycle(self):
        builder = sample_builder()
        xrefpos = find_startxref(builder.build())
        with pytest.raises(PDFXRefCycle) as exc_info:
            open_doc(builder.build(prev=xrefpos))
        assert exc_info.value.pos == xrefpos

    def test_prev_cycle_over_two_sections(self):
        first = sample_builder().build(trailer_extra=b"/Prev 0000000000 ")
        data = append_update(first, {6: b"(updated)"})
        update_pos = find_startxref(data)
        # the first section points back at the update
        cyclic = data.replace(b"/Prev 0000000000 ", b"/Prev %010d " % update_pos, 1)
        with pytest.raises(PDFXRefCycle) as exc_info:
            open_doc(cyclic)
        assert exc_info.value.pos == update_pos

    def test_encrypted_document(self):
        builder = sample_builder()
        builder.add(b"<< /Filter /Standard /V 1 /R 2 /O <00> /U <00> /P -4 >>", 9)
        data = builder.build(trailer_extra=b"/Encrypt 9 0 R /ID [<01> <01>] ")
        with pytest.raises(PDFEncryptedDocument) as exc_info:
            open_doc(data)
        assert isinstance(exc_info.value, PDFUnsupportedInput)

    def test_header_required(self):
        data = sample_builder().build().replace(b"%PDF-1.7", b"%XYZ-1.7", 1)
        with pytest.raises(PDFHeaderError):
            open_doc(data)

    def test_header_after_junk(self):
        data = b"garbage before the header\n" + sample_builder().build()
        # offsets are now wrong, the objects are found by scanning
        doc = open_doc(data)
        assert doc.version == "1.7"
        assert doc.fallback
        assert doc.getobj(6) == [1, 2.5, b"three", LIT("Four"), None, True]

    def test_fallback_without_xref(self, caplog):
        data = sample_builder().build(info=5)
        data = data[: data.index(b"xref\n")] + b"trailer\n<< /Root 1 0 R /Info 5 0 R >>\n%%EOF\n"
        doc = open_doc(data)
        assert doc.fallback
        assert doc.get_objids() == [1, 2, 3, 4, 5, 6]
        assert doc.catalog["Type"] is LIT("Catalog")
        assert doc.info == [{"Title": b"Sample", "Author": b"\xfe\xff\x00A"}]
        assert "scanning the file for objects" in caplog.text

    def test_fallback_disabled(self):
        data = sample_builder().build()
        data = data[: data.index(b"xref\n")]
        with pytest.raises(PDFNoValidXRef):
            open_doc(data, fallback=False)

    def test_not_a_pdf(self):
        with pytest.raises(PDFNoValidXRef):
            open_doc(b"%PDF-1.4\nnothing to see here\n")

    def test_wrong_length_in_document(self, caplog):
        builder = sample_builder()
        builder.add(b"<< /Length 2 >>\nstream\nHello world\nendstream", 4)
        doc = open_doc(builder.build())
        assert doc.getobj(4).get_data() == b"Hello world"

    def test_stream_without_dictionary_is_none(self, caplog):
        builder = sample_builder()
        builder.add(b"stream\nabc\nendstream", 6)
        doc = open_doc(builder.build())
        assert doc.getobj(6) is None
        assert "stream dictionary" in caplog.text
