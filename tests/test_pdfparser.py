import pytest

from pdfextract import settings
from pdfextract.pdfparser import (
    PDFMissingStreamKeyword,
    PDFParser,
    PDFSyntaxError,
    PDFUnexpectedToken,
)
from pdfextract.pdftypes import PDFObjRef, PDFStream
from pdfextract.psparser import LIT


class TestPDFParser:
    def test_indirect_object(self):
        parser = PDFParser(b"1 0 obj\n<< /A 2 0 R /B null /C true /D [1 0 R] >>\nendobj\n")
        (objid, genno, obj) = parser.read_indirect(0)
        assert (objid, genno) == (1, 0)
        assert obj["A"] == PDFObjRef(None, 2, 0)
        assert "B" not in obj
        assert obj["C"] is True
        assert obj["D"] == [PDFObjRef(None, 1, 0)]

    def test_reference_needs_two_integers(self, caplog):
        parser = PDFParser(b"[/A 0 R 3 0 R]")
        (_, obj) = parser.nextobject()
        assert obj == [LIT("A"), 0, PDFObjRef(None, 3, 0)]
        assert "Malformed reference" in caplog.text

    def test_stream_with_correct_length(self):
        parser = PDFParser(b"1 0 obj\n<< /Length 5 >>\nstream\nHello\nendstream\nendobj\n")
        (_, _, obj) = parser.read_indirect(0)
        assert isinstance(obj, PDFStream)
        assert obj.get_data() == b"Hello"

    def test_stream_with_crlf(self):
        parser = PDFParser(b"1 0 obj\n<< /Length 5 >>\nstream\r\nHello\r\nendstream\r\nendobj\n")
        (_, _, obj) = parser.read_indirect(0)
        assert obj.get_data() == b"Hello"

    def test_stream_with_wrong_length(self, caplog):
        data = b"1 0 obj\n<< /Length 3 >>\nstream\nHello world\nendstream\nendobj\n"
        (_, _, obj) = PDFParser(data).read_indirect(0)
        assert obj.get_data() == b"Hello world"
        assert len(obj.get_data()) == len(b"Hello world")
        assert "is wrong" in caplog.text

    def test_stream_with_too_large_length(self):
        data = b"1 0 obj\n<< /Length 500 >>\nstream\nHello world\nendstream\nendobj\n"
        (_, _, obj) = PDFParser(data).read_indirect(0)
        assert obj.get_data() == b"Hello world"

    def test_stream_without_length(self):
        data = b"1 0 obj\n<< >>\nstream\nabc\nendstream\nendobj\n"
        (_, _, obj) = PDFParser(data).read_indirect(0)
        assert obj.get_data() == b"abc"

    def test_declared_length_covers_embedded_keyword(self):
        body = b"xx endstream yy"
        data = b"1 0 obj\n<< /Length %d >>\nstream\n%s\nendstream\nendobj\n" % (
            len(body),
            body,
        )
        (_, _, obj) = PDFParser(data).read_indirect(0)
        assert obj.get_data() == body

    def test_missing_endobj(self, caplog):
        parser = PDFParser(b"1 0 obj\n42\n2 0 obj\n43\nendobj\n")
        assert parser.read_indirect(0) == (1, 0, 42)
        assert "Missing endobj" in caplog.text

    def test_not_an_object(self):
        with pytest.raises(PDFUnexpectedToken) as exc_info:
            PDFParser(b"1 0 xref").read_indirect(0)
        assert exc_info.value.expected == "obj"
        assert exc_info.value.pos == 4

    def test_endstream_without_stream(self):
        with pytest.raises(PDFMissingStreamKeyword):
            PDFParser(b"1 endstream").nextobject()

    def test_strict_requires_length(self, monkeypatch):
        monkeypatch.setattr(settings, "STRICT", True)
        parser = PDFParser(b"1 0 obj\n<< >>\nstream\nabc\nendstream\nendobj\n")
        with pytest.raises(PDFSyntaxError):
            parser.read_indirect(0)

    def test_stream_without_dictionary(self):
        parser = PDFParser(b"3 0 obj stream\nabc\nendstream endobj")
        with pytest.raises(PDFUnexpectedToken) as exc_info:
            parser.read_indirect(0)
        assert exc_info.value.expected == "stream dictionary"
        assert exc_info.value.pos == 8
