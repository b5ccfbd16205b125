from pdfextract.pdfdocument import PDFDocument
from pdfextract.pdfpage import US_LETTER, PDFPage
from pdfextract.pdfparser import PDFParser
from pdfextract.pdftypes import PDFObjRef, dict_value
from pdfextract.psparser import LIT
from tests.helpers import PDFBuilder, make_pdf


def get_pages(data: bytes) -> list[PDFPage]:
    return list(PDFPage.create_pages(PDFDocument(PDFParser(data))))


class TestPdfPage:
    def test_page_order(self):
        pages = get_pages(make_pdf([b"(1) Tj", b"(2) Tj", b"(3) Tj"]))
        contents = [page.contents[0].resolve().get_data() for page in pages]
        assert contents == [b"(1) Tj", b"(2) Tj", b"(3) Tj"]

    def test_nested_page_tree_order(self):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(b"<< /Type /Pages /Kids [3 0 R 4 0 R 5 0 R] /Count 3 >>", 2)
        builder.add(b"<< /Type /Page /Parent 2 0 R /Rotate 90 >>", 3)
        builder.add(b"<< /Type /Pages /Parent 2 0 R /Kids [6 0 R] /Count 1 >>", 4)
        builder.add(b"<< /Type /Page /Parent 2 0 R >>", 5)
        builder.add(b"<< /Type /Page /Parent 4 0 R /Rotate -90 >>", 6)
        pages = get_pages(builder.build())
        assert [page.pageid for page in pages] == [3, 6, 5]
        assert [page.rotate for page in pages] == [90, 270, 0]

    def test_inherited_resources(self):
        """A page without its own /Resources uses those of the page tree"""
        pages = get_pages(make_pdf([b""]))
        font = pages[0].resources["Font"]["F1"]
        assert isinstance(font, PDFObjRef)
        assert dict_value(font)["BaseFont"] is LIT("Helvetica")
        assert pages[0].mediabox == (0.0, 0.0, 612.0, 792.0)
        assert pages[0].cropbox == pages[0].mediabox

    def test_own_attributes_override_inherited_ones(self):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(
            b"<< /Type /Pages /Kids [3 0 R] /Count 1 /MediaBox [0 0 612 792] "
            b"/Resources << /Font << /F1 5 0 R >> >> >>",
            2,
        )
        builder.add(
            b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 300 400] "
            b"/CropBox [10 10 290 390] /Resources << /Font << /F2 5 0 R >> >> >>",
            3,
        )
        builder.add(b"<< /Type /Font /Subtype /Type1 /BaseFont /Courier >>", 5)
        (page,) = get_pages(builder.build())
        assert page.mediabox == (0.0, 0.0, 300.0, 400.0)
        assert page.cropbox == (10.0, 10.0, 290.0, 390.0)
        assert list(page.resources["Font"]) == ["F2"]

    def test_missing_mediabox(self, caplog):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>", 2)
        builder.add(b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 zero] >>", 3)
        (page,) = get_pages(builder.build())
        assert page.mediabox == US_LETTER
        assert "Invalid MediaBox" in caplog.text

    def test_page_tree_cycle(self, caplog):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(b"<< /Type /Pages /Kids [3 0 R 4 0 R] /Count 2 >>", 2)
        builder.add(b"<< /Type /Page /Parent 2 0 R >>", 3)
        builder.add(b"<< /Type /Pages /Parent 2 0 R /Kids [2 0 R 3 0 R] /Count 1 >>", 4)
        pages = get_pages(builder.build())
        assert [page.pageid for page in pages] == [3]
        assert "visits object 2 twice" in caplog.text
        assert "visits object 3 twice" in caplog.text

    def test_missing_page_tree(self, caplog):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog >>", 1)
        builder.add(b"<< /Type /Page /MediaBox [0 0 10 10] >>", 2)
        builder.add(b"<< /Type /Page /MediaBox [0 0 20 20] >>", 3)
        pages = get_pages(builder.build())
        assert [page.pageid for page in pages] == [2, 3]
        assert "No usable /Pages tree" in caplog.text

    def test_contents_array(self):
        builder = PDFBuilder()
        builder.add(b"<< /Type /Catalog /Pages 2 0 R >>", 1)
        builder.add(b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>", 2)
        builder.add(b"<< /Type /Page /Parent 2 0 R /Contents [4 0 R 5 0 R] >>", 3)
        builder.add_stream(b"q", objid=4)
        builder.add_stream(b"Q", objid=5)
        (page,) = get_pages(builder.build())
        assert page.contents == [PDFObjRef(None, 4), PDFObjRef(None, 5)]
