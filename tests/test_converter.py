import io
from tempfile import TemporaryFile

import pytest

from pdfextract.converter import CharRecord, TextConverter, records_to_text
from pdfextract.pdfinterp import PDFResourceManager


def char(c, x, y=700.0, size=12.0, adv=6.0, spacewidth=3.0):
    return CharRecord(
        char=c,
        x=x,
        y=y,
        fontname="Helvetica",
        size=size,
        adv=adv,
        spacewidth=spacewidth,
        cid=ord(c),
    )


class TestRecordsToText:
    def test_empty_page(self):
        assert records_to_text([]) == ""

    def test_adjacent_characters(self):
        records = [char("a", 100), char("b", 106), char("c", 112)]
        assert records_to_text(records) == "abc\n"

    def test_gap_becomes_space(self):
        records = [char("a", 100), char("b", 108)]
        assert records_to_text(records) == "a b\n"

    def test_small_gap_is_not_a_space(self):
        records = [char("a", 100), char("b", 107.4)]
        assert records_to_text(records) == "ab\n"

    def test_explicit_space_is_kept_once(self):
        records = [char("a", 100), char(" ", 106), char("b", 120)]
        assert records_to_text(records) == "a b\n"

    def test_new_line(self):
        records = [char("a", 100), char("b", 100, y=686)]
        assert records_to_text(records) == "a\nb\n"

    def test_small_baseline_shift_stays_on_line(self):
        records = [char("a", 100), char("2", 106, y=704, size=8)]
        assert records_to_text(records) == "a2\n"

    def test_content_order(self):
        """Text comes out in the order it is drawn, not sorted by position"""
        records = [char("b", 200), char("a", 100, y=750)]
        assert records_to_text(records) == "b\na\n"

    def test_backwards_move_on_the_same_line(self):
        records = [char("b", 200), char("a", 100)]
        assert records_to_text(records) == "ba\n"


class TestTextConverter:
    @pytest.mark.parametrize(
        ("outfp", "binary"),
        [
            (io.BytesIO(), True),
            (io.StringIO(), False),
        ],
    )
    def test_is_binary_stream(self, outfp, binary):
        assert TextConverter._is_binary_stream(outfp) is binary

    def test_file_modes(self, tmp_path):
        with open(tmp_path / "out.txt", "w") as fp:
            assert not TextConverter._is_binary_stream(fp)
        with open(tmp_path / "out.bin", "wb") as fp:
            assert TextConverter._is_binary_stream(fp)
        with TemporaryFile(mode="w") as fp:
            assert not TextConverter._is_binary_stream(fp)

    def test_write_text_binary(self):
        outfp = io.BytesIO()
        converter = TextConverter(PDFResourceManager(), outfp, codec="latin-1")
        converter.write_text("caf\xe9 •")
        assert outfp.getvalue() == b"caf\xe9 "

    def test_write_text(self):
        outfp = io.StringIO()
        converter = TextConverter(PDFResourceManager(), outfp)
        converter.write_text("caf\xe9 •")
        assert outfp.getvalue() == "caf\xe9 •"

    def test_end_page(self):
        outfp = io.StringIO()
        converter = TextConverter(PDFResourceManager(), outfp)
        converter.records = [char("a", 100), char("b", 106)]
        converter.end_page(None)
        converter.records = []
        converter.end_page(None)
        assert outfp.getvalue() == "ab\n\f\f"
        assert converter.pageno == 2
