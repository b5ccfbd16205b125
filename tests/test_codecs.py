"""Test of the stream codecs other than Flate"""

from pdfextract.ascii85 import ascii85decode, asciihexdecode
from pdfextract.lzw import lzwdecode
from pdfextract.runlength import rldecode


class TestAscii85:
    def test_ascii85decode(self):
        """The sample string is taken from:
        http://en.wikipedia.org/w/index.php?title=Ascii85"""
        assert ascii85decode(b"9jqo^BlbD-BleB1DJ+*+F(f,q") == b"Man is distinguished"
        assert ascii85decode(b"E,9)oF*2M7/c~>") == b"pleasure."

    def test_ascii85decode_with_markers_and_whitespace(self):
        assert ascii85decode(b"<~E,9)o\nF*2M7/c~>") == b"pleasure."

    def test_asciihexdecode(self):
        assert asciihexdecode(b"61 62 2e6364   65") == b"ab.cde"
        assert asciihexdecode(b"61 62 2e6364   657>") == b"ab.cdep"
        assert asciihexdecode(b"7>") == b"p"


class TestLzw:
    def test_lzwdecode(self):
        assert (
            lzwdecode(b"\x80\x0b\x60\x50\x22\x0c\x0c\x85\x01")
            == b"\x2d\x2d\x2d\x2d\x2d\x41\x2d\x2d\x2d\x42"
        )

    def test_lzwdecode_stops_at_corrupt_code(self, caplog):
        # clear table, "A", then a code far beyond the table
        assert lzwdecode(b"\x80\x10\x7f\xe0") == b"A"
        assert "Invalid code" in caplog.text


class TestRunlength:
    def test_rldecode(self):
        assert rldecode(b"\x05123456\xfa7\x04abcde\x80junk") == b"1234567777777abcde"

    def test_rldecode_truncated(self):
        assert rldecode(b"\x05123") == b"123"
