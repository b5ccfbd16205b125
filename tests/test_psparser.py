import logging

import pytest

from pdfextract import settings
from pdfextract.psparser import (
    KWD,
    LIT,
    PSEOF,
    PSInvalidNumber,
    PSLexer,
    PSStackParser,
    PSUnterminatedArray,
    PSUnterminatedDictionary,
    PSUnterminatedHexString,
    PSUnterminatedString,
)

logger = logging.getLogger(__name__)


def tokens(data: bytes) -> list:
    return [tok for (_, tok) in PSLexer(data)]


class TestPSLexer:
    """Tokenizing of the building blocks of PDF files and content streams"""

    TESTDATA = rb"""%PDF-1.7
begin end
/a/BCD /Some_Name /Name#20Test
0 +1 -2 .5 1.234 4.
(abc) () (abc ( def ) ghi)
(def\040\0\0404ghi) (bach\\slask) (foo\nbaa)
(this % is not a comment.)
(foo
baa)
(foo\
baa)
<> <20> < 40 4020 > <414>
true false
[ 1 (z) ] << /foo (bar) >>
"""

    TOKENS = [
        (9, KWD(b"begin")),
        (15, KWD(b"end")),
        (19, LIT("a")),
        (21, LIT("BCD")),
        (26, LIT("Some_Name")),
        (37, LIT("Name Test")),
        (50, 0),
        (52, 1),
        (55, -2),
        (58, 0.5),
        (61, 1.234),
        (67, 4.0),
        (70, b"abc"),
        (76, b""),
        (79, b"abc ( def ) ghi"),
        (97, b"def \x00 4ghi"),
        (117, b"bach\\slask"),
        (131, b"foo\nbaa"),
        (142, b"this % is not a comment."),
        (169, b"foo\nbaa"),
        (179, b"foobaa"),
        (190, b""),
        (193, b" "),
        (198, b"@@ "),
        (210, b"A@"),
        (216, True),
        (221, False),
        (227, KWD(b"[")),
        (229, 1),
        (231, b"z"),
        (235, KWD(b"]")),
        (237, KWD(b"<<")),
        (240, LIT("foo")),
        (245, b"bar"),
        (251, KWD(b">>")),
    ]

    def test_tokens(self):
        lexer = PSLexer(self.TESTDATA)
        assert list(lexer) == self.TOKENS

    def test_name_with_hex_escape(self):
        assert list(PSLexer(b"/Name#20Test")) == [(0, LIT("Name Test"))]

    @pytest.mark.parametrize(
        ("data", "expected"),
        [
            (rb"(a\(b\)c)", b"a(b)c"),
            (rb"(\n\r\t\b\f)", b"\n\r\t\b\f"),
            (rb"(\101\102)", b"AB"),
            (rb"(\0053)", b"\x053"),
            (rb"(\q)", b"q"),
            (b"(line\\\r\ncont)", b"linecont"),
            (b"(a\r\nb\rc)", b"a\nb\nc"),
            (b"<48 65 6c 6C 6f>", b"Hello"),
        ],
    )
    def test_strings(self, data: bytes, expected: bytes):
        assert tokens(data) == [expected]

    def test_numbers(self):
        assert tokens(b"1 -2 +3 .5 -.25 4. 0012") == [1, -2, 3, 0.5, -0.25, 4.0, 12]

    def test_comment_is_skipped(self):
        assert list(PSLexer(b"1 % a comment\n2")) == [(0, 1), (14, 2)]

    def test_nul_is_whitespace(self):
        assert tokens(b"1\x002") == [1, 2]

    def test_unterminated_string(self):
        lexer = PSLexer(b"  (abc")
        with pytest.raises(PSUnterminatedString) as exc_info:
            lexer.nexttoken()
        assert exc_info.value.pos == 2

    def test_unterminated_hex_string(self):
        with pytest.raises(PSUnterminatedHexString):
            PSLexer(b"<4142").nexttoken()

    def test_invalid_number(self):
        assert tokens(b"--5 . +") == [KWD(b"--"), 5, KWD(b"."), KWD(b"+")]

    def test_invalid_number_strict(self, monkeypatch):
        monkeypatch.setattr(settings, "STRICT", True)
        with pytest.raises(PSInvalidNumber):
            PSLexer(b"--5").nexttoken()

    def test_eof(self):
        lexer = PSLexer(b"  % nothing but a comment")
        with pytest.raises(PSEOF):
            lexer.nexttoken()

    def test_revreadlines(self):
        lexer = PSLexer(b"one\r\ntwo\rthree\n")
        assert list(lexer.revreadlines()) == [b"", b"three\n", b"two\r", b"one\r\n"]


class TestPSStackParser:
    def test_composite_objects(self):
        parser = PSStackParser(b"[1 (a) /B [2]] << /K /V /N [3] >>")
        assert parser.nextobject() == (0, [1, b"a", LIT("B"), [2]])
        assert parser.nextobject() == (15, {"K": LIT("V"), "N": [3]})
        with pytest.raises(PSEOF):
            parser.nextobject()

    def test_pending_objects_at_eof(self):
        parser = PSStackParser(b"1 2")
        assert parser.nextobject() == (0, 1)
        assert parser.nextobject() == (2, 2)

    def test_unterminated_array(self):
        with pytest.raises(PSUnterminatedArray):
            PSStackParser(b"[1 2").nextobject()

    def test_unterminated_dictionary(self):
        with pytest.raises(PSUnterminatedDictionary):
            PSStackParser(b"<< /A 1").nextobject()

    def test_odd_dictionary(self, caplog):
        parser = PSStackParser(b"<< /A 1 /B >>")
        assert parser.nextobject() == (0, {"A": 1})
        assert "Odd number of dictionary items" in caplog.text

    def test_unbalanced_close(self, caplog):
        parser = PSStackParser(b"1 ] 2")
        assert [parser.nextobject()[1], parser.nextobject()[1]] == [1, 2]
        assert "Unbalanced ']'" in caplog.text
