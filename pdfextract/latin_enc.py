"""Built-in simple-font encodings.

StandardEncoding (PDF Reference, Appendix D) is only defined through glyph
names. WinAnsiEncoding and MacRomanEncoding are the Windows-1252 and
Mac OS Roman character sets, PDFDocEncoding the one in utils.
"""

from pdfextract.glyphlist import ASCII_NAMES
from pdfextract.utils import PDFDocEncoding

STANDARD_ENCODING: dict[int, str] = dict(enumerate(ASCII_NAMES, 0x20))
STANDARD_ENCODING.update(
    {
        0o047: "quoteright",
        0o140: "quoteleft",
        0o241: "exclamdown",
        0o242: "cent",
        0o243: "sterling",
        0o244: "fraction",
        0o245: "yen",
        0o246: "florin",
        0o247: "section",
        0o250: "currency",
        0o251: "quotesingle",
        0o252: "quotedblleft",
        0o253: "guillemotleft",
        0o254: "guilsinglleft",
        0o255: "guilsinglright",
        0o256: "fi",
        0o257: "fl",
        0o261: "endash",
        0o262: "dagger",
        0o263: "daggerdbl",
        0o264: "periodcentered",
        0o266: "paragraph",
        0o267: "bullet",
        0o270: "quotesinglbase",
        0o271: "quotedblbase",
        0o272: "quotedblright",
        0o273: "guillemotright",
        0o274: "ellipsis",
        0o275: "perthousand",
        0o277: "questiondown",
        0o301: "grave",
        0o302: "acute",
        0o303: "circumflex",
        0o304: "tilde",
        0o305: "macron",
        0o306: "breve",
        0o307: "dotaccent",
        0o310: "dieresis",
        0o312: "ring",
        0o313: "cedilla",
        0o315: "hungarumlaut",
        0o316: "ogonek",
        0o317: "caron",
        0o320: "emdash",
        0o341: "AE",
        0o343: "ordfeminine",
        0o350: "Lslash",
        0o351: "Oslash",
        0o352: "OE",
        0o353: "ordmasculine",
        0o361: "ae",
        0o365: "dotlessi",
        0o370: "lslash",
        0o371: "oslash",
        0o372: "oe",
        0o373: "germandbls",
    },
)


def codec_encoding(codec: str) -> dict[int, str]:
    """Code to character table of a single-byte Python codec, printable
    codes only."""
    table = {}
    for code in range(0x20, 0x100):
        try:
            table[code] = bytes((code,)).decode(codec)
        except UnicodeDecodeError:
            continue
    return table


WIN_ANSI_ENCODING = codec_encoding("cp1252")
# WinAnsiEncoding maps these to the plain forms
WIN_ANSI_ENCODING.update({0o240: " ", 0o255: "-"})
MAC_ROMAN_ENCODING = codec_encoding("mac_roman")
PDF_DOC_ENCODING = {
    code: c for (code, c) in enumerate(PDFDocEncoding) if code >= 0x18 and c != "�"
}
