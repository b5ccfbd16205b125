"""Mappings from Adobe glyph names to Unicode characters.

Covers the glyph names used by the Latin text encodings
(StandardEncoding, WinAnsiEncoding, MacRomanEncoding, PDFDocEncoding),
the common ligatures and the Mac Roman symbol set. Names of the form
uniXXXX and uXXXX are handled by encodingdb.name2unicode.

Reference: https://github.com/adobe-type-tools/agl-aglfn
"""

import string

# glyph names of the code points 0x20 to 0x7e, in order
ASCII_NAMES = (
    "space exclam quotedbl numbersign dollar percent ampersand quotesingle "
    "parenleft parenright asterisk plus comma hyphen period slash "
    "zero one two three four five six seven eight nine "
    "colon semicolon less equal greater question at "
    + " ".join(string.ascii_uppercase)
    + " bracketleft backslash bracketright asciicircum underscore grave "
    + " ".join(string.ascii_lowercase)
    + " braceleft bar braceright asciitilde"
).split()

# glyph names of the code points 0xa1 to 0xff, in order
LATIN1_NAMES = (
    "exclamdown cent sterling currency yen brokenbar section dieresis "
    "copyright ordfeminine guillemotleft logicalnot sfthyphen registered macron "
    "degree plusminus twosuperior threesuperior acute mu paragraph "
    "periodcentered cedilla onesuperior ordmasculine guillemotright "
    "onequarter onehalf threequarters questiondown "
    "Agrave Aacute Acircumflex Atilde Adieresis Aring AE Ccedilla "
    "Egrave Eacute Ecircumflex Edieresis Igrave Iacute Icircumflex Idieresis "
    "Eth Ntilde Ograve Oacute Ocircumflex Otilde Odieresis multiply "
    "Oslash Ugrave Uacute Ucircumflex Udieresis Yacute Thorn germandbls "
    "agrave aacute acircumflex atilde adieresis aring ae ccedilla "
    "egrave eacute ecircumflex edieresis igrave iacute icircumflex idieresis "
    "eth ntilde ograve oacute ocircumflex otilde odieresis divide "
    "oslash ugrave uacute ucircumflex udieresis yacute thorn ydieresis"
).split()

glyphname2unicode: dict[str, str] = {
    name: chr(code) for (code, name) in enumerate(ASCII_NAMES, 0x20)
}
glyphname2unicode.update(
    (name, chr(code)) for (code, name) in enumerate(LATIN1_NAMES, 0xA1)
)
glyphname2unicode.update(
    {
        "nbspace": " ",
        "space": " ",
        "quoteleft": "‘",
        "quoteright": "’",
        "dotlessi": "ı",
        "Lslash": "Ł",
        "lslash": "ł",
        "OE": "Œ",
        "oe": "œ",
        "Scaron": "Š",
        "scaron": "š",
        "Ydieresis": "Ÿ",
        "Zcaron": "Ž",
        "zcaron": "ž",
        "florin": "ƒ",
        "circumflex": "ˆ",
        "caron": "ˇ",
        "breve": "˘",
        "dotaccent": "˙",
        "ring": "˚",
        "ogonek": "˛",
        "tilde": "˜",
        "hungarumlaut": "˝",
        "Omega": "Ω",
        "Delta": "∆",
        "pi": "π",
        "endash": "–",
        "emdash": "—",
        "quotesinglbase": "‚",
        "quotedblleft": "“",
        "quotedblright": "”",
        "quotedblbase": "„",
        "dagger": "†",
        "daggerdbl": "‡",
        "bullet": "•",
        "ellipsis": "…",
        "perthousand": "‰",
        "guilsinglleft": "‹",
        "guilsinglright": "›",
        "fraction": "⁄",
        "Euro": "€",
        "trademark": "™",
        "partialdiff": "∂",
        "product": "∏",
        "summation": "∑",
        "minus": "−",
        "radical": "√",
        "infinity": "∞",
        "integral": "∫",
        "approxequal": "≈",
        "notequal": "≠",
        "lessequal": "≤",
        "greaterequal": "≥",
        "lozenge": "◊",
        "apple": "\uf8ff",
        "ff": "ﬀ",
        "fi": "ﬁ",
        "fl": "ﬂ",
        "ffi": "ﬃ",
        "ffl": "ﬄ",
    },
)
