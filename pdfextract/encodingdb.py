import logging
import re
from collections.abc import Iterable

from pdfextract.glyphlist import glyphname2unicode
from pdfextract.latin_enc import (
    MAC_ROMAN_ENCODING,
    PDF_DOC_ENCODING,
    STANDARD_ENCODING,
    WIN_ANSI_ENCODING,
)
from pdfextract.pdfexceptions import PDFKeyError
from pdfextract.psparser import PSLiteral

HEXADECIMAL = re.compile(r"[0-9a-fA-F]+")

log = logging.getLogger(__name__)


def name2unicode(name: str) -> str:
    """Converts Adobe glyph names to Unicode numbers.

    In contrast to the specification, this raises a KeyError instead of return
    an empty string when the key is unknown.
    This way the caller must explicitly define what to do
    when there is not a match.

    Reference:
    https://github.com/adobe-type-tools/agl-specification#2-the-mapping

    :returns unicode character if name resembles something,
    otherwise a KeyError
    """
    if not isinstance(name, str):
        raise PDFKeyError(
            f'Could not convert unicode name "{name}" to character because '
            f"it should be of type str but is of type {type(name)}",
        )

    name = name.split(".")[0]
    components = name.split("_")

    if len(components) > 1:
        return "".join(map(name2unicode, components))

    elif name in glyphname2unicode:
        return glyphname2unicode[name]

    elif name.startswith("uni"):
        name_without_uni = name[3:]
        if HEXADECIMAL.fullmatch(name_without_uni) and len(name_without_uni) % 4 == 0:
            unicode_digits = [
                int(name_without_uni[i : i + 4], base=16)
                for i in range(0, len(name_without_uni), 4)
            ]
            for digit in unicode_digits:
                raise_key_error_for_invalid_unicode(digit)
            return "".join(map(chr, unicode_digits))

    elif name.startswith("u"):
        name_without_u = name[1:]
        if HEXADECIMAL.fullmatch(name_without_u) and 4 <= len(name_without_u) <= 6:
            unicode_digit = int(name_without_u, base=16)
            raise_key_error_for_invalid_unicode(unicode_digit)
            return chr(unicode_digit)

    raise PDFKeyError(
        f'Could not convert unicode name "{name}" to character because '
        "it does not match specification",
    )


def raise_key_error_for_invalid_unicode(unicode_digit: int) -> None:
    """Unicode values should not be in the range D800 through DFFF because
    that is used for surrogate pairs in UTF-16

    :raises KeyError if unicode digit is invalid
    """
    if 55295 < unicode_digit < 57344 or unicode_digit > 0x10FFFF:
        raise PDFKeyError(
            "Unicode digit %d is invalid because "
            "it is in the range D800 through DFFF" % unicode_digit,
        )


class EncodingDB:
    std2unicode: dict[int, str] = {}
    for code, glyphname in STANDARD_ENCODING.items():
        std2unicode[code] = name2unicode(glyphname)

    encodings = {
        "StandardEncoding": std2unicode,
        "MacRomanEncoding": MAC_ROMAN_ENCODING,
        "WinAnsiEncoding": WIN_ANSI_ENCODING,
        "PDFDocEncoding": PDF_DOC_ENCODING,
    }

    @classmethod
    def get_encoding(
        cls,
        name: str,
        diff: Iterable[object] | None = None,
    ) -> dict[int, str]:
        """Code to character table of a built-in encoding, changed by a
        /Differences array such as ``[39 /quotesingle 96 /grave]``."""
        cid2unicode = cls.encodings.get(name, cls.std2unicode)
        if diff:
            cid2unicode = cid2unicode.copy()
            cid = 0
            for x in diff:
                if isinstance(x, int):
                    cid = x
                elif isinstance(x, PSLiteral):
                    try:
                        cid2unicode[cid] = name2unicode(str(x.name))
                    except (KeyError, ValueError) as e:
                        # the code no longer shows the base encoding's glyph
                        cid2unicode.pop(cid, None)
                        log.debug(str(e))
                    cid += 1
        return cid2unicode
