#!/usr/bin/env python3
import logging
import re
from binascii import unhexlify
from collections.abc import Iterator
from typing import Any, Generic, TypeVar, Union

from pdfextract import psexceptions, settings
from pdfextract.utils import choplist

log = logging.getLogger(__name__)


# Aliases so that callers only need to import from psparser
PSException = psexceptions.PSException
PSEOF = psexceptions.PSEOF
PSSyntaxError = psexceptions.PSSyntaxError
PSTypeError = psexceptions.PSTypeError
PSValueError = psexceptions.PSValueError
PSUnterminatedString = psexceptions.PSUnterminatedString
PSUnterminatedHexString = psexceptions.PSUnterminatedHexString
PSInvalidNumber = psexceptions.PSInvalidNumber
PSUnterminatedArray = psexceptions.PSUnterminatedArray
PSUnterminatedDictionary = psexceptions.PSUnterminatedDictionary


class PSObject:
    """Base class for all PS or PDF-related data types."""


class PSLiteral(PSObject):
    """A class that represents a PostScript literal.

    Postscript literals are used as identifiers, such as
    variable names, property names and dictionary keys.
    Literals are case sensitive and denoted by a preceding
    slash sign (e.g. "/Name")

    Note: Do not create an instance of PSLiteral directly.
    Always use PSLiteralTable.intern().
    """

    NameType = Union[str, bytes]

    def __init__(self, name: NameType) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"/{self.name!r}"


class PSKeyword(PSObject):
    """A class that represents a PostScript keyword.

    Keywords are the operators of content streams and the structural
    words of a PDF file (obj, endobj, stream, R, ...).

    Note: Do not create an instance of PSKeyword directly.
    Always use PSKeywordTable.intern().
    """

    def __init__(self, name: bytes) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"/{self.name!r}"


_SymbolT = TypeVar("_SymbolT", PSLiteral, PSKeyword)


class PSSymbolTable(Generic[_SymbolT]):
    """A utility class for storing PSLiteral/PSKeyword objects.

    Interned objects can be checked its identity with "is" operator.
    """

    def __init__(self, klass: type[_SymbolT]) -> None:
        self.dict: dict[PSLiteral.NameType, _SymbolT] = {}
        self.klass: type[_SymbolT] = klass

    def intern(self, name: PSLiteral.NameType) -> _SymbolT:
        if name in self.dict:
            lit = self.dict[name]
        else:
            # PSKeyword always takes bytes, PSLiteral either str or bytes
            lit = self.klass(name)  # type: ignore[arg-type]
            self.dict[name] = lit
        return lit


PSLiteralTable = PSSymbolTable(PSLiteral)
PSKeywordTable = PSSymbolTable(PSKeyword)
LIT = PSLiteralTable.intern
KWD = PSKeywordTable.intern
KEYWORD_PROC_BEGIN = KWD(b"{")
KEYWORD_PROC_END = KWD(b"}")
KEYWORD_ARRAY_BEGIN = KWD(b"[")
KEYWORD_ARRAY_END = KWD(b"]")
KEYWORD_DICT_BEGIN = KWD(b"<<")
KEYWORD_DICT_END = KWD(b">>")


def literal_name(x: Any) -> str:
    if isinstance(x, PSLiteral):
        if isinstance(x.name, str):
            return x.name
        try:
            return str(x.name, "utf-8")
        except UnicodeDecodeError:
            return str(x.name)
    else:
        if settings.STRICT:
            raise PSTypeError(f"Literal required: {x!r}")
        return str(x)


def keyword_name(x: Any) -> Any:
    if not isinstance(x, PSKeyword):
        if settings.STRICT:
            raise PSTypeError(f"Keyword required: {x!r}")
        return x
    return str(x.name, "utf-8", "ignore")


ESC_STRING = {
    b"b": 8,
    b"t": 9,
    b"n": 10,
    b"f": 12,
    b"r": 13,
    b"(": 40,
    b")": 41,
    b"\\": 92,
}

PSBaseParserToken = Union[float, bool, PSLiteral, PSKeyword, bytes]

# PDF whitespace includes NUL, which \s does not cover.
LEXER = re.compile(
    rb"""(?:
      (?P<whitespace> [\x00\s]+)
    | (?P<comment> %[^\r\n]*)
    | (?P<name> /(?: \#[A-Fa-f\d][A-Fa-f\d] | [^#/%\[\]()<>{}\x00\s])* )
    | (?P<number> [-+]? (?: \d+\.?\d* | \.\d+ ) )
    | (?P<badnumber> [-+.]+ )
    | (?P<keyword> [A-Za-z] [^#/%\[\]()<>{}\x00\s]*)
    | (?P<startstr> \([^()\\\r\n]*)
    | (?P<hexstr> <[A-Fa-f\d\x00\s]*>)
    | (?P<startdict> <<)
    | (?P<enddict> >>)
    | (?P<badhexstr> <)
    | (?P<other> .)
)
""",
    re.VERBOSE | re.DOTALL,
)
STRLEXER = re.compile(
    rb"""(?:
      (?P<octal> \\[0-7]{1,3})
    | (?P<linebreak> \\(?:\r\n?|\n))
    | (?P<escape> \\.)
    | (?P<parenleft> \()
    | (?P<parenright> \))
    | (?P<newline> \r\n?|\n)
    | (?P<other> [^()\\\r\n]+)
)""",
    re.VERBOSE | re.DOTALL,
)
HEXDIGIT = re.compile(rb"#([A-Fa-f\d][A-Fa-f\d])")
NONHEX = re.compile(rb"[^A-Fa-f\d]")
EOLR = re.compile(rb"\r\n?|\n")


class PSLexer:
    """Turns an in-memory buffer into a lazy sequence of (offset, token).

    The lexer is an iterator; it raises StopIteration at the end of the
    buffer. Malformed strings and numbers raise a PSLexError subclass
    carrying the offset where the bad token starts.
    """

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0
        self.end = len(data)

    def seek(self, pos: int) -> None:
        self.pos = pos

    def tell(self) -> int:
        return self.pos

    def read(self, pos: int, objlen: int) -> bytes:
        """Read data from a specified position, moving the current
        position to the end of this data."""
        self.pos = min(pos + objlen, self.end)
        return self.data[pos : self.pos]

    def nextline(self) -> tuple[int, bytes]:
        r"""Fetches a next line that ends either with \r, \n, or \r\n."""
        if self.pos >= self.end:
            raise PSEOF
        linepos = self.pos
        m = EOLR.search(self.data, self.pos)
        if m is None:
            self.pos = self.end
        else:
            self.pos = m.end()
        return (linepos, self.data[linepos : self.pos])

    def revreadlines(self) -> Iterator[bytes]:
        """Fetches a next line backwards.

        This is used to locate the trailers at the end of a file.
        """
        endline = pos = self.end
        while True:
            nidx = self.data.rfind(b"\n", 0, pos)
            ridx = self.data.rfind(b"\r", 0, pos)
            best = max(nidx, ridx)
            if best == -1:
                yield self.data[:endline]
                break
            yield self.data[best + 1 : endline]
            endline = best + 1
            pos = best
            if pos > 0 and self.data[pos - 1 : pos + 1] == b"\r\n":
                pos -= 1

    def get_inline_data(self, target: bytes = b"EI") -> tuple[int, bytes]:
        """Get the data of an inline image up to and including ``target``.

        Returns the offset of the target and the data, and moves past the
        target. (-1, b"") is returned if the target does not occur.
        """
        tpos = self.data.find(target, self.pos)
        if tpos == -1:
            return (-1, b"")
        nextpos = tpos + len(target)
        result = (tpos, self.data[self.pos : nextpos])
        self.pos = nextpos
        return result

    def __iter__(self) -> Iterator[tuple[int, PSBaseParserToken]]:
        return self

    def nexttoken(self) -> tuple[int, PSBaseParserToken]:
        """Get the next token, raising PSEOF when done."""
        try:
            return self.__next__()
        except StopIteration:
            raise PSEOF from None

    def __next__(self) -> tuple[int, PSBaseParserToken]:
        while True:
            m = LEXER.match(self.data, self.pos)
            if m is None:
                raise StopIteration
            self.pos = m.end()
            if m.lastgroup not in ("whitespace", "comment"):
                break
        tokpos = m.start()
        group = m.lastgroup
        token = m[0]
        if group == "name":
            name = HEXDIGIT.sub(lambda x: bytes((int(x[1], 16),)), token[1:])
            try:
                return (tokpos, LIT(name.decode("utf-8")))
            except UnicodeDecodeError:
                return (tokpos, LIT(name))
        if group == "number":
            if b"." in token:
                return (tokpos, float(token))
            return (tokpos, int(token))
        if group == "badnumber":
            if settings.STRICT:
                raise PSInvalidNumber(tokpos, f"invalid number {token!r}")
            return (tokpos, KWD(token))
        if group == "startdict":
            return (tokpos, KEYWORD_DICT_BEGIN)
        if group == "enddict":
            return (tokpos, KEYWORD_DICT_END)
        if group == "startstr":
            return (tokpos, self._parse_endstr(tokpos, token[1:], m.end()))
        if group == "hexstr":
            return (tokpos, self._unhex(token[1:-1]))
        if group == "badhexstr":
            return (tokpos, self._parse_badhex(tokpos))
        # Anything else is treated as a keyword (whether explicitly matched or not)
        if token == b"true":
            return (tokpos, True)
        elif token == b"false":
            return (tokpos, False)
        return (tokpos, KWD(token))

    @staticmethod
    def _unhex(digits: bytes) -> bytes:
        digits = NONHEX.sub(b"", digits)
        if len(digits) % 2 == 1:
            digits += b"0"
        return unhexlify(digits)

    def _parse_badhex(self, tokpos: int) -> bytes:
        end = self.data.find(b">", tokpos)
        if end == -1:
            self.pos = self.end
            raise PSUnterminatedHexString(tokpos, "unterminated hex string")
        body = self.data[tokpos + 1 : end]
        log.warning("Invalid characters in hex string at %d: %r", tokpos, body)
        if settings.STRICT:
            raise PSSyntaxError(f"Invalid hex string at {tokpos}: {body!r}")
        self.pos = end + 1
        return self._unhex(body)

    def _parse_endstr(self, tokpos: int, start: bytes, pos: int) -> bytes:
        """Parse the remainder of a literal string."""
        parts = [start]
        paren = 1
        for m in STRLEXER.finditer(self.data, pos):
            self.pos = m.end()
            group = m.lastgroup
            if group == "parenright":
                paren -= 1
                if paren == 0:
                    break
                parts.append(m[0])
            elif group == "parenleft":
                parts.append(m[0])
                paren += 1
            elif group == "escape":
                c = m[0][1:2]
                if c in ESC_STRING:
                    parts.append(bytes((ESC_STRING[c],)))
                else:
                    # an unknown escape drops the backslash
                    parts.append(c)
            elif group == "octal":
                # high-order overflow is ignored
                parts.append(bytes((int(m[0][1:], 8) & 0xFF,)))
            elif group == "newline":
                # an unescaped end-of-line is always read as \n
                parts.append(b"\n")
            elif group == "linebreak":
                pass
            else:
                parts.append(m[0])
        if paren != 0:
            self.pos = self.end
            raise PSUnterminatedString(tokpos, "unterminated string")
        return b"".join(parts)


# Stack slots may by occupied by any of:
#  * the PSBaseParserToken types
#  * list (via KEYWORD_ARRAY)
#  * dict (via KEYWORD_DICT)
#  * subclass-specific extensions (e.g. PDFStream, PDFObjRef) via ExtraT
ExtraT = TypeVar("ExtraT")
PSStackType = Union[float, bool, PSLiteral, bytes, list, dict, ExtraT]
PSStackEntry = tuple[int, PSStackType[ExtraT]]


class PSStackParser(Generic[ExtraT]):
    """Builds composite objects (arrays, dictionaries, procedures) out of
    the token sequence of a PSLexer.

    Keywords that are not structural are handed to do_keyword(), which
    subclasses override to build their own objects.
    """

    def __init__(self, data: bytes) -> None:
        self.lexer = PSLexer(data)
        self.reset()

    def reset(self) -> None:
        """Reset parser state."""
        self.context: list[tuple[int, str | None, list[PSStackEntry[ExtraT]]]] = []
        self.curtype: str | None = None
        self.curstack: list[PSStackEntry[ExtraT]] = []
        self.results: list[PSStackEntry[ExtraT]] = []

    def seek(self, pos: int) -> None:
        """Seek to a position and reset parser state."""
        self.lexer.seek(pos)
        self.reset()

    def push(self, *objs: PSStackEntry[ExtraT]) -> None:
        """Push some objects onto the stack."""
        self.curstack.extend(objs)

    def pop(self, n: int) -> list[PSStackEntry[ExtraT]]:
        """Pop some objects off the stack."""
        objs = self.curstack[-n:]
        self.curstack[-n:] = []
        return objs

    def popall(self) -> list[PSStackEntry[ExtraT]]:
        """Pop all the things off the stack."""
        objs = self.curstack
        self.curstack = []
        return objs

    def add_results(self, *objs: PSStackEntry[ExtraT]) -> None:
        """Move some objects to the output."""
        log.debug("add_results: %r", objs)
        self.results.extend(objs)

    def start_type(self, pos: int, type: str) -> None:
        """Start a composite object (array, dict, etc)."""
        self.context.append((pos, self.curtype, self.curstack))
        (self.curtype, self.curstack) = (type, [])
        log.debug("start_type: pos=%r, type=%r", pos, type)

    def end_type(self, type: str) -> tuple[int, list[PSStackType[ExtraT]]]:
        """End a composite object (array, dict, etc)."""
        if self.curtype != type:
            raise PSTypeError(f"Type mismatch: {self.curtype!r} != {type!r}")
        objs = [obj for (_, obj) in self.curstack]
        (pos, self.curtype, self.curstack) = self.context.pop()
        log.debug("end_type: pos=%r, type=%r, objs=%r", pos, type, objs)
        return (pos, objs)

    def build_dict(self, pos: int, objs: list[Any]) -> dict[str, Any]:
        if len(objs) % 2 != 0:
            if settings.STRICT:
                raise PSSyntaxError(f"Invalid dictionary construct at {pos}: {objs!r}")
            log.warning("Odd number of dictionary items at %d, last one dropped", pos)
        d = {}
        for k, v in choplist(2, objs):
            if not isinstance(k, PSLiteral):
                if settings.STRICT:
                    raise PSTypeError(f"Dictionary key must be a name: {k!r}")
                log.warning("Dictionary key at %d is not a name: %r", pos, k)
                continue
            # a null value is equivalent to an absent entry
            if v is not None:
                d[literal_name(k)] = v
        return d

    def do_keyword(self, pos: int, token: PSKeyword) -> None:
        """Handle a keyword that is not structural."""

    def flush(self) -> None:
        """Called whenever the parser is at the top level again."""

    def _end_of_input(self) -> None:
        (pos, _, _) = self.context[-1]
        if self.curtype == "d":
            raise PSUnterminatedDictionary(pos, "unterminated dictionary")
        raise PSUnterminatedArray(pos, "unterminated array")

    def nextobject(self) -> PSStackEntry[ExtraT]:
        """Returns the next complete object as (offset, object).

        Arrays and dictionaries are represented as Python lists and
        dictionaries.

        :return: keywords, literals, strings, numbers, arrays and dictionaries.
        """
        while not self.results:
            try:
                (pos, token) = self.nexttoken()
            except PSEOF:
                if self.context:
                    self._end_of_input()
                if not self.curstack:
                    raise
                # the end of input completes whatever is pending
                self.add_results(*self.popall())
                break
            if isinstance(token, (int, float, bool, bytes, PSLiteral)):
                # normal token
                self.push((pos, token))
            elif token is KEYWORD_ARRAY_BEGIN:
                self.start_type(pos, "a")
            elif token is KEYWORD_ARRAY_END:
                try:
                    self.push(self.end_type("a"))
                except PSTypeError:
                    if settings.STRICT:
                        raise
                    log.warning("Unbalanced ']' at %d", pos)
            elif token is KEYWORD_DICT_BEGIN:
                self.start_type(pos, "d")
            elif token is KEYWORD_DICT_END:
                try:
                    (pos, objs) = self.end_type("d")
                    self.push((pos, self.build_dict(pos, objs)))
                except PSTypeError:
                    if settings.STRICT:
                        raise
                    log.warning("Unbalanced '>>' at %d", pos)
            elif token is KEYWORD_PROC_BEGIN:
                self.start_type(pos, "p")
            elif token is KEYWORD_PROC_END:
                try:
                    self.push(self.end_type("p"))
                except PSTypeError:
                    if settings.STRICT:
                        raise
                    log.warning("Unbalanced '}' at %d", pos)
            else:
                log.debug(
                    "do_keyword: pos=%r, token=%r, stack=%r",
                    pos,
                    token,
                    self.curstack,
                )
                self.do_keyword(pos, token)
            if self.context:
                continue
            self.flush()
        obj = self.results.pop(0)
        log.debug("nextobject: %r", obj)
        return obj

    # Delegation follows
    def nextline(self) -> tuple[int, bytes]:
        return self.lexer.nextline()

    def revreadlines(self) -> Iterator[bytes]:
        return self.lexer.revreadlines()

    def read(self, pos: int, objlen: int) -> bytes:
        return self.lexer.read(pos, objlen)

    def nexttoken(self) -> tuple[int, PSBaseParserToken]:
        return self.lexer.nexttoken()

    def get_inline_data(self, target: bytes = b"EI") -> tuple[int, bytes]:
        return self.lexer.get_inline_data(target)
