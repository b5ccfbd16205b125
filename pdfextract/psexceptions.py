__all__ = [
    "PSException",
    "PSEOF",
    "PSSyntaxError",
    "PSTypeError",
    "PSValueError",
    "PSUnterminatedString",
    "PSUnterminatedHexString",
    "PSInvalidNumber",
    "PSUnterminatedArray",
    "PSUnterminatedDictionary",
]


class PSException(Exception):
    """Base class for PostScript-related exceptions."""


class PSEOF(PSException):
    """Raised when an unexpected end-of-file is encountered."""


class PSSyntaxError(PSException):
    """Raised when a PostScript syntax error occurs."""


class PSTypeError(PSException):
    """Raised when an unexpected operand type is encountered."""


class PSValueError(PSException):
    """Raised when a PostScript value is invalid or out of range."""


class PSLexError(PSSyntaxError):
    """A token could not be read; ``pos`` is the offset where it starts."""

    def __init__(self, pos: int, msg: str = "") -> None:
        super().__init__(f"{msg} at offset {pos}" if msg else f"offset {pos}")
        self.pos = pos


class PSUnterminatedString(PSLexError):
    pass


class PSUnterminatedHexString(PSLexError):
    pass


class PSInvalidNumber(PSLexError):
    pass


class PSUnterminatedArray(PSLexError):
    pass


class PSUnterminatedDictionary(PSLexError):
    pass
