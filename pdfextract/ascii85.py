"""ASCII85 and ASCIIHex decoders (Adobe flavour)."""

import re
from base64 import a85decode
from binascii import unhexlify

WHITESPACE = re.compile(rb"[\x00\s]")


def ascii85decode(data: bytes) -> bytes:
    """Every four bytes are encoded with five characters out of 85
    (256**4 < 85**5). A short final group is padded on decoding.

    Adobe's variant may start with ``<~`` and ends with ``~>``; both
    markers are optional here.
    """
    data = WHITESPACE.sub(b"", data)
    if data.startswith(b"<~"):
        data = data[2:]
    end = data.find(b"~>")
    if end != -1:
        data = data[:end]
    return a85decode(data)


def asciihexdecode(data: bytes) -> bytes:
    """For each pair of hexadecimal digits one byte is produced.
    Whitespace is ignored and ``>`` marks the end of data. An odd
    trailing digit behaves as if it were followed by 0.
    """
    data = WHITESPACE.sub(b"", data)
    idx = data.find(b">")
    if idx != -1:
        data = data[:idx]
    if len(data) % 2 == 1:
        data += b"0"
    return unhexlify(data)
