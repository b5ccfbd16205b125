import logging
from collections.abc import Iterator

from pdfextract.pdfexceptions import PDFException

log = logging.getLogger(__name__)

CLEAR_TABLE = 256
END_OF_DATA = 257


class CorruptDataError(PDFException):
    pass


class LZWDecoder:
    """Decodes the LZW variant used by PDF (MSB first, early change)."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.bitpos = 0
        self.nbits = 9
        self.table: list[bytes] = []
        self.prevbuf = b""

    def readbits(self, bits: int) -> int:
        end = self.bitpos + bits
        if len(self.data) * 8 < end:
            raise EOFError
        first = self.bitpos // 8
        last = (end + 7) // 8
        chunk = int.from_bytes(self.data[first:last], "big")
        shift = last * 8 - end
        self.bitpos = end
        return (chunk >> shift) & ((1 << bits) - 1)

    def reset_table(self) -> None:
        self.table = [bytes((c,)) for c in range(256)]
        # placeholders for the clear and end-of-data codes
        self.table.extend((b"", b""))
        self.prevbuf = b""
        self.nbits = 9

    def feed(self, code: int) -> bytes:
        if code == CLEAR_TABLE:
            self.reset_table()
            return b""
        if not self.table:
            # data without a leading clear code
            self.reset_table()
        if not self.prevbuf:
            if code >= len(self.table):
                raise CorruptDataError(f"Invalid first code: {code}")
            x = self.prevbuf = self.table[code]
            return x
        if code < len(self.table):
            x = self.table[code]
            self.table.append(self.prevbuf + x[:1])
        elif code == len(self.table):
            x = self.prevbuf + self.prevbuf[:1]
            self.table.append(x)
        else:
            raise CorruptDataError(f"Invalid code: {code}")
        size = len(self.table)
        if size >= 2047:
            self.nbits = 12
        elif size >= 1023:
            self.nbits = 11
        elif size >= 511:
            self.nbits = 10
        self.prevbuf = x
        return x

    def run(self) -> Iterator[bytes]:
        while True:
            try:
                code = self.readbits(self.nbits)
            except EOFError:
                break
            if code == END_OF_DATA:
                break
            try:
                x = self.feed(code)
            except CorruptDataError as err:
                # stop at corrupt data, keeping what was decoded so far
                log.warning("LZW: %s", err)
                break
            yield x


def lzwdecode(data: bytes) -> bytes:
    return b"".join(LZWDecoder(data).run())
