#
# RunLength decoder (Adobe version), PDF Reference 1.4 section 3.3.4.
#

EOD = 128  # End-of-data marker for RunLengthDecode


def rldecode(data: bytes) -> bytes:
    """Length byte 0-127 copies the next length+1 bytes literally,
    129-255 repeats the next byte 257-length times, 128 ends the data.
    A truncated run keeps whatever is available.
    """
    decoded = bytearray()
    i = 0
    while i < len(data):
        length = data[i]
        i += 1
        if length == EOD:
            break
        if length < EOD:
            decoded += data[i : i + length + 1]
            i += length + 1
        elif i < len(data):
            decoded += data[i : i + 1] * (257 - length)
            i += 1
    return bytes(decoded)
