"""
Little helpers for pulling fixed-width integers out of streams and buffers.

Every read is exact: a stream or buffer that ends early raises EOFError
instead of returning short data. Callers turn that into the error that fits
their context.
"""

from io import IOBase
from struct import unpack


def read_exact(fp: IOBase, size: int) -> bytes:
    """
    Read exactly `size` bytes from a stream.

    Args:
        fp: Readable binary stream
        size: Number of bytes wanted

    Returns:
        The bytes read

    Raises:
        EOFError: If the stream ends before `size` bytes are available
    """
    if size < 0:
        raise ValueError(f'Negative read size: {size}')

    data = fp.read(size)
    # Raw (unbuffered) streams may legitimately return fewer bytes per call
    while data is not None and len(data) < size:
        chunk = fp.read(size - len(data))
        if not chunk:
            break
        data += chunk

    if data is None or len(data) != size:
        got = 0 if data is None else len(data)
        raise EOFError(f'Expected {size} bytes, got {got}')
    return data


def read_le32(fp: IOBase) -> int:
    return unpack('<I', read_exact(fp, 4))[0]


def _slice(buf: bytes, off: int, size: int) -> bytes:
    if off < 0 or off + size > len(buf):
        raise EOFError(f'Read of {size} bytes at {off} past end of {len(buf)}-byte buffer')
    return buf[off:off + size]


def get_u16_le(buf: bytes, off: int) -> int:
    return unpack('<H', _slice(buf, off, 2))[0]


def get_u32_le(buf: bytes, off: int) -> int:
    return unpack('<I', _slice(buf, off, 4))[0]


def get_c_string(buf: bytes, off: int = 0, size: int = None) -> bytes:
    """Return the bytes of a NUL-padded field, cut at the first NUL."""
    field = buf[off:] if size is None else _slice(buf, off, size)
    end = field.find(b'\x00')
    if end == -1:
        return bytes(field)
    return bytes(field[:end])


def get_stream_length(fp: IOBase) -> int:
    """Total length of a seekable stream. The current position is preserved."""
    here = fp.tell()
    try:
        return fp.seek(0, 2)
    finally:
        fp.seek(here)
