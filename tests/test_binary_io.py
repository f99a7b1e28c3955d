import io

import pytest

from unciv.binary_io import (
    get_c_string,
    get_u16_le,
    get_u32_le,
    read_exact,
    read_le32,
    get_stream_length,
)


class TrickleStream(io.RawIOBase):
    """Raw stream that hands out at most one byte per read."""

    def __init__(self, data):
        self._data = data
        self._pos = 0

    def readable(self):
        return True

    def readinto(self, buf):
        if self._pos >= len(self._data) or len(buf) == 0:
            return 0
        buf[0] = self._data[self._pos]
        self._pos += 1
        return 1


def test_read_exact_returns_requested_bytes():
    fp = io.BytesIO(b'abcdef')
    assert read_exact(fp, 4) == b'abcd'
    assert fp.tell() == 4


def test_read_exact_raises_on_short_stream():
    with pytest.raises(EOFError):
        read_exact(io.BytesIO(b'abc'), 4)


def test_read_exact_collects_partial_reads():
    assert read_exact(TrickleStream(b'\x01\x02\x03\x04'), 4) == b'\x01\x02\x03\x04'


def test_read_le32():
    assert read_le32(io.BytesIO(b'ZFS3')) == 0x3353465A


def test_buffer_getters_are_bounds_checked():
    buf = b'\x34\x12\x78\x56'
    assert get_u16_le(buf, 0) == 0x1234
    assert get_u32_le(buf, 0) == 0x56781234
    with pytest.raises(EOFError):
        get_u32_le(buf, 1)
    with pytest.raises(EOFError):
        get_u16_le(buf, -1)


def test_get_c_string_trims_at_first_nul():
    assert get_c_string(b'abc\x00def\x00') == b'abc'
    assert get_c_string(b'full') == b'full'
    assert get_c_string(b'xxname\x00\x00', 2, 6) == b'name'


def test_stream_length_keeps_position():
    fp = io.BytesIO(b'0123456789')
    fp.seek(3)
    assert get_stream_length(fp) == 10
    assert fp.tell() == 3
