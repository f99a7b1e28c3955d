"""
Decoder for RIM images, the 16-bit bitmaps stored inside ZFS archives.

Layout (little-endian):

    u32 'RIMF', u32 version, u16 width, u16 height, u16 pitch, u16 format
    followed by `height` rows of `width` 16-bit pixels, `pitch` bytes apart
"""

from enum import Enum
from typing import Union

import numpy as np
from PIL import Image

from .binary_io import get_u16_le, get_u32_le
from .config import Config
from .errors import BadMagic, InvalidDimensions, TruncatedImage, UnsupportedFormat


class RimFormat(Enum):
    """Pixel format of a RIM image. Both are 16 bits per pixel."""
    RGB555 = 0  # 0 RRRRR GGGGG BBBBB
    RGB565 = 1  # RRRRR GGGGGG BBBBB


def _expand5(values: np.ndarray) -> np.ndarray:
    """Scale 5-bit channel values to the full 0-255 range."""
    return (values << 3) | (values >> 2)


def _expand6(values: np.ndarray) -> np.ndarray:
    """Scale 6-bit channel values to the full 0-255 range."""
    return (values << 2) | (values >> 4)


class RimHeader(object):
    """The fixed 16-byte header at the start of a RIM image."""

    def __init__(self, version: int, width: int, height: int, pitch: int, format: RimFormat):
        self.version = version
        self.width = width
        self.height = height
        self.pitch = pitch
        self.format = format

    @property
    def row_stride(self) -> int:
        """Bytes between the starts of consecutive rows. A zero pitch means packed rows."""
        return self.pitch or self.width * 2

    @property
    def data_size(self) -> int:
        """Minimum number of pixel bytes following the header."""
        return self.row_stride * (self.height - 1) + self.width * 2

    @classmethod
    def from_bytes(cls, data: bytes) -> 'RimHeader':
        """
        Parse and validate a RIM header.

        Args:
            data: Image bytes, starting at the signature

        Raises:
            TruncatedImage: If there are fewer than 16 bytes
            BadMagic: If the signature is not 'RIMF'
            UnsupportedFormat: If the format tag is unknown
            InvalidDimensions: If width or height is zero, or the pitch is
                narrower than a row
        """
        if len(data) < Config.RIM_HEADER_SIZE:
            raise TruncatedImage(
                f'RIM header is {len(data)} bytes, expected {Config.RIM_HEADER_SIZE}'
            )

        signature = get_u32_le(data, 0)
        if signature != Config.RIM_SIGNATURE:
            raise BadMagic(f'Invalid RIM signature {bytes(data[:4])!r}')

        version = get_u32_le(data, 4)
        width = get_u16_le(data, 8)
        height = get_u16_le(data, 10)
        pitch = get_u16_le(data, 12)
        format_tag = get_u16_le(data, 14)

        try:
            rim_format = RimFormat(format_tag)
        except ValueError:
            raise UnsupportedFormat(f'Unknown RIM pixel format {format_tag}') from None

        if width == 0 or height == 0:
            raise InvalidDimensions(f'RIM image has zero area ({width}x{height})')
        if pitch and pitch < width * 2:
            raise InvalidDimensions(
                f'RIM pitch {pitch} is too small for {width} pixels per row'
            )

        return cls(version, width, height, pitch, rim_format)

    def __repr__(self):
        return (
            f'RimHeader(version={self.version}, width={self.width}, height={self.height}, '
            f'pitch={self.pitch}, format={self.format.name})'
        )


class RimImage(object):
    """
    A decoded RIM image.

    `pixels` holds the native 16-bit words as a read-only (height, width)
    array with row padding removed. Conversions never modify it.
    """

    def __init__(self, width: int, height: int, format: RimFormat, pixels: np.ndarray):
        pixels = np.array(pixels, dtype=np.uint16).reshape((height, width))
        pixels.setflags(write=False)
        self._width = width
        self._height = height
        self._format = format
        self._pixels = pixels

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def format(self) -> RimFormat:
        return self._format

    @property
    def pixels(self) -> np.ndarray:
        return self._pixels

    def to_rgba_array(self) -> np.ndarray:
        """
        Convert to 8-bit RGBA.

        Returns:
            New uint8 array of shape (height, width, 4), alpha always 255
        """
        words = self._pixels.astype(np.uint16)

        if self._format == RimFormat.RGB555:
            red = _expand5((words >> 10) & 0x1F)
            green = _expand5((words >> 5) & 0x1F)
        else:
            red = _expand5((words >> 11) & 0x1F)
            green = _expand6((words >> 5) & 0x3F)
        blue = _expand5(words & 0x1F)

        rgba = np.empty((self._height, self._width, 4), dtype=np.uint8)
        rgba[..., 0] = red
        rgba[..., 1] = green
        rgba[..., 2] = blue
        rgba[..., 3] = 255
        return rgba

    def to_rgba_bytes(self) -> bytes:
        """Row-major R, G, B, A bytes, width * height * 4 long."""
        return self.to_rgba_array().tobytes()

    def get_image(self) -> Image.Image:
        """Pillow Image of the picture, in RGBA mode."""
        return Image.fromarray(self.to_rgba_array(), 'RGBA')

    def save_to_png(self, output_path: str) -> None:
        self.get_image().save(output_path, format='PNG')

    def __repr__(self):
        return f'RimImage({self._width}x{self._height}, {self._format.name})'


def read_header(data: bytes) -> RimHeader:
    return RimHeader.from_bytes(data)


def decode(data: Union[bytes, bytearray, memoryview]) -> RimImage:
    """
    Decode a complete RIM image.

    Args:
        data: Payload of a .rim entry, starting at the signature

    Returns:
        RimImage with the native pixel words

    Raises:
        BadMagic, UnsupportedFormat, InvalidDimensions, TruncatedImage
    """
    header = RimHeader.from_bytes(data)

    available = len(data) - Config.RIM_HEADER_SIZE
    if available < header.data_size:
        raise TruncatedImage(
            f'RIM pixel data is {available} bytes, expected at least {header.data_size} '
            f'for {header.width}x{header.height}'
        )

    row_bytes = header.width * 2
    start = Config.RIM_HEADER_SIZE
    if header.row_stride == row_bytes:
        raw = bytes(data[start:start + row_bytes * header.height])
    else:
        raw = b''.join(
            bytes(data[start + y * header.row_stride:start + y * header.row_stride + row_bytes])
            for y in range(header.height)
        )

    pixels = np.frombuffer(raw, dtype='<u2').reshape((header.height, header.width))

    if Config.DEBUG_MODE:
        print(f'RIM {header.width}x{header.height} {header.format.name} pitch={header.pitch}')

    return RimImage(header.width, header.height, header.format, pixels)
