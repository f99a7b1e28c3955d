"""unciv package entrypoints."""

from .errors import (
    BadMagic,
    FormatError,
    InvalidDimensions,
    ReadError,
    TruncatedArchive,
    TruncatedImage,
    UncivError,
    UnsupportedFormat,
    UnsupportedVersion,
)
from .rim import RimFormat, RimHeader, RimImage, decode
from .zfs import ZfsArchive, ZfsEntry, parse

__all__ = [
    'ZfsArchive', 'ZfsEntry', 'parse',
    'RimFormat', 'RimHeader', 'RimImage', 'decode',
    'UncivError', 'FormatError', 'BadMagic', 'UnsupportedVersion', 'TruncatedArchive',
    'ReadError', 'UnsupportedFormat', 'InvalidDimensions', 'TruncatedImage',
]
