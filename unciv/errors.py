"""
Exceptions raised while reading ZFS archives and RIM images.

Archive-level errors (BadMagic, UnsupportedVersion, TruncatedArchive) leave
no usable directory. Everything else is scoped to a single entry, so callers
extracting a whole archive can report it and move on.
"""

from typing import List, Optional


class UncivError(Exception):
    """Base class for every error raised by this package."""


class FormatError(UncivError, ValueError):
    """The bytes do not describe a valid archive or image."""


class BadMagic(FormatError):
    """The stream does not start with the expected signature."""


class UnsupportedVersion(FormatError):
    """The signature names a format revision or layout we cannot read."""


class TruncatedArchive(FormatError):
    """
    The directory, or a range it declares, runs past the end of the stream.

    Attributes:
        entries: Every directory entry found to be out of bounds (may be
            empty when the directory itself is cut short)
    """

    def __init__(self, message: str, entries: Optional[List] = None):
        super().__init__(message)
        self.entries = list(entries) if entries else []


class ReadError(UncivError, OSError):
    """Reading an entry's payload failed or came up short."""


class UnsupportedFormat(FormatError):
    """The image pixel format tag is not one we know how to unpack."""


class InvalidDimensions(FormatError):
    """The image has a zero width or height, or a pitch too narrow for its width."""


class TruncatedImage(FormatError):
    """The image header or pixel data ends early."""
