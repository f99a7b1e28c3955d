"""
Helpers for turning archive names into output paths and console text.
"""

import re
import sys
from typing import Any

from .config import Config


# Reserved on Windows, plus path separators and control characters
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_filename(filename: str) -> str:
    """
    Make an archive entry name safe to use as a single file name.

    Args:
        filename: Entry name as stored in the archive

    Returns:
        Name with separators and reserved characters replaced by '_',
        outer dots and spaces stripped, capped at Config.MAX_FILENAME_LENGTH.
        May be empty.
    """
    sanitized = _INVALID_FILENAME_CHARS.sub('_', filename).strip('. ')
    return sanitized[:Config.MAX_FILENAME_LENGTH]


def safe_console_text(value: Any) -> str:
    """Render `value` so printing it cannot fail on the console's encoding."""
    text = '' if value is None else str(value)
    encoding = getattr(sys.stdout, 'encoding', None) or 'utf-8'
    try:
        encoded = text.encode(encoding, errors='replace')
    except LookupError:
        # Unknown codec name reported by the console
        encoding = 'utf-8'
        encoded = text.encode(encoding, errors='replace')
    return encoded.decode(encoding, errors='replace')
