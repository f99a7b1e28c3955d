"""
Configuration constants for the ZFS extractor.
"""


class Config:
    """Configuration constants for the ZFS extractor."""

    # Archive format
    ZFS_SIGNATURE = 0x3353465A  # 'ZFS3'
    ZFS_SIGNATURE_PREFIX = b'ZFS'  # Version digit follows
    ZFS_HEADER_SIZE = 28
    ZFS_RECORD_TRAILER_SIZE = 20  # offset, unknown, size, timestamp, flags

    # Bitmap format
    RIM_SIGNATURE = 0x464D4952  # 'RIMF'
    RIM_HEADER_SIZE = 16
    RIM_EXTENSION = '.rim'

    # Output
    OUTPUT_DIR = '.'
    PNG_SUFFIX = '.png'
    MAX_FILENAME_LENGTH = 200

    DEBUG_MODE = False

    # Field mappings for directory listings
    FIELD_MAPPINGS = {
        "index": "Index",
        "name": "Name",
        "offset": "Offset",
        "size": "Size",
        "timestamp": "Modified",
        "flags": "Flags",
        "is_rim": "Is Image",
    }
