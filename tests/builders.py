"""Build synthetic ZFS archives and RIM images in memory."""

import struct

HEADER_SIZE = 28
NAME_LEN = 16


def record_size(name_len=NAME_LEN):
    return name_len + 20


def table_size(per_table, name_len=NAME_LEN):
    return 4 + per_table * record_size(name_len)


def directory_end(num_records, per_table=None, name_len=NAME_LEN):
    """Offset of the first byte after the header and every directory table."""
    per_table = per_table or max(num_records, 1)
    full, rest = divmod(num_records, per_table)
    tables = [per_table] * full + ([rest] if rest else [])
    if not tables:
        tables = [0]
    return HEADER_SIZE + sum(4 + count * record_size(name_len) for count in tables)


def pack_header(num_files, per_table, table_offset=HEADER_SIZE, name_len=NAME_LEN,
                version=1, signature=b'ZFS3'):
    return signature + struct.pack('<6I', version, name_len, per_table, num_files, 0, table_offset)


def pack_record(name, offset, size, timestamp=0, flags=0, name_len=NAME_LEN):
    field = name[:name_len].ljust(name_len, b'\x00')
    return field + struct.pack('<5I', offset, 0, size, timestamp, flags)


def build_zfs_raw(records, tail=b'', per_table=None, num_files=None, name_len=NAME_LEN,
                  version=1, signature=b'ZFS3'):
    """
    Lay out a header, chained directory tables holding `records`
    ((name, offset, size[, timestamp[, flags]]) tuples) and `tail`.
    """
    per_table = per_table or max(len(records), 1)
    num_files = len(records) if num_files is None else num_files

    chunks = [records[i:i + per_table] for i in range(0, len(records), per_table)] or [[]]
    tables = b''
    position = HEADER_SIZE
    for index, chunk in enumerate(chunks):
        size = 4 + len(chunk) * record_size(name_len)
        next_offset = position + size if index + 1 < len(chunks) else 0
        tables += struct.pack('<I', next_offset)
        for record in chunk:
            tables += pack_record(*record, name_len=name_len)
        position += size

    header = pack_header(num_files, per_table, HEADER_SIZE, name_len, version, signature)
    return header + tables + tail


def build_zfs(files, per_table=None, name_len=NAME_LEN, timestamp=0, flags=0):
    """Build a well-formed archive from (name, data) pairs stored back to back."""
    offset = directory_end(len(files), per_table, name_len)
    records = []
    payload = b''
    for name, data in files:
        records.append((name, offset, len(data), timestamp, flags))
        payload += data
        offset += len(data)
    return build_zfs_raw(records, payload, per_table=per_table, name_len=name_len)


def build_rim(width, height, words, fmt=0, pitch=0, version=0, signature=b'RIMF',
              pad_byte=b'\xff', pad_last_row=True):
    """Build a RIM image. `words` are row-major 16-bit pixels."""
    header = signature + struct.pack('<IHHHH', version, width, height, pitch, fmt)
    stride = pitch or width * 2
    body = b''
    for y in range(height):
        row = struct.pack(f'<{width}H', *words[y * width:(y + 1) * width])
        body += row
        if y + 1 < height or pad_last_row:
            body += pad_byte * (stride - len(row))
    return header + body
