"""
Reader for ZFS archives, the container format used by Civilization: Call to Power.

Layout (all fields little-endian u32):

    header:  'ZFS3', version, max_filename_len, files_per_table,
             num_files, (unknown), first_table_offset
    table:   next_table_offset, then files_per_table records
    record:  name[max_filename_len], offset, (unknown), size, timestamp, flags

Tables are chained: after files_per_table records the directory continues
at next_table_offset.
"""

from datetime import datetime, timezone
from io import IOBase
from struct import unpack
from typing import Dict, Iterator, List, Optional, Tuple

from .binary_io import get_c_string, get_stream_length, get_u32_le, read_exact, read_le32
from .config import Config
from .errors import BadMagic, ReadError, TruncatedArchive, UnsupportedVersion


class ZfsEntry(object):
    """A single file stored in a ZFS archive. Immutable once parsed."""

    __slots__ = ('_raw_name', '_name', '_offset', '_size', '_timestamp', '_flags')

    def __init__(
        self,
        raw_name: bytes,
        offset: int,
        size: int,
        timestamp: int = 0,
        flags: int = 0,
    ):
        self._raw_name = bytes(raw_name)
        self._name = self._raw_name.decode('ascii', errors='replace')
        self._offset = offset
        self._size = size
        self._timestamp = timestamp
        self._flags = flags

    @property
    def raw_name(self) -> bytes:
        """Name bytes as stored in the directory, cut at the first NUL."""
        return self._raw_name

    @property
    def name(self) -> str:
        return self._name

    @property
    def offset(self) -> int:
        """Absolute offset of the payload from the start of the archive."""
        return self._offset

    @property
    def size(self) -> int:
        return self._size

    @property
    def end(self) -> int:
        return self._offset + self._size

    @property
    def timestamp(self) -> int:
        """Modification time in Unix seconds."""
        return self._timestamp

    @property
    def modified(self) -> datetime:
        return datetime.fromtimestamp(self._timestamp, tz=timezone.utc)

    @property
    def flags(self) -> int:
        return self._flags

    @property
    def is_rim(self) -> bool:
        """Whether the name marks this entry as a RIM image."""
        return self._name.lower().endswith(Config.RIM_EXTENSION)

    def read_data(self, fp: IOBase) -> bytes:
        """
        Read the entry's payload.

        Args:
            fp: Seekable stream over the whole archive. The stream is
                repositioned to the entry before reading.

        Returns:
            Exactly `size` bytes

        Raises:
            ReadError: If seeking or reading fails, or the stream ends early
        """
        try:
            fp.seek(self._offset)
            return read_exact(fp, self._size)
        except EOFError as e:
            raise ReadError(f'Short read for "{self._name}": {e}') from e
        except (OSError, ValueError) as e:
            # ValueError covers reads from a closed file
            raise ReadError(f'Failed to read "{self._name}": {e}') from e

    def to_dict(self) -> Dict:
        return {
            'name': self._name,
            'offset': self._offset,
            'size': self._size,
            'timestamp': self._timestamp,
            'flags': self._flags,
            'is_rim': self.is_rim,
        }

    def __repr__(self):
        return (
            f'ZfsEntry(name={self._name!r}, offset=0x{self._offset:X}, '
            f'size={self._size}, timestamp={self._timestamp}, flags=0x{self._flags:X})'
        )


class ZfsArchive(object):
    """
    Parsed directory of a ZFS archive plus the stream it was read from.

    The directory is read once, up front. Payloads are fetched on demand
    with read_data(), which seeks for every call, so the stream position
    between reads does not matter.
    """

    def __init__(
        self,
        fp: IOBase,
        entries: List[ZfsEntry],
        version: int = 0,
        max_filename_len: int = 0,
        files_per_table: int = 0,
        declared_count: Optional[int] = None,
        stream_length: Optional[int] = None,
        owns_fp: bool = False,
    ):
        self._fp = fp
        self._entries = tuple(entries)
        self._version = version
        self._max_filename_len = max_filename_len
        self._files_per_table = files_per_table
        self._declared_count = len(self._entries) if declared_count is None else declared_count
        self._stream_length = stream_length
        self._owns_fp = owns_fp

    @property
    def entries(self) -> Tuple[ZfsEntry, ...]:
        """Entries in directory order. Names may repeat."""
        return self._entries

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    @property
    def declared_count(self) -> int:
        """File count stored in the header."""
        return self._declared_count

    @property
    def version(self) -> int:
        return self._version

    @property
    def max_filename_len(self) -> int:
        return self._max_filename_len

    @property
    def files_per_table(self) -> int:
        return self._files_per_table

    @property
    def stream_length(self) -> Optional[int]:
        return self._stream_length

    @classmethod
    def from_stream(cls, fp: IOBase) -> 'ZfsArchive':
        """
        Parse the header and directory of a ZFS archive.

        Args:
            fp: Seekable binary stream positioned anywhere

        Returns:
            ZfsArchive referencing `fp`

        Raises:
            BadMagic: If the stream is not a ZFS archive
            UnsupportedVersion: If it is a ZFS archive we cannot walk
            TruncatedArchive: If the directory, or any entry it lists,
                runs past the end of the stream
        """
        length = get_stream_length(fp)
        fp.seek(0)
        try:
            signature = read_exact(fp, 4)
        except EOFError:
            raise BadMagic(f'Stream is too short ({length} bytes) to be a ZFS archive') from None

        if get_u32_le(signature, 0) != Config.ZFS_SIGNATURE:
            if signature[:3] == Config.ZFS_SIGNATURE_PREFIX:
                raise UnsupportedVersion(
                    f'Unsupported ZFS revision {signature!r}, expected b\'ZFS3\''
                )
            raise BadMagic(f'Invalid ZFS signature {signature!r}')

        try:
            header = read_exact(fp, Config.ZFS_HEADER_SIZE - 4)
        except EOFError as e:
            raise TruncatedArchive(
                f'ZFS header is {length} bytes, expected {Config.ZFS_HEADER_SIZE}'
            ) from e

        (
            version,
            max_filename_len,
            files_per_table,
            num_files,
            _unknown,
            table_offset,
        ) = unpack('<6I', header)

        if Config.DEBUG_MODE:
            print(
                f'ZFS version={version} name_len={max_filename_len} '
                f'per_table={files_per_table} files={num_files} table=0x{table_offset:X}'
            )

        if max_filename_len == 0:
            raise UnsupportedVersion('ZFS header declares zero-length file names')
        if files_per_table == 0 and num_files > 0:
            raise UnsupportedVersion('ZFS header declares zero files per table')

        entries = cls._read_directory(
            fp, length, table_offset, num_files, files_per_table, max_filename_len
        )

        out_of_bounds = [entry for entry in entries if entry.end > length]
        if out_of_bounds:
            names = ', '.join(
                f'"{entry.name}" (0x{entry.offset:X}+{entry.size})' for entry in out_of_bounds
            )
            raise TruncatedArchive(
                f'{len(out_of_bounds)} entries extend past end of archive '
                f'({length} bytes): {names}',
                out_of_bounds,
            )

        return cls(
            fp,
            entries,
            version=version,
            max_filename_len=max_filename_len,
            files_per_table=files_per_table,
            declared_count=num_files,
            stream_length=length,
        )

    @staticmethod
    def _read_directory(
        fp: IOBase,
        length: int,
        table_offset: int,
        num_files: int,
        files_per_table: int,
        max_filename_len: int,
    ) -> List[ZfsEntry]:
        entries = []
        if num_files == 0:
            return entries

        try:
            if table_offset + 4 > length:
                raise EOFError(f'Table offset 0x{table_offset:X} past end of archive')
            fp.seek(table_offset)
            next_table_offset = read_le32(fp)
            visited_tables = {table_offset}

            for i in range(num_files):
                raw_name = read_exact(fp, max_filename_len)
                # An empty name slot ends the directory
                if raw_name[0] == 0:
                    break

                offset, _unknown, size, timestamp, flags = unpack(
                    '<5I', read_exact(fp, Config.ZFS_RECORD_TRAILER_SIZE)
                )
                entries.append(
                    ZfsEntry(get_c_string(raw_name), offset, size, timestamp, flags)
                )

                last_in_table = (i % files_per_table) == (files_per_table - 1)
                if last_in_table and i + 1 < num_files:
                    # Each table is walked at most once
                    if next_table_offset in visited_tables:
                        raise TruncatedArchive(
                            f'ZFS directory table at 0x{next_table_offset:X} links back '
                            f'into the chain after {len(entries)} of {num_files} entries'
                        )
                    visited_tables.add(next_table_offset)
                    if next_table_offset + 4 > length:
                        raise EOFError(
                            f'Table offset 0x{next_table_offset:X} past end of archive'
                        )
                    fp.seek(next_table_offset)
                    next_table_offset = read_le32(fp)
        except EOFError as e:
            raise TruncatedArchive(
                f'ZFS directory ends early after {len(entries)} of {num_files} entries: {e}'
            ) from e

        return entries

    @classmethod
    def open(cls, path: str) -> 'ZfsArchive':
        """
        Open and parse an archive on disk. The archive owns the file; close
        it with close() or use it as a context manager.
        """
        fp = open(path, 'rb')
        try:
            archive = cls.from_stream(fp)
        except BaseException:
            fp.close()
            raise
        archive._owns_fp = True
        return archive

    def close(self) -> None:
        if self._owns_fp and self._fp is not None:
            self._fp.close()
        self._fp = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __len__(self):
        return len(self._entries)

    def __iter__(self) -> Iterator[ZfsEntry]:
        return iter(self._entries)

    def iter_entries(self, suffix: Optional[str] = None) -> Iterator[ZfsEntry]:
        """
        Iterate entries in directory order.

        Args:
            suffix: Only yield entries whose name ends with this (case-insensitive)
        """
        for entry in self._entries:
            if suffix is None or entry.name.lower().endswith(suffix.lower()):
                yield entry

    def read_data(self, entry: ZfsEntry, fp: Optional[IOBase] = None) -> bytes:
        """
        Read an entry's payload.

        Args:
            entry: Entry from this archive
            fp: Optional stream to read from instead of the archive's own,
                e.g. a separate handle per thread

        Raises:
            ReadError: If the archive is closed, or the read fails or comes up short
        """
        if fp is None:
            fp = self._fp
        if fp is None:
            raise ReadError(f'Cannot read "{entry.name}": archive is closed')
        return entry.read_data(fp)


def parse(fp: IOBase) -> ZfsArchive:
    """Parse a ZFS archive from a seekable binary stream."""
    return ZfsArchive.from_stream(fp)
