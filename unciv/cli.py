"""
unciv: An Uncivilized File Extractor for Civilization: Call to Power

Extracts every file in a ZFS archive. RIM images are converted to PNG,
everything else is written out verbatim.

Usage:
    unciv <zfs-file> [-o OUTPUT_DIR] [--raw] [--keep-timestamps]
    unciv <zfs-file> --list
    unciv <zfs-file> --csv listing.csv
"""

import argparse
import os
import sys
from typing import Dict, List, Optional, Tuple

# Add parent directory to path to allow running as script
if __package__ is None or __package__ == '':
    parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if parent_dir not in sys.path:
        sys.path.insert(0, parent_dir)

import pandas as pd
from tqdm import tqdm

try:
    from . import rim
    from .config import Config
    from .errors import UncivError
    from .utils import safe_console_text, sanitize_filename
    from .zfs import ZfsArchive, ZfsEntry
except ImportError:
    # Allow running as a script directly
    from unciv import rim
    from unciv.config import Config
    from unciv.errors import UncivError
    from unciv.utils import safe_console_text, sanitize_filename
    from unciv.zfs import ZfsArchive, ZfsEntry


# ============================================================================
# OUTPUT NAMES
# ============================================================================

def output_filename(entry: ZfsEntry, index: int, convert_images: bool = True) -> str:
    """File name an entry is extracted to (without directory)."""
    name = sanitize_filename(entry.name) or f'unnamed_{index:05d}'
    if convert_images and entry.is_rim:
        name += Config.PNG_SUFFIX
    return name


def unique_name(name: str, used_names: set) -> str:
    """
    Pick a name not yet in `used_names` (compared case-insensitively) and
    record it. Repeats get a numbered suffix: name, name[1], name[2], ...
    """
    candidate = name
    counter = 0
    while candidate.lower() in used_names:
        counter += 1
        candidate = f'{name}[{counter}]'
    used_names.add(candidate.lower())
    return candidate


# ============================================================================
# EXTRACTION
# ============================================================================

def extract_entry(
    archive: ZfsArchive,
    entry: ZfsEntry,
    output_path: str,
    convert_images: bool = True,
    keep_timestamps: bool = False,
) -> str:
    """
    Extract one entry to disk.

    Args:
        archive: Archive the entry belongs to
        entry: Entry to extract
        output_path: Destination file path
        convert_images: Decode RIM images and write them as PNG
        keep_timestamps: Set the file's modification time from the entry

    Returns:
        The path written

    Raises:
        UncivError: If the entry cannot be read or decoded
        OSError: If the output file cannot be written
    """
    data = archive.read_data(entry)

    if convert_images and entry.is_rim:
        image = rim.decode(data)
        image.save_to_png(output_path)
    else:
        with open(output_path, 'wb') as fout:
            fout.write(data)

    if keep_timestamps:
        os.utime(output_path, (entry.timestamp, entry.timestamp))

    return output_path


def extract_all(
    archive: ZfsArchive,
    output_dir: str = None,
    convert_images: bool = True,
    keep_timestamps: bool = False,
    show_progress: bool = True,
) -> Tuple[List[str], Dict[int, str]]:
    """
    Extract every entry of an archive, continuing past failed entries.

    Args:
        archive: Parsed archive
        output_dir: Directory to extract into (default: Config.OUTPUT_DIR)
        convert_images: Decode RIM images and write them as PNG
        keep_timestamps: Preserve entry timestamps on the written files
        show_progress: Display a progress bar

    Returns:
        Tuple of (paths written, {entry index: error message} for failures)
    """
    if output_dir is None:
        output_dir = Config.OUTPUT_DIR
    os.makedirs(output_dir, exist_ok=True)

    extracted = []
    failures = {}
    used_names = set()

    entries = archive.entries
    iterator = tqdm(
        enumerate(entries), total=len(entries), desc="Extracting", disable=not show_progress
    )
    for index, entry in iterator:
        name = unique_name(output_filename(entry, index, convert_images), used_names)

        output_path = os.path.join(output_dir, name)
        try:
            extract_entry(archive, entry, output_path, convert_images, keep_timestamps)
        except (UncivError, OSError) as e:
            failures[index] = str(e)
            tqdm.write(f'[ERROR] {safe_console_text(entry.name)}: {safe_console_text(e)}')
            continue

        extracted.append(output_path)
        if Config.DEBUG_MODE:
            tqdm.write(f'[OK] Extracted "{safe_console_text(name)}"')

    return extracted, failures


# ============================================================================
# LISTING
# ============================================================================

def directory_dataframe(archive: ZfsArchive) -> pd.DataFrame:
    """
    Build a table of the archive directory.

    Returns:
        DataFrame with one row per entry, columns named per Config.FIELD_MAPPINGS
    """
    rows = []
    for index, entry in enumerate(archive.entries):
        record = entry.to_dict()
        record['index'] = index
        rows.append(record)

    df = pd.DataFrame(rows, columns=list(Config.FIELD_MAPPINGS.keys()))
    df['timestamp'] = pd.to_datetime(df['timestamp'], unit='s', utc=True)
    return df.rename(columns=Config.FIELD_MAPPINGS)


def export_directory_to_csv(archive: ZfsArchive, csv_path: str) -> str:
    """
    Export the archive directory to a CSV file.

    Args:
        archive: Parsed archive
        csv_path: Destination CSV path

    Returns:
        The path written
    """
    out_dir = os.path.dirname(csv_path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    df = directory_dataframe(archive)
    df.to_csv(csv_path, index=False, encoding='utf-8')
    print(f"[OK] Exported {len(df)} entries to {safe_console_text(csv_path)}")
    return csv_path


def print_directory(archive: ZfsArchive) -> None:
    print(f"{'Offset':>10}  {'Size':>10}  {'Modified':<19}  Name")
    for entry in archive.entries:
        modified = entry.modified.strftime('%Y-%m-%d %H:%M:%S')
        print(
            f"0x{entry.offset:08X}  {entry.size:>10}  {modified:<19}  "
            f"{safe_console_text(entry.name)}"
        )
    print(f"{archive.entry_count} entries")


# ============================================================================
# ENTRY POINT
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='unciv',
        description="An Uncivilized File Extractor for Civilization: Call to Power.",
    )
    p.add_argument("zfs_file", help="Path to the .zfs archive")
    p.add_argument(
        "-o", "--output-dir", default=Config.OUTPUT_DIR,
        help="Directory to extract into (default: current directory)",
    )
    p.add_argument(
        "--raw", action="store_true",
        help="Write .rim images verbatim instead of converting them to PNG",
    )
    p.add_argument(
        "--keep-timestamps", action="store_true",
        help="Set extracted files' modification times from the archive",
    )
    p.add_argument("--list", action="store_true", help="List the archive contents and exit")
    p.add_argument("--csv", metavar="PATH", help="Export the archive directory to a CSV file")
    p.add_argument("--quiet", action="store_true", help="Hide the progress bar")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    print(f"File: {safe_console_text(args.zfs_file)}")

    try:
        archive = ZfsArchive.open(args.zfs_file)
    except (UncivError, OSError) as e:
        print(f"[ERROR] Cannot read archive: {safe_console_text(e)}")
        return 1

    with archive:
        if args.list:
            print_directory(archive)
        if args.csv:
            export_directory_to_csv(archive, args.csv)
        if args.list or args.csv:
            return 0

        extracted, failures = extract_all(
            archive,
            output_dir=args.output_dir,
            convert_images=not args.raw,
            keep_timestamps=args.keep_timestamps,
            show_progress=not args.quiet,
        )

    print("\n" + "=" * 70)
    print("Summary:")
    print(f"  Extracted: {len(extracted)}/{archive.entry_count} entries")
    if failures:
        print(f"  Failed: {len(failures)}")
    print(f"  Output directory: {safe_console_text(args.output_dir)}")
    print("=" * 70)

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
