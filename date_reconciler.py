#!/usr/bin/env python3
"""
Date Reconciler

Walks a photo archive and makes each file's embedded capture date and
file-system modification date agree with the date implied by its path.

The path date is the anchor. A metadata or modification date that lies
within a week of it is trusted as the more precise value; anything else
is rewritten to the chosen date.
"""

import argparse
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

from path_dates import extract_path_date
from timestamp_sources import read_capture_date, read_modification_time
from timestamp_writers import (
    METADATA_WRITE,
    MODTIME_WRITE,
    ExternalToolTimestampWriter,
    RecordingTimestampWriter,
    TimestampWriteError,
    TimestampWriter,
)

CLOSENESS_WINDOW = timedelta(days=7)

# Filesystem sidecar files that never carry a capture date
DEFAULT_IGNORED_NAMES = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})
APPLEDOUBLE_PREFIX = "._"

DateReader = Callable[[Union[str, os.PathLike]], Optional[datetime]]


def printable(value) -> str:
    """
    Render a path or message so it can always be written to the console.

    File names that are not valid UTF-8 come back from the file system as
    strings holding lone surrogates, which most streams refuse to encode.
    Those characters are replaced by backslash escapes.
    """
    return str(value).encode("utf-8", errors="backslashreplace").decode("utf-8")


def dates_are_close(first_date: datetime, second_date: datetime) -> bool:
    """Two dates are close when they are strictly less than a week apart."""
    return abs(first_date - second_date) < CLOSENESS_WINDOW


def choose_authoritative_date(
    path_date: datetime,
    metadata_date: Optional[datetime],
    modtime_date: Optional[datetime],
) -> datetime:
    """
    Pick the date a file should carry.

    Metadata is preferred over modification time, and either is preferred
    over the path date when it agrees with the path date. Otherwise the
    path date itself is used.

    Args:
        path_date: Date derived from the file path
        metadata_date: Capture date from the file's metadata, if any
        modtime_date: File-system modification time, if any

    Returns:
        One of the three candidates, never a synthesised value
    """
    if metadata_date is not None and dates_are_close(path_date, metadata_date):
        return metadata_date

    if modtime_date is not None and dates_are_close(path_date, modtime_date):
        return modtime_date

    return path_date


def needs_update(current_date: Optional[datetime], authoritative_date: datetime) -> bool:
    """A date needs rewriting when it is missing or not close to the chosen one."""
    return current_date is None or not dates_are_close(current_date, authoritative_date)


@dataclass
class WriteAction:
    """A single correction applied to a file."""

    target: str
    date: datetime
    succeeded: bool = True
    error: Optional[str] = None


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one file."""

    file_path: Path
    path_date: Optional[datetime] = None
    metadata_date: Optional[datetime] = None
    modtime_date: Optional[datetime] = None
    authoritative_date: Optional[datetime] = None
    actions: List[WriteAction] = field(default_factory=list)

    def action_for(self, target: str) -> Optional[WriteAction]:
        for action in self.actions:
            if action.target == target:
                return action
        return None


class DateReconciler:
    """Reconciles path, metadata and modification dates across an archive."""

    def __init__(
        self,
        root_path: Union[str, os.PathLike],
        writer: Optional[TimestampWriter] = None,
        ignored_names: Iterable[str] = DEFAULT_IGNORED_NAMES,
        metadata_reader: DateReader = read_capture_date,
        modtime_reader: DateReader = read_modification_time,
    ):
        """
        Initialize the reconciler.

        Args:
            root_path: Directory to scan for files
            writer: Capability used to apply corrections (defaults to exiftool/touch)
            ignored_names: File names that are never processed
            metadata_reader: Returns a file's embedded capture date or None
            modtime_reader: Returns a file's modification time or None
        """
        self.root_path = Path(root_path)
        if not self.root_path.exists():
            raise ValueError(f"Root path does not exist: {root_path}")

        self.writer = writer if writer is not None else ExternalToolTimestampWriter()
        self.ignored_names = frozenset(ignored_names)
        self.metadata_reader = metadata_reader
        self.modtime_reader = modtime_reader
        self.errors: List[str] = []

    def find_files(self) -> List[Path]:
        """
        Recursively find every regular file under the root, depth first.

        Returns:
            Sorted list of Path objects, without ignored sidecar files
        """
        discovered_files = [
            current_path
            for current_path in self.root_path.rglob("*")
            if self._is_processable_file(current_path)
        ]
        return sorted(discovered_files)

    def _is_processable_file(self, file_path: Path) -> bool:
        """Check if a path is a regular file that is not an ignored sidecar."""
        if file_path.name in self.ignored_names:
            return False
        if file_path.name.startswith(APPLEDOUBLE_PREFIX):
            return False
        return file_path.is_file()

    def reconcile_file(self, file_path: Union[str, os.PathLike]) -> ReconciliationResult:
        """
        Reconcile the dates of a single file and apply any corrections.

        The modification time is read again after the metadata write, since
        rewriting metadata in place usually bumps it.

        Args:
            file_path: Path to the file

        Returns:
            ReconciliationResult describing the dates seen and writes attempted
        """
        result = ReconciliationResult(file_path=Path(file_path))

        result.path_date = extract_path_date(file_path)
        if result.path_date is None:
            print("Can't find path date")
            return result

        result.metadata_date = self.metadata_reader(file_path)
        result.modtime_date = self.modtime_reader(file_path)

        authoritative_date = choose_authoritative_date(
            result.path_date, result.metadata_date, result.modtime_date
        )
        result.authoritative_date = authoritative_date

        if needs_update(result.metadata_date, authoritative_date):
            result.actions.append(
                self._apply_write(
                    METADATA_WRITE,
                    "exif date",
                    self.writer.write_metadata_date,
                    file_path,
                    authoritative_date,
                )
            )

        current_modtime = self.modtime_reader(file_path)
        if needs_update(current_modtime, authoritative_date):
            result.actions.append(
                self._apply_write(
                    MODTIME_WRITE,
                    "file date",
                    self.writer.write_modification_time,
                    file_path,
                    authoritative_date,
                )
            )

        return result

    def _apply_write(
        self,
        target: str,
        description: str,
        write: Callable[[Union[str, os.PathLike], datetime], None],
        file_path: Union[str, os.PathLike],
        date: datetime,
    ) -> WriteAction:
        """Run one correction, reporting progress and absorbing its failure."""
        print(f"Setting {description} to {date}... ", end="", flush=True)
        try:
            write(file_path, date)
        except TimestampWriteError as e:
            print(f"Failed: {printable(e)}")
            self.errors.append(
                printable(f"Could not set {description} for {file_path}: {e}")
            )
            return WriteAction(target=target, date=date, succeeded=False, error=str(e))

        print("Would be done." if self.writer.dry_run else "Done.")
        return WriteAction(target=target, date=date)

    def reconcile_all(self) -> dict:
        """
        Reconcile every file under the root.

        A failure on one file is recorded and never stops the run.

        Returns:
            Dictionary with run statistics
        """
        discovered_files = self.find_files()
        run_statistics = self._initialize_statistics(discovered_files)

        for current_file_path in discovered_files:
            try:
                print(printable(current_file_path))
                file_result = self.reconcile_file(current_file_path)
            except Exception as error:
                self.errors.append(
                    printable(f"Error processing {current_file_path}: {error}")
                )
                run_statistics["errors"] += 1
                continue

            self._update_statistics_from_file_result(run_statistics, file_result)

        return run_statistics

    def _initialize_statistics(self, files: List[Path]) -> dict:
        """Initialize the run statistics dictionary."""
        return {
            "total_files": len(files),
            "no_path_date": 0,
            "metadata_updated": 0,
            "modtime_updated": 0,
            "write_failures": 0,
            "errors": 0,
        }

    def _update_statistics_from_file_result(
        self, statistics: dict, result: ReconciliationResult
    ):
        """Update statistics based on one file's reconciliation result."""
        if result.path_date is None:
            statistics["no_path_date"] += 1
            return

        for action in result.actions:
            if not action.succeeded:
                statistics["write_failures"] += 1
            elif action.target == METADATA_WRITE:
                statistics["metadata_updated"] += 1
            elif action.target == MODTIME_WRITE:
                statistics["modtime_updated"] += 1


def main():
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(
        description="Make photo metadata and file dates agree with the date in their path",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Recognised path dates:
  2001-02-03          folder or file name date, taken as midnight
  20010203_040506     camera file name timestamp, wins over the above

Examples:
  %(prog)s /path/to/photos
  %(prog)s /path/to/photos --dry-run
  %(prog)s /path/to/photos --ignore .picasa.ini
        """,
    )

    parser.add_argument("root_path", help="Directory to scan for media files")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be changed without modifying files",
    )
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="NAME",
        help="Additional file name to skip (may be repeated)",
    )

    parsed_arguments = parser.parse_args()

    writer = RecordingTimestampWriter() if parsed_arguments.dry_run else None

    try:
        reconciler = DateReconciler(
            parsed_arguments.root_path,
            writer=writer,
            ignored_names=DEFAULT_IGNORED_NAMES | set(parsed_arguments.ignore),
        )
    except ValueError as error:
        print(f"Error: {error}", file=sys.stderr)
        sys.exit(1)

    run_statistics = reconciler.reconcile_all()

    dry_run_label = "would be " if parsed_arguments.dry_run else ""
    print("=" * 60)
    print(f"{'DRY RUN ' if parsed_arguments.dry_run else ''}SUMMARY:")
    print(f"Total files visited: {run_statistics['total_files']}")
    print(f"Files without a path date: {run_statistics['no_path_date']}")
    print(f"Metadata dates {dry_run_label}updated: {run_statistics['metadata_updated']}")
    print(f"File dates {dry_run_label}updated: {run_statistics['modtime_updated']}")
    print(f"Failed writes: {run_statistics['write_failures']}")

    # Show errors in red if any
    if reconciler.errors:
        print()
        print(f"\033[91mERRORS ENCOUNTERED ({len(reconciler.errors)}):\033[0m")
        for error in reconciler.errors:
            print(f"\033[91m  {error}\033[0m")


if __name__ == "__main__":
    main()
