#!/usr/bin/env python3
"""
Timestamp Writers

Apply corrected dates to a media file. The real writer shells out to
exiftool for the embedded capture date and to touch for the file-system
times; the recording writer only remembers what it was asked to do.
"""

import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Set, Tuple, Union

METADATA_WRITE = "metadata"
MODTIME_WRITE = "modtime"


class TimestampWriteError(Exception):
    """Exception raised when a timestamp cannot be written to a file."""

    pass


def format_exif_timestamp(date: datetime) -> str:
    """Format date as 'YYYY:MM:DD HH:MM:SS' for exiftool."""
    return date.strftime("%Y:%m:%d %H:%M:%S")


def format_touch_timestamp(date: datetime) -> str:
    """Format date as 'YYYYMMDDHHMM.SS' for touch -t."""
    return date.strftime("%Y%m%d%H%M.%S")


class TimestampWriter(ABC):
    """Capability for rewriting the mutable dates of a file."""

    # True when writes are only reported, never applied
    dry_run = False

    @abstractmethod
    def write_metadata_date(
        self, file_path: Union[str, os.PathLike], date: datetime
    ) -> None:
        """Rewrite the capture date embedded in the file's metadata."""

    @abstractmethod
    def write_modification_time(
        self, file_path: Union[str, os.PathLike], date: datetime
    ) -> None:
        """Set the file-system modification and access time."""


class ExternalToolTimestampWriter(TimestampWriter):
    """Writes timestamps by invoking exiftool and touch."""

    def __init__(self, exiftool_binary: str = "exiftool", touch_binary: str = "touch"):
        self.exiftool_binary = exiftool_binary
        self.touch_binary = touch_binary

    def write_metadata_date(
        self, file_path: Union[str, os.PathLike], date: datetime
    ) -> None:
        """
        Rewrite every EXIF date field in place.

        The original file is overwritten and no backup is kept.

        Raises:
            TimestampWriteError: If exiftool is missing or reports a failure
        """
        cmd = [
            self.exiftool_binary,
            f"-AllDates={format_exif_timestamp(date)}",
            "-overwrite_original",
            str(file_path),
        ]
        self._run_tool(cmd)

    def write_modification_time(
        self, file_path: Union[str, os.PathLike], date: datetime
    ) -> None:
        """
        Set modification and access time with touch.

        Raises:
            TimestampWriteError: If touch is missing or reports a failure
        """
        cmd = [self.touch_binary, "-t", format_touch_timestamp(date), str(file_path)]
        self._run_tool(cmd)

    def _run_tool(self, cmd: List[str]) -> None:
        """Run an external tool to completion, raising on any failure."""
        if not shutil.which(cmd[0]):
            raise TimestampWriteError(f"{cmd[0]} binary not found")

        try:
            subprocess.run(cmd, capture_output=True, text=True, check=True)
        except subprocess.CalledProcessError as e:
            message = (e.stderr or "").strip() or f"exit status {e.returncode}"
            raise TimestampWriteError(f"{cmd[0]} failed: {message}") from e
        except OSError as e:
            raise TimestampWriteError(f"{cmd[0]} could not be run: {e}") from e


class RecordingTimestampWriter(TimestampWriter):
    """
    Records requested writes without touching any file.

    Used for dry runs and as a test double. Kinds listed in failing_kinds
    raise TimestampWriteError after being recorded.
    """

    dry_run = True

    def __init__(self, failing_kinds: Optional[Set[str]] = None):
        self.calls: List[Tuple[str, str, datetime]] = []
        self.failing_kinds = set(failing_kinds or ())

    def write_metadata_date(
        self, file_path: Union[str, os.PathLike], date: datetime
    ) -> None:
        self._record(METADATA_WRITE, file_path, date)

    def write_modification_time(
        self, file_path: Union[str, os.PathLike], date: datetime
    ) -> None:
        self._record(MODTIME_WRITE, file_path, date)

    def _record(self, kind: str, file_path, date: datetime) -> None:
        self.calls.append((kind, str(file_path), date))
        if kind in self.failing_kinds:
            raise TimestampWriteError(f"simulated {kind} write failure")
