#!/usr/bin/env python3
"""
Tests for the timestamp_writers module.
"""

import shutil
import subprocess
import tempfile
from datetime import datetime
from pathlib import Path
from unittest import mock

import pytest

from timestamp_sources import read_modification_time
from timestamp_writers import (
    METADATA_WRITE,
    MODTIME_WRITE,
    ExternalToolTimestampWriter,
    RecordingTimestampWriter,
    TimestampWriteError,
    format_exif_timestamp,
    format_touch_timestamp,
)

SAMPLE_DATE = datetime(2005, 6, 7, 8, 9, 50)


class TestTimestampFormatting:
    """Test suite for external tool timestamp formats."""

    def test_format_exif_timestamp(self):
        """EXIF timestamps use colons in the date part."""
        # Act & Assert
        assert format_exif_timestamp(SAMPLE_DATE) == "2005:06:07 08:09:50"

    def test_format_touch_timestamp(self):
        """touch timestamps put seconds after a dot."""
        # Act & Assert
        assert format_touch_timestamp(SAMPLE_DATE) == "200506070809.50"


class TestExternalToolTimestampWriter:
    """Test suite for the exiftool and touch backed writer."""

    def setup_method(self):
        """Set up test environment before each test."""
        self.test_directory = Path(tempfile.mkdtemp())
        self.test_file = self.test_directory / "photo.jpg"
        self.test_file.write_bytes(b"fake image data")

    def teardown_method(self):
        """Clean up after each test."""
        shutil.rmtree(self.test_directory)

    def test_write_metadata_date_invokes_exiftool(self):
        """Metadata write rewrites all dates in place with exiftool."""
        # Arrange
        writer = ExternalToolTimestampWriter()

        # Act
        with mock.patch(
            "timestamp_writers.shutil.which", return_value="/usr/bin/exiftool"
        ), mock.patch("timestamp_writers.subprocess.run") as run_mock:
            writer.write_metadata_date(self.test_file, SAMPLE_DATE)

        # Assert
        run_mock.assert_called_once_with(
            [
                "exiftool",
                "-AllDates=2005:06:07 08:09:50",
                "-overwrite_original",
                str(self.test_file),
            ],
            capture_output=True,
            text=True,
            check=True,
        )

    def test_write_modification_time_invokes_touch(self):
        """Modification time write uses touch -t."""
        # Arrange
        writer = ExternalToolTimestampWriter()

        # Act
        with mock.patch(
            "timestamp_writers.shutil.which", return_value="/usr/bin/touch"
        ), mock.patch("timestamp_writers.subprocess.run") as run_mock:
            writer.write_modification_time(self.test_file, SAMPLE_DATE)

        # Assert
        called_command = run_mock.call_args[0][0]
        assert called_command == [
            "touch",
            "-t",
            "200506070809.50",
            str(self.test_file),
        ]

    def test_missing_binary_raises(self):
        """Missing external tool raises TimestampWriteError."""
        # Arrange
        writer = ExternalToolTimestampWriter(exiftool_binary="no-such-exiftool")

        # Act & Assert
        with mock.patch("timestamp_writers.shutil.which", return_value=None):
            with pytest.raises(TimestampWriteError, match="binary not found"):
                writer.write_metadata_date(self.test_file, SAMPLE_DATE)

    def test_failing_tool_raises_with_stderr(self):
        """Non-zero exit raises TimestampWriteError carrying stderr."""
        # Arrange
        writer = ExternalToolTimestampWriter()
        failure = subprocess.CalledProcessError(
            1, ["exiftool"], stderr="Error: Not a valid JPG\n"
        )

        # Act & Assert
        with mock.patch(
            "timestamp_writers.shutil.which", return_value="/usr/bin/exiftool"
        ), mock.patch("timestamp_writers.subprocess.run", side_effect=failure):
            with pytest.raises(TimestampWriteError, match="Not a valid JPG"):
                writer.write_metadata_date(self.test_file, SAMPLE_DATE)

    def test_failing_tool_without_stderr_reports_exit_status(self):
        """Non-zero exit without stderr reports the exit status."""
        # Arrange
        writer = ExternalToolTimestampWriter()
        failure = subprocess.CalledProcessError(2, ["touch"], stderr="")

        # Act & Assert
        with mock.patch(
            "timestamp_writers.shutil.which", return_value="/usr/bin/touch"
        ), mock.patch("timestamp_writers.subprocess.run", side_effect=failure):
            with pytest.raises(TimestampWriteError, match="exit status 2"):
                writer.write_modification_time(self.test_file, SAMPLE_DATE)

    @pytest.mark.skipif(shutil.which("touch") is None, reason="touch not available")
    def test_touch_sets_modification_time(self):
        """Real touch call sets the file modification time."""
        # Arrange
        writer = ExternalToolTimestampWriter()

        # Act
        writer.write_modification_time(self.test_file, SAMPLE_DATE)

        # Assert
        assert read_modification_time(self.test_file) == SAMPLE_DATE

    @pytest.mark.skipif(shutil.which("touch") is None, reason="touch not available")
    def test_touch_on_missing_directory_fails(self):
        """Real touch failure surfaces as TimestampWriteError."""
        # Arrange
        writer = ExternalToolTimestampWriter()
        unreachable_file = self.test_directory / "missing_dir" / "photo.jpg"

        # Act & Assert
        with pytest.raises(TimestampWriteError):
            writer.write_modification_time(unreachable_file, SAMPLE_DATE)


class TestRecordingTimestampWriter:
    """Test suite for the recording writer."""

    def test_records_calls_in_order(self):
        """Recording writer keeps every requested write in order."""
        # Arrange
        writer = RecordingTimestampWriter()

        # Act
        writer.write_metadata_date("/a/photo.jpg", SAMPLE_DATE)
        writer.write_modification_time(Path("/a/photo.jpg"), SAMPLE_DATE)

        # Assert
        assert writer.calls == [
            (METADATA_WRITE, "/a/photo.jpg", SAMPLE_DATE),
            (MODTIME_WRITE, "/a/photo.jpg", SAMPLE_DATE),
        ]

    def test_only_recording_writer_is_dry_run(self):
        """Recording writer reports itself as a dry run, the real one does not."""
        # Act & Assert
        assert RecordingTimestampWriter().dry_run is True
        assert ExternalToolTimestampWriter().dry_run is False

    def test_simulated_failure(self):
        """Failing kinds are recorded and then raise TimestampWriteError."""
        # Arrange
        writer = RecordingTimestampWriter(failing_kinds={MODTIME_WRITE})

        # Act & Assert
        writer.write_metadata_date("/a/photo.jpg", SAMPLE_DATE)
        with pytest.raises(TimestampWriteError, match="simulated modtime"):
            writer.write_modification_time("/a/photo.jpg", SAMPLE_DATE)
        assert len(writer.calls) == 2
