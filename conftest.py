"""
Shared pytest configuration.

Test docstrings are used as test names in reports, following the technique
from https://medium.com/@dsmd90/python-displayname-analog-from-java-6a1d1ad3c468
A few helpers for building sample media files are exposed as fixtures.
"""

from datetime import datetime
from pathlib import Path

import piexif
import pytest
from PIL import Image

from timestamp_writers import RecordingTimestampWriter


def pytest_collection_modifyitems(items):
    """Use the first docstring line of each test as its reported name."""
    for item in items:
        docstring = item.function.__doc__
        if not docstring:
            continue

        summary_lines = [line.strip() for line in docstring.splitlines() if line.strip()]
        if not summary_lines:
            continue

        # Keep the parameter id of parametrized tests
        parameter_start = item.nodeid.find("[")
        parameter_part = item.nodeid[parameter_start:] if parameter_start != -1 else ""
        item._nodeid = summary_lines[0] + parameter_part


@pytest.fixture
def recording_writer():
    """Writer double that records corrections instead of applying them."""
    return RecordingTimestampWriter()


@pytest.fixture
def make_exif_jpeg():
    """Factory writing a small JPEG with the given EXIF date fields."""

    def _make_exif_jpeg(file_path: Path, date_time_original=None, date_time=None):
        zeroth_ifd = {}
        exif_ifd = {}
        if date_time is not None:
            zeroth_ifd[piexif.ImageIFD.DateTime] = _exif_bytes(date_time)
        if date_time_original is not None:
            exif_ifd[piexif.ExifIFD.DateTimeOriginal] = _exif_bytes(date_time_original)

        exif_bytes = piexif.dump({"0th": zeroth_ifd, "Exif": exif_ifd})
        file_path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", (8, 8), color=(120, 60, 30)).save(
            file_path, "JPEG", exif=exif_bytes
        )
        return file_path

    return _make_exif_jpeg


def _exif_bytes(value) -> bytes:
    if isinstance(value, datetime):
        value = value.strftime("%Y:%m:%d %H:%M:%S")
    return value.encode("ascii")
