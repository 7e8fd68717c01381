#!/usr/bin/env python3
"""
Timestamp Sources

Read the two mutable candidate dates of a media file: the capture date
embedded in its metadata and its file-system modification time.

Readers never raise. Anything that cannot be read, decoded or found is
reported as None, and None is the only way absence is expressed.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import exifread
import piexif
from PIL import Image
from PIL.ExifTags import TAGS
from pymediainfo import MediaInfo

IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".tiff",
    ".tif",
    ".bmp",
    ".gif",
    ".webp",
}
VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".wmv", ".flv", ".webm", ".m4v"}

# Pointer from the base IFD to the Exif sub-IFD holding DateTimeOriginal
EXIF_IFD_POINTER = 0x8769

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def parse_exif_datetime(date_string) -> Optional[datetime]:
    """Parse EXIF datetime string to datetime object."""
    if isinstance(date_string, bytes):
        date_string = date_string.decode("ascii", errors="ignore")

    try:
        return datetime.strptime(str(date_string).strip("\x00 "), EXIF_DATETIME_FORMAT)
    except ValueError:
        # Includes the '0000:00:00 00:00:00' placeholder some cameras write
        return None


def parse_video_datetime(date_string: str) -> Optional[datetime]:
    """Parse video metadata datetime string to datetime object."""
    try:
        # MediaInfo reports either 'UTC 2023-12-25 14:30:45' or '2023-12-25 14:30:45 UTC'
        if "UTC" in date_string:
            cleaned_date_string = date_string.replace("UTC", "").strip()
            return datetime.strptime(cleaned_date_string, "%Y-%m-%d %H:%M:%S")

        # Handle ISO format
        iso_formatted_string = date_string.replace("T", " ").replace("Z", "")
        parsed = datetime.fromisoformat(iso_formatted_string)
        return parsed.replace(tzinfo=None)
    except ValueError:
        return None


def _extract_date_with_piexif(file_path: Path) -> Optional[datetime]:
    """Extract capture date using piexif."""
    try:
        exif_dict = piexif.load(str(file_path))
    except Exception:
        return None

    candidate_values = [
        exif_dict.get("Exif", {}).get(piexif.ExifIFD.DateTimeOriginal),
        exif_dict.get("0th", {}).get(piexif.ImageIFD.DateTime),
    ]
    for value in candidate_values:
        if value:
            parsed_date = parse_exif_datetime(value)
            if parsed_date:
                return parsed_date

    return None


def _extract_date_with_pillow(file_path: Path) -> Optional[datetime]:
    """Extract capture date using PIL library."""
    try:
        with Image.open(file_path) as image:
            exif_data = image.getexif()
            if not exif_data:
                return None

            tags_by_name = {}
            for tag_identifier, tag_value in exif_data.items():
                tags_by_name[TAGS.get(tag_identifier, tag_identifier)] = tag_value
            for tag_identifier, tag_value in exif_data.get_ifd(EXIF_IFD_POINTER).items():
                tags_by_name[TAGS.get(tag_identifier, tag_identifier)] = tag_value
    except Exception:
        return None

    for tag_name in ["DateTimeOriginal", "DateTime"]:
        if tag_name in tags_by_name:
            parsed_date = parse_exif_datetime(tags_by_name[tag_name])
            if parsed_date:
                return parsed_date

    return None


def _extract_date_with_exifread(file_path: Path) -> Optional[datetime]:
    """Extract capture date using exifread library as fallback."""
    try:
        with open(file_path, "rb") as file_handle:
            exif_tags = exifread.process_file(file_handle, details=False)
    except Exception:
        return None

    priority_tag_names = [
        "EXIF DateTimeOriginal",
        "EXIF DateTime",
        "Image DateTime",
    ]
    for tag_name in priority_tag_names:
        if tag_name in exif_tags:
            parsed_date = parse_exif_datetime(str(exif_tags[tag_name]))
            if parsed_date:
                return parsed_date

    return None


def _extract_date_from_video(file_path: Path) -> Optional[datetime]:
    """Extract capture date from the General track of a video file."""
    try:
        media_information = MediaInfo.parse(str(file_path))
    except Exception:
        return None

    for track in media_information.tracks:
        if track.track_type != "General":
            continue

        for field_name in ["recorded_date", "tagged_date", "encoded_date"]:
            date_value = getattr(track, field_name, None)
            if date_value:
                parsed_date = parse_video_datetime(str(date_value))
                if parsed_date:
                    return parsed_date

    return None


def read_capture_date(path: Union[str, os.PathLike]) -> Optional[datetime]:
    """
    Read the capture date embedded in a media file's metadata.

    Videos are read through MediaInfo. Everything else is treated as a
    possible EXIF carrier and tried with piexif, Pillow and exifread in turn.

    Args:
        path: Path to the media file

    Returns:
        Naive datetime, or None if no readable capture date exists
    """
    file_path = Path(path)

    if file_path.suffix.lower() in VIDEO_EXTENSIONS:
        return _extract_date_from_video(file_path)

    for extractor in (
        _extract_date_with_piexif,
        _extract_date_with_pillow,
        _extract_date_with_exifread,
    ):
        capture_date = extractor(file_path)
        if capture_date is not None:
            return capture_date

    return None


def read_modification_time(path: Union[str, os.PathLike]) -> Optional[datetime]:
    """Read the file-system modification time as naive local time."""
    try:
        file_statistics = os.stat(path)
    except OSError:
        return None

    return datetime.fromtimestamp(file_statistics.st_mtime)
