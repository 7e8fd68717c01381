#!/usr/bin/env python3
"""
Path Date Utilities
Derive a capture date from the text of a file path.

Two naming styles are recognised:
- coarse dates like '2001-02-03', usually typed by hand on folder names
- fine timestamps like '20010203_040506', usually written by cameras on filenames
"""

import os
import re
from datetime import datetime, timedelta
from pathlib import PurePath
from typing import Optional, Union

COARSE_DATE_PATTERN = re.compile(r"((?:19|20)\d\d)-([01]\d)-([0123]\d)")
FINE_TIMESTAMP_PATTERN = re.compile(
    r"((?:19|20)\d\d)([01]\d)([0123]\d)_(\d\d)(\d\d)(\d\d)"
)


def build_datetime(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0
) -> datetime:
    """
    Build a datetime, rolling out-of-range fields over instead of rejecting them.

    The patterns only constrain digit classes, so values like month 13 or
    day 00 can match. These are carried into the neighbouring field the way
    calendar arithmetic does (month 13 of 2001 is January 2002, day 00 is
    the last day of the previous month).

    Args:
        year: Four-digit year
        month: Month number, possibly outside 1-12
        day: Day number, possibly outside the month
        hour: Hour, possibly above 23
        minute: Minute, possibly above 59
        second: Second, possibly above 59

    Returns:
        Naive datetime for the normalised fields
    """
    carried_year, month_index = divmod(year * 12 + month - 1, 12)
    first_of_month = datetime(carried_year, month_index + 1, 1)
    return first_of_month + timedelta(
        days=day - 1, hours=hour, minutes=minute, seconds=second
    )


def match_coarse_date(segment: str) -> Optional[datetime]:
    """Match a 'YYYY-MM-DD' date anywhere in a path segment, at midnight."""
    match = COARSE_DATE_PATTERN.search(segment)
    if not match:
        return None

    year, month, day = (int(group) for group in match.groups())
    return build_datetime(year, month, day)


def match_fine_timestamp(segment: str) -> Optional[datetime]:
    """Match a 'YYYYMMDD_HHMMSS' timestamp anywhere in a path segment."""
    match = FINE_TIMESTAMP_PATTERN.search(segment)
    if not match:
        return None

    year, month, day, hour, minute, second = (int(group) for group in match.groups())
    return build_datetime(year, month, day, hour, minute, second)


def extract_path_date(path: Union[str, os.PathLike]) -> Optional[datetime]:
    """
    Derive the capture date from a file path.

    Every segment is scanned for both patterns. For each pattern the match in
    the deepest segment wins, and any fine timestamp overrides a coarse date
    because it carries the time of day.

    Args:
        path: File path to inspect

    Returns:
        Naive datetime, or None if no segment matches either pattern
    """
    segments = PurePath(path).parts

    coarse_date = None
    for segment in segments:
        segment_date = match_coarse_date(segment)
        if segment_date is not None:
            coarse_date = segment_date

    fine_timestamp = None
    for segment in segments:
        segment_timestamp = match_fine_timestamp(segment)
        if segment_timestamp is not None:
            fine_timestamp = segment_timestamp

    if fine_timestamp is not None:
        return fine_timestamp

    return coarse_date
