# graphbot/slackapp/timerange.py

"""Parsing of the relative time window users append to the slash command."""

import re

from .errors import InvalidTimeRangeError

# Magnitude followed by a single unit: m=minutes, h=hours, d=days, y=years and
# M=months. The unit is case-sensitive, so "5m" and "5M" are different windows.
RELATIVE_OFFSET_PATTERN = re.compile(r"\d+[mhdyM]", re.ASCII)


def parse_relative_offset(token: str) -> str:
    """
    Turns a token such as ``2h`` into Grafana's relative ``from`` value.

    >>> parse_relative_offset("2h")
    'now-2h'

    Raises:
        InvalidTimeRangeError: if the token is not a magnitude plus one unit.
    """
    if not isinstance(token, str) or not RELATIVE_OFFSET_PATTERN.fullmatch(token):
        raise InvalidTimeRangeError(f"this time range is invalid: {token!r}")
    return "now-" + token
