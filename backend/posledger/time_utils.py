# Overview: UTC clock and ISO-8601 conversions for ledger timestamps.

"""
Ledger timestamps are stored as naive datetimes that are always UTC.
Inbound strings are normalized to that form; outbound values carry a 'Z'.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2024-03-01" and offset-less values are taken as UTC already; a trailing
    'Z' or an explicit offset is shifted to UTC. Blank input gives None.
    Raises ValueError for anything fromisoformat rejects.
    """
    text = (value or "").strip()
    if not text:
        return None

    parsed = datetime.fromisoformat(text.replace("Z", "+00:00") if text.endswith("Z") else text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(moment: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO string with 'Z'; naive input counts as UTC."""
    if moment is None:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.replace(microsecond=0).isoformat() + "Z"
