"""
Timestamp parsing for store rows.

The store has emitted several serializations of the same instant over
time, so decoding tries a fixed chain of formats and only fails when
every one of them fails:

1. ``2025-03-31 06:20:09+00``     space separator, offset without colon
2. ``2025-03-31T06:20:09+00:00``  ``T`` separator with offset
3. ``2025-03-31T06:20:09.123Z``   full ISO-8601, fractional seconds
4. trip rows only: anything with a ``.`` is cut at the first ``.`` and
   read as ``%Y-%m-%dT%H:%M:%S`` in UTC

Trip rows additionally accept naive ``T``-separated and date-only values
written by early clients, read as UTC. Instants are kept at whole-second
precision, the resolution of the primary store format.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from dateutil import parser as iso_parser

from fleetops.app.core.exceptions import ParseError

logger = logging.getLogger("fleetops.timestamps")

STORE_FORMAT = "%Y-%m-%d %H:%M:%S%z"
ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

_SHORT_OFFSET = re.compile(r"([+-]\d{2})$")


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _widen_offset(raw: str) -> str:
    # "+00" -> "+0000"; strptime's %z needs minutes
    return _SHORT_OFFSET.sub(r"\g<1>00", raw)


def _space_with_offset(raw: str) -> datetime:
    return datetime.strptime(_widen_offset(raw), "%Y-%m-%d %H:%M:%S%z")


def _t_with_offset(raw: str) -> datetime:
    return datetime.strptime(_widen_offset(raw), "%Y-%m-%dT%H:%M:%S%z")


def _full_iso(raw: str) -> datetime:
    parsed = iso_parser.isoparse(raw)
    if parsed.tzinfo is None:
        raise ValueError("ISO-8601 value without a zone designator")
    return parsed


def _truncate_fraction(raw: str) -> datetime:
    if "." not in raw:
        raise ValueError("no fractional seconds to truncate")
    head = raw[:raw.index(".")]
    return datetime.strptime(head, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


def _naive_t(raw: str) -> datetime:
    return datetime.strptime(raw, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


def _date_only(raw: str) -> datetime:
    return datetime.strptime(raw, "%Y-%m-%d").replace(tzinfo=timezone.utc)


_COMMON_CHAIN: List[Callable[[str], datetime]] = [_space_with_offset, _t_with_offset, _full_iso]
_TRIP_CHAIN: List[Callable[[str], datetime]] = _COMMON_CHAIN + [_truncate_fraction, _naive_t, _date_only]


def _run_chain(raw: str, chain: List[Callable[[str], datetime]]) -> datetime:
    if not isinstance(raw, str):
        raise ParseError(str(raw))
    value = raw.strip()
    for attempt in chain:
        try:
            return attempt(value).astimezone(timezone.utc).replace(microsecond=0)
        except (ValueError, OverflowError):
            continue
    logger.warning("Unrecognized timestamp %r", raw)
    raise ParseError(raw)


def parse_timestamp(raw: str) -> datetime:
    """
    Parse a notification/chat timestamp into an aware UTC datetime.

    Raises:
        ParseError: if no known format matches
    """
    return _run_chain(raw, _COMMON_CHAIN)


def parse_trip_timestamp(raw: str) -> datetime:
    """Like ``parse_timestamp`` with the extra fallbacks trip rows need."""
    return _run_chain(raw, _TRIP_CHAIN)


def parse_optional(raw: Optional[str], trip: bool = False) -> Optional[datetime]:
    if raw is None:
        return None
    return parse_trip_timestamp(raw) if trip else parse_timestamp(raw)


def _as_utc(value: datetime) -> datetime:
    # Naive values are taken to be UTC already
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize in the primary store format (format 1 above)."""
    return _as_utc(value).strftime(STORE_FORMAT)


def format_iso(value: datetime) -> str:
    """Serialize for notification metadata (``2025-03-31T06:20:09Z``)."""
    return _as_utc(value).strftime(ISO_FORMAT)
