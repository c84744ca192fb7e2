from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret naive datetimes as UTC and convert aware ones to UTC.

    SQLite hands back naive values even for timezone-aware columns, so
    everything read from or written to the store goes through here.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_update_time(previous: Optional[datetime]) -> datetime:
    """Timestamp for a mutation, strictly later than the previous one"""
    now = utc_now()
    previous = as_utc(previous)
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def normalize_tags(tags: Optional[Iterable[str]]) -> List[str]:
    """Strip tag text, drop empty tags and collapse duplicates (first one wins)"""
    if not tags:
        return []
    cleaned = (tag.strip() for tag in tags if tag is not None)
    return list(dict.fromkeys(tag for tag in cleaned if tag))
