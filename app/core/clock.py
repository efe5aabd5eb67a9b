"""
UTC helpers shared by the store, the match engine and the pruner.

All three must agree on what "now" means so that a rule can never be
pruned while a concurrent resolve would still treat it as active.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive values (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_active(expires_at: datetime, now: Optional[datetime] = None) -> bool:
    """A rule is active iff its expiry is strictly after `now`."""
    return as_utc(expires_at) > as_utc(now or utcnow())
