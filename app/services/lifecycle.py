"""
Expiry sweep for routing rules.

prune_expired_rules() removes every rule with expires_at <= now in one
DELETE statement. It uses the same "now" comparison as resolve(), so it can
never remove a rule that a concurrent resolve would still consider active.

run_prune_loop() is the in-process scheduler started by the app lifespan.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.models.rule import RoutingRule

logger = structlog.get_logger(__name__)


def prune_expired_rules(db: Session, now: Optional[datetime] = None) -> int:
    """Delete all expired rules and return how many were removed."""
    now = as_utc(now or utcnow())
    result = db.execute(
        delete(RoutingRule)
        .where(RoutingRule.expires_at <= now)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    pruned = result.rowcount or 0
    logger.info("rules_pruned", count=pruned, cutoff=now.isoformat())
    return pruned


def _prune_once(session_factory: Callable[[], Session]) -> int:
    db = session_factory()
    try:
        return prune_expired_rules(db)
    finally:
        db.close()


async def run_prune_loop(
    session_factory: Callable[[], Session],
    interval_seconds: int,
    run_immediately: bool = True,
) -> None:
    """Prune every `interval_seconds` until cancelled.

    A failed sweep is logged and retried on the next tick.
    """
    logger.info("prune_loop_started", interval_seconds=interval_seconds)
    if not run_immediately:
        await asyncio.sleep(interval_seconds)

    while True:
        try:
            await asyncio.to_thread(_prune_once, session_factory)
        except Exception:
            logger.exception("prune_sweep_failed")
        await asyncio.sleep(interval_seconds)
