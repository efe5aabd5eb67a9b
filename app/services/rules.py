"""
Rule store service: create / read / update / delete routing rules.

Public API
----------
create_rule(db, domain, subdomain, path, query_params, target, expires_at) -> RoutingRule
get_rule(db, rule_id)                                 -> RoutingRule | None
list_rules(db)                                        -> list[RoutingRule]
list_active_rules(db, now=None)                       -> list[RoutingRule]
update_rule(db, rule_id, patch: RulePatch)            -> RoutingRule
delete_rule(db, rule_id)                              -> bool

Every mutating function commits on success. Uniqueness is enforced by the
primary key only; a lost insert race surfaces as DuplicateRuleIdError and
is never retried here.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.errors import DuplicateRuleIdError, NoFieldsProvidedError, RuleNotFoundError
from app.models.rule import RoutingRule
from app.services.rule_codec import encode
from app.services.selectors import QueryPolicy, Selector, validate_domain

logger = structlog.get_logger(__name__)


@dataclass
class RulePatch:
    """The only fields a rule accepts after creation."""
    target: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_empty(self) -> bool:
        return self.target is None and self.expires_at is None


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def create_rule(
    db: Session,
    domain: str,
    subdomain: Optional[str],
    path: Optional[str],
    query_params: Optional[list[str]],
    target: str,
    expires_at: datetime,
) -> RoutingRule:
    validate_domain(domain)
    sub_selector = Selector.parse_subdomain(subdomain)
    path_selector = Selector.parse_path(path)
    policy = QueryPolicy.from_spec(query_params)
    rule_id = encode(domain, sub_selector, path_selector, policy)
    if db.get(RoutingRule, rule_id) is not None:
        raise DuplicateRuleIdError(rule_id)

    now = utcnow()
    rule = RoutingRule(
        id=rule_id,
        domain=domain,
        subdomain=sub_selector.to_column(),
        path=path_selector.to_column(),
        query_policy=policy.to_column(),
        target=target,
        expires_at=as_utc(expires_at),
        created_at=now,
        updated_at=now,
    )
    db.add(rule)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if db.get(RoutingRule, rule_id) is not None:
            raise DuplicateRuleIdError(rule_id)
        raise
    db.refresh(rule)
    logger.info("rule_created", rule_id=rule_id, target=target)
    return rule


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------

def get_rule(db: Session, rule_id: str) -> Optional[RoutingRule]:
    return db.get(RoutingRule, rule_id)


def list_rules(db: Session) -> list[RoutingRule]:
    """Every stored rule in creation order, expired ones included."""
    return (
        db.query(RoutingRule)
        .order_by(RoutingRule.created_at.asc(), RoutingRule.id.asc())
        .all()
    )


def list_active_rules(db: Session, now: Optional[datetime] = None) -> list[RoutingRule]:
    now = as_utc(now or utcnow())
    return (
        db.query(RoutingRule)
        .filter(RoutingRule.expires_at > now)
        .order_by(RoutingRule.created_at.asc(), RoutingRule.id.asc())
        .all()
    )


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

def update_rule(db: Session, rule_id: str, patch: RulePatch) -> RoutingRule:
    if patch.is_empty():
        raise NoFieldsProvidedError()
    rule = db.get(RoutingRule, rule_id)
    if rule is None:
        raise RuleNotFoundError(rule_id)

    changed: list[str] = []
    if patch.target is not None:
        rule.target = patch.target
        changed.append("target")
    if patch.expires_at is not None:
        rule.expires_at = as_utc(patch.expires_at)
        changed.append("expires_at")
    rule.updated_at = utcnow()

    db.commit()
    db.refresh(rule)
    logger.info("rule_updated", rule_id=rule_id, fields=changed)
    return rule


def delete_rule(db: Session, rule_id: str) -> bool:
    """True iff a row was removed."""
    deleted = (
        db.query(RoutingRule)
        .filter(RoutingRule.id == rule_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("rule_deleted", rule_id=rule_id)
    return deleted > 0
