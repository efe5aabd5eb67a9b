"""
Rule management router.

GET    /api/rules               — all rules, expired included (creation order)
GET    /api/rules/active        — rules whose expiry is still in the future
POST   /api/rules/prune         — remove expired rules now
GET    /api/rules/{rule_id}     — single rule
POST   /api/rules               — create (id derived from the selectors)
PATCH  /api/rules/{rule_id}     — change target and/or expiry
DELETE /api/rules/{rule_id}     — remove

Rule ids contain "/" so the id segment uses the `path` converter; clients
should percent-encode the id.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.clock import as_utc, is_active, utcnow
from app.core.errors import RuleNotFoundError
from app.db.base import get_db
from app.models.rule import RoutingRule
from app.schemas.common import ErrorResponse
from app.schemas.rules import (
    DeleteResponse,
    PruneResponse,
    RuleCreateRequest,
    RuleListResponse,
    RuleResponse,
    RuleUpdateRequest,
)
from app.services.lifecycle import prune_expired_rules
from app.services.rules import (
    RulePatch,
    create_rule,
    delete_rule,
    get_rule,
    list_active_rules,
    list_rules,
    update_rule,
)
from app.services.selectors import QueryPolicy

router = APIRouter(prefix="/api/rules", tags=["rules"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def rule_to_response(rule: RoutingRule, now: Optional[datetime] = None) -> RuleResponse:
    return RuleResponse(
        id=rule.id,
        domain=rule.domain,
        subdomain=rule.subdomain,
        path=rule.path,
        query_params=QueryPolicy.from_column(rule.query_policy).to_spec(),
        target=rule.target,
        expires_at=_iso(rule.expires_at),
        created_at=_iso(rule.created_at),
        updated_at=_iso(rule.updated_at),
        active=is_active(rule.expires_at, now),
    )


def _list_response(rules: list[RoutingRule]) -> RuleListResponse:
    now = utcnow()
    return RuleListResponse(
        total=len(rules),
        items=[rule_to_response(r, now) for r in rules],
    )


# ---------------------------------------------------------------------------
# Collection endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=RuleListResponse,
    summary="List every stored rule (expired included)",
)
def list_all(db: Session = Depends(get_db)):
    return _list_response(list_rules(db))


@router.get(
    "/active",
    response_model=RuleListResponse,
    summary="List rules that have not expired yet",
)
def list_active(db: Session = Depends(get_db)):
    return _list_response(list_active_rules(db))


@router.post(
    "/prune",
    response_model=PruneResponse,
    summary="Delete every expired rule now",
)
def prune(db: Session = Depends(get_db)):
    """Same sweep the background loop runs; safe to call at any time."""
    return PruneResponse(pruned=prune_expired_rules(db))


@router.post(
    "",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a routing rule",
    responses={
        409: {"model": ErrorResponse, "description": "A rule with the same selectors already exists."},
        422: {"model": ErrorResponse, "description": "Invalid domain, selector or query key."},
    },
)
def create(payload: RuleCreateRequest, db: Session = Depends(get_db)):
    """
    The rule id is derived from the selectors, for example:

    | subdomain | path | query_params | id |
    |---|---|---|---|
    | `api` | `/users` | `["id","page"]` | `api.example.com/users/[id,page]` |
    | `*` | `*` | `null` | `*.example.com/*` |
    | `null` | `/home` | `[]` | `!.example.com/home/[]` |
    """
    rule = create_rule(
        db=db,
        domain=payload.domain,
        subdomain=payload.subdomain,
        path=payload.path,
        query_params=payload.query_params,
        target=payload.target,
        expires_at=payload.expires_at,
    )
    return rule_to_response(rule)


# ---------------------------------------------------------------------------
# Item endpoints
# ---------------------------------------------------------------------------

@router.get(
    "/{rule_id:path}",
    response_model=RuleResponse,
    summary="Retrieve a single rule by id",
    responses={404: {"model": ErrorResponse, "description": "Rule not found."}},
)
def get_one(rule_id: str, db: Session = Depends(get_db)):
    rule = get_rule(db, rule_id)
    if rule is None:
        raise RuleNotFoundError(rule_id)
    return rule_to_response(rule)


@router.patch(
    "/{rule_id:path}",
    response_model=RuleResponse,
    summary="Update a rule's target and/or expiry",
    responses={
        404: {"model": ErrorResponse, "description": "Rule not found."},
        422: {"model": ErrorResponse, "description": "No updatable field supplied."},
    },
)
def update(rule_id: str, payload: RuleUpdateRequest, db: Session = Depends(get_db)):
    patch = RulePatch(target=payload.target, expires_at=payload.expires_at)
    return rule_to_response(update_rule(db, rule_id, patch))


@router.delete(
    "/{rule_id:path}",
    response_model=DeleteResponse,
    summary="Delete a rule",
    responses={404: {"model": ErrorResponse, "description": "Rule not found."}},
)
def remove(rule_id: str, db: Session = Depends(get_db)):
    if not delete_rule(db, rule_id):
        raise RuleNotFoundError(rule_id)
    return DeleteResponse(id=rule_id, deleted=True)
