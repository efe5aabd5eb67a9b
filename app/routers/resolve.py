"""
Resolution router.

GET /api/match  — explicit domain / subdomain / path
GET /resolve    — proxy-facing: takes the raw Host and answers with headers

Every query parameter not named below is treated as one of the incoming
request's query keys and checked against the rule's query policy.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from app.core.errors import InvalidInputError, NoMatchingRuleError
from app.db.base import get_db
from app.routers.rules import rule_to_response
from app.schemas.common import ErrorResponse
from app.schemas.rules import ResolveResponse, RuleResponse
from app.services.router import resolve, split_host

router = APIRouter(tags=["resolve"])

_MATCH_RESERVED = frozenset({"domain", "subdomain", "path"})
_RESOLVE_RESERVED = frozenset({"host", "path"})


def _request_keys(request: Request, reserved: frozenset[str]) -> set[str]:
    return {key for key in request.query_params.keys() if key not in reserved}


@router.get(
    "/api/match",
    response_model=RuleResponse,
    summary="Find the most specific active rule for a request",
    responses={404: {"model": ErrorResponse, "description": "No active rule matches."}},
)
def match(
    request: Request,
    domain: str = Query(min_length=1, description="Registered domain.", examples=["example.com"]),
    subdomain: Optional[str] = Query(default=None, description="Omit for none.", examples=["api"]),
    path: Optional[str] = Query(default=None, description="Omit for root.", examples=["/users"]),
    db: Session = Depends(get_db),
):
    rule = resolve(
        db,
        domain=domain,
        subdomain=subdomain,
        path=path,
        query_keys=_request_keys(request, _MATCH_RESERVED),
    )
    if rule is None:
        raise NoMatchingRuleError(domain)
    return rule_to_response(rule)


@router.get(
    "/resolve",
    response_model=ResolveResponse,
    summary="Resolve a Host + path to a downstream target",
    responses={404: {"model": ErrorResponse, "description": "No active rule matches."}},
)
def resolve_host(
    request: Request,
    response: Response,
    host: str = Query(min_length=1, examples=["api.example.com"]),
    path: str = Query(default="/", examples=["/users"]),
    db: Session = Depends(get_db),
):
    """
    Splits `host` into domain (last two labels) and subdomain (the rest),
    resolves, and mirrors the result in `X-Downstream-URL` / `X-Rule-ID`.
    """
    domain, subdomain = split_host(host)
    if not domain:
        raise InvalidInputError("Host has no domain labels.", field="host")
    rule = resolve(
        db,
        domain=domain,
        subdomain=subdomain,
        path=path,
        query_keys=_request_keys(request, _RESOLVE_RESERVED),
    )
    if rule is None:
        raise NoMatchingRuleError(domain)

    response.headers["X-Downstream-URL"] = rule.target
    response.headers["X-Rule-ID"] = rule.id
    detail = rule_to_response(rule)
    return ResolveResponse(target=rule.target, rule_id=rule.id, expires_at=detail.expires_at)
