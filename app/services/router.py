"""
Best-match resolver: picks the single most specific active rule for a
request's (domain, subdomain, path, query keys).

Each dimension either rejects a candidate outright or contributes a
sub-score; the sub-scores are summed and the highest total wins.

  dimension   selector / policy       request                   score
  ---------   ---------------------   -----------------------   --------
  subdomain   EXACT(v)                subdomain == v            10
              NONE                    no subdomain              10
              ANY                     anything                   1
  path        EXACT(v)                path == v                 10
              NONE                    absent, "", "/" or "!"    10
              ANY                     anything                   1
  query       ALLOW_LIST(keys)        keys ⊇ request keys       10
              ALLOW_NONE              no request keys           10
              ALLOW_ALL               anything                   5

Any other combination excludes the rule. Ties are broken by the most
recently created rule, then by the lexicographically smallest id.
No cross-domain fallback: only rules of the request's domain are candidates.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.core.clock import as_utc, is_active, utcnow
from app.models.rule import RoutingRule
from app.services.selectors import (
    NONE_MARKER,
    QueryPolicy,
    QueryPolicyKind,
    Selector,
    SelectorKind,
)


# ---------------------------------------------------------------------------
# Specificity lattice
# ---------------------------------------------------------------------------

SCORE_EXACT            = 10  # literal subdomain/path match
SCORE_ABSENT           = 10  # NONE selector met by an absent value
SCORE_WILDCARD         = 1   # ANY selector
SCORE_QUERY_RESTRICTED = 10  # ALLOW_LIST / ALLOW_NONE satisfied
SCORE_QUERY_OPEN       = 5   # ALLOW_ALL

# Request paths that count as "no path" for a NONE path selector.
_EMPTY_PATHS = frozenset({"", "/", NONE_MARKER})


@dataclass(frozen=True)
class MatchRequest:
    domain: str
    subdomain: Optional[str] = None
    path: Optional[str] = None
    query_keys: frozenset[str] = field(default_factory=frozenset)


@dataclass
class ScoredRule:
    rule: RoutingRule
    score: int


# ---------------------------------------------------------------------------
# Per-dimension scoring (None = excluded)
# ---------------------------------------------------------------------------

def _score_subdomain(selector: Selector, subdomain: Optional[str]) -> Optional[int]:
    if selector.kind is SelectorKind.ANY:
        return SCORE_WILDCARD
    if selector.kind is SelectorKind.NONE:
        return None if subdomain else SCORE_ABSENT
    return SCORE_EXACT if selector.value == subdomain else None


def _score_path(selector: Selector, path: Optional[str]) -> Optional[int]:
    if selector.kind is SelectorKind.ANY:
        return SCORE_WILDCARD
    if selector.kind is SelectorKind.NONE:
        return SCORE_ABSENT if path is None or path in _EMPTY_PATHS else None
    if path is None:
        return None
    return SCORE_EXACT if selector.value == "/" + path.lstrip("/") else None


def _score_query(policy: QueryPolicy, query_keys: frozenset[str]) -> Optional[int]:
    if not policy.admits(query_keys):
        return None
    if policy.kind is QueryPolicyKind.ALLOW_ALL:
        return SCORE_QUERY_OPEN
    return SCORE_QUERY_RESTRICTED


def score_rule(rule: RoutingRule, request: MatchRequest) -> Optional[int]:
    """Total specificity of `rule` for `request`, or None if any dimension rejects it."""
    total = 0
    for sub_score in (
        _score_subdomain(Selector.parse_subdomain(rule.subdomain), request.subdomain),
        _score_path(Selector.parse_path(rule.path), request.path),
        _score_query(QueryPolicy.from_column(rule.query_policy), request.query_keys),
    ):
        if sub_score is None:
            return None
        total += sub_score
    return total


def _tie_break_key(scored: ScoredRule) -> tuple:
    return (
        -scored.score,
        -as_utc(scored.rule.created_at).timestamp(),
        scored.rule.id,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_from_rules(
    rules: Iterable[RoutingRule],
    request: MatchRequest,
    now: Optional[datetime] = None,
) -> Optional[RoutingRule]:
    """Pure version that accepts pre-loaded rules (useful for testing)."""
    now = now or utcnow()
    scored: list[ScoredRule] = []
    for rule in rules:
        if rule.domain != request.domain or not is_active(rule.expires_at, now):
            continue
        score = score_rule(rule, request)
        if score is not None:
            scored.append(ScoredRule(rule=rule, score=score))

    if not scored:
        return None
    return min(scored, key=_tie_break_key).rule


def resolve(
    db: Session,
    domain: str,
    subdomain: Optional[str] = None,
    path: Optional[str] = None,
    query_keys: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> Optional[RoutingRule]:
    """
    Load the active rules of `domain` and return the best match, or None.
    A None result is a normal outcome, not an error.
    """
    now = as_utc(now or utcnow())
    candidates = (
        db.query(RoutingRule)
        .filter(RoutingRule.domain == domain, RoutingRule.expires_at > now)
        .all()
    )
    request = MatchRequest(
        domain=domain,
        subdomain=subdomain or None,
        path=path,
        query_keys=frozenset(query_keys),
    )
    return resolve_from_rules(candidates, request, now)


def split_host(host: str) -> tuple[str, Optional[str]]:
    """
    "api.v2.example.com:8443" → ("example.com", "api.v2").
    The last two labels form the domain; anything before them is the subdomain.
    """
    hostname = host.strip().rsplit(":", 1)[0] if ":" in host else host.strip()
    labels = [label for label in hostname.split(".") if label]
    if len(labels) <= 2:
        return ".".join(labels), None
    return ".".join(labels[-2:]), ".".join(labels[:-2])
