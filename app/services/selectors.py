"""
Selector and query-policy value types.

A rule constrains three request dimensions:

  subdomain   Selector      ANY ("*") | NONE ("!") | EXACT(value)
  path        Selector      ANY ("/*") | NONE ("/!") | EXACT("/value")
  query keys  QueryPolicy   ALLOW_ALL | ALLOW_NONE | ALLOW_LIST(keys)

Both types parse from and serialise to the column forms stored on
RoutingRule, so the ORM row stays plain strings.
"""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Iterable, Optional

from app.core.errors import InvalidInputError

ANY_MARKER = "*"
NONE_MARKER = "!"

# Characters that would make two different rules encode to the same id.
_RESERVED_IN_HOST = frozenset("/[]")
_RESERVED_IN_PATH = frozenset("[]")
_RESERVED_IN_KEY = frozenset(",[]")


class SelectorKind(str, enum.Enum):
    ANY = "any"
    NONE = "none"
    EXACT = "exact"


class QueryPolicyKind(str, enum.Enum):
    ALLOW_ALL = "allow_all"
    ALLOW_NONE = "allow_none"
    ALLOW_LIST = "allow_list"


def _reject_reserved(value: str, reserved: frozenset, field: str) -> None:
    bad = sorted(set(value) & reserved)
    if bad:
        raise InvalidInputError(
            f"{field} '{value}' contains reserved characters: {''.join(bad)}",
            field=field,
        )


def validate_domain(domain: Optional[str]) -> str:
    if not domain or not domain.strip():
        raise InvalidInputError("Domain is mandatory.", field="domain")
    _reject_reserved(domain, _RESERVED_IN_HOST, "domain")
    return domain


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Selector:
    kind: SelectorKind
    value: Optional[str] = None

    @classmethod
    def any(cls) -> "Selector":
        return cls(SelectorKind.ANY)

    @classmethod
    def none(cls) -> "Selector":
        return cls(SelectorKind.NONE)

    @classmethod
    def exact(cls, value: str) -> "Selector":
        return cls(SelectorKind.EXACT, value)

    @classmethod
    def parse_subdomain(cls, raw: Optional[str]) -> "Selector":
        """None, "" and "!" select no subdomain; "*" selects any."""
        if raw is None or raw == "" or raw == NONE_MARKER:
            return cls.none()
        if raw == ANY_MARKER:
            return cls.any()
        _reject_reserved(raw, _RESERVED_IN_HOST, "subdomain")
        return cls.exact(raw)

    @classmethod
    def parse_path(cls, raw: Optional[str]) -> "Selector":
        """Like parse_subdomain, but "/!" and "/*" are markers too and
        exact paths always carry a single leading slash."""
        if raw is None or raw in ("", NONE_MARKER, "/" + NONE_MARKER):
            return cls.none()
        if raw in (ANY_MARKER, "/" + ANY_MARKER):
            return cls.any()
        _reject_reserved(raw, _RESERVED_IN_PATH, "path")
        return cls.exact("/" + raw.lstrip("/"))

    def to_column(self) -> str:
        if self.kind is SelectorKind.ANY:
            return ANY_MARKER
        if self.kind is SelectorKind.NONE:
            return NONE_MARKER
        return self.value


# ---------------------------------------------------------------------------
# QueryPolicy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class QueryPolicy:
    kind: QueryPolicyKind
    keys: tuple[str, ...] = ()

    @classmethod
    def allow_all(cls) -> "QueryPolicy":
        return cls(QueryPolicyKind.ALLOW_ALL)

    @classmethod
    def allow_none(cls) -> "QueryPolicy":
        return cls(QueryPolicyKind.ALLOW_NONE)

    @classmethod
    def allow_list(cls, keys: Iterable[str]) -> "QueryPolicy":
        """Keys are de-duplicated and sorted; an empty list means ALLOW_NONE."""
        normalized = sorted(set(keys))
        for key in normalized:
            if not key:
                raise InvalidInputError("Query parameter keys must be non-empty.", field="query_params")
            _reject_reserved(key, _RESERVED_IN_KEY, "query_params")
        if not normalized:
            return cls.allow_none()
        return cls(QueryPolicyKind.ALLOW_LIST, tuple(normalized))

    @classmethod
    def from_spec(cls, spec: Optional[list[str]]) -> "QueryPolicy":
        """API form: null → ALLOW_ALL, [] → ALLOW_NONE, [k, ...] → ALLOW_LIST."""
        if spec is None:
            return cls.allow_all()
        return cls.allow_list(spec)

    @classmethod
    def from_column(cls, raw: Optional[str]) -> "QueryPolicy":
        if raw is None:
            return cls.allow_all()
        return cls.allow_list(json.loads(raw))

    def to_spec(self) -> Optional[list[str]]:
        if self.kind is QueryPolicyKind.ALLOW_ALL:
            return None
        return list(self.keys)

    def to_column(self) -> Optional[str]:
        spec = self.to_spec()
        return None if spec is None else json.dumps(spec)

    def admits(self, query_keys: Iterable[str]) -> bool:
        """True when every request key is allowed by this policy."""
        if self.kind is QueryPolicyKind.ALLOW_ALL:
            return True
        return set(query_keys) <= set(self.keys)
