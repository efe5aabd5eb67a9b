"""
Rule id encoding.

    id := subdomain "." domain path [query]

    subdomain   "*" any | "!" none | literal
    path        "/*" any | "/!" none | "/literal"
    query       "/[k1,k2]" allow-list, "/[]" allow-none, omitted for allow-all

Examples:
    api.example.com/users/[id,page]
    *.example.com/*
    !.example.com/home/[]

The encoding is a pure function of the selector tuple. Two rules with the
same tuple get the same id and collide on the primary key.
"""
from __future__ import annotations

from app.services.selectors import (
    QueryPolicy,
    QueryPolicyKind,
    Selector,
    SelectorKind,
    validate_domain,
)


def _path_part(path: Selector) -> str:
    if path.kind is SelectorKind.EXACT:
        return path.value
    return "/" + path.to_column()


def _query_part(policy: QueryPolicy) -> str:
    if policy.kind is QueryPolicyKind.ALLOW_ALL:
        return ""
    return "/[" + ",".join(policy.keys) + "]"


def encode(
    domain: str,
    subdomain: Selector,
    path: Selector,
    query_policy: QueryPolicy,
) -> str:
    """Return the canonical rule id. Raises InvalidInputError on empty domain."""
    validate_domain(domain)
    return (
        f"{subdomain.to_column()}.{domain}"
        f"{_path_part(path)}"
        f"{_query_part(query_policy)}"
    )
