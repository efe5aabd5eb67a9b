"""
Routing rule request / response schemas.

POST  /api/rules             → RuleCreateRequest → RuleResponse
PATCH /api/rules/{id}        → RuleUpdateRequest → RuleResponse
GET   /api/rules[/active]    → RuleListResponse
POST  /api/rules/prune       → PruneResponse
GET   /api/match, /resolve   → RuleResponse / ResolveResponse
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RuleCreateRequest(BaseModel):
    """Create a routing rule. The id is derived, never supplied."""
    domain: str = Field(
        min_length=1,
        description="Registered domain the rule applies to.",
        examples=["example.com"],
    )
    subdomain: Optional[str] = Field(
        default=None,
        description='Exact subdomain, "*" for any, "!" or null for none.',
        examples=["api"],
    )
    path: Optional[str] = Field(
        default=None,
        description='Exact path, "*" for any, "!" or null for none (root only).',
        examples=["/users"],
    )
    query_params: Optional[list[str]] = Field(
        default=None,
        description="null allows every key, [] allows none, otherwise the allowed keys.",
        examples=[["id", "page"]],
    )
    target: str = Field(
        min_length=1,
        description="Downstream URI requests are forwarded to.",
        examples=["http://users-service:8080"],
    )
    expires_at: datetime = Field(
        description="Expiry as ISO-8601 or epoch seconds. Naive values are UTC.",
        examples=["2030-01-01T00:00:00Z"],
    )


class RuleUpdateRequest(BaseModel):
    """Only the target and the expiry may change after creation."""
    model_config = ConfigDict(extra="ignore")

    target: Optional[str] = Field(default=None, min_length=1)
    expires_at: Optional[datetime] = None


class RuleResponse(BaseModel):
    id: str = Field(description="Canonical rule id, e.g. api.example.com/users/[id,page].")
    domain: str
    subdomain: Optional[str] = Field(description='"*", "!" or the literal subdomain.')
    path: Optional[str] = Field(description='"*", "!" or the literal path.')
    query_params: Optional[list[str]] = Field(
        description="null = all keys allowed, [] = none allowed."
    )
    target: str
    expires_at: str
    created_at: str
    updated_at: str
    active: bool = Field(description="Evaluated at response time.")


class RuleListResponse(BaseModel):
    total: int
    items: list[RuleResponse]


class DeleteResponse(BaseModel):
    id: str
    deleted: bool


class PruneResponse(BaseModel):
    pruned: int


class ResolveResponse(BaseModel):
    """Proxy-facing resolve result (also mirrored in response headers)."""
    target: str
    rule_id: str
    expires_at: str
