"""
RoutingRule — one persisted mapping from a domain-scoped selector tuple
to a downstream target.

Column forms:
  subdomain / path  "*" (any), "!" (none) or the literal value
  query_policy      JSON-encoded list of allowed keys; NULL = all allowed

`id` is derived from (domain, subdomain, path, query_policy) by
app/services/rule_codec.py and is the only uniqueness guard.
Only `target`, `expires_at` and `updated_at` change after insert.
"""
from datetime import datetime
from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utcnow
from app.db.base import Base


class RoutingRule(Base):
    __tablename__ = "routing_rules"

    id: Mapped[str] = mapped_column(String(512), primary_key=True)
    domain: Mapped[str] = mapped_column(String(253), nullable=False, index=True)
    subdomain: Mapped[str | None] = mapped_column(String(253), nullable=True)
    path: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    query_policy: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON list of allowed query keys; NULL allows every key",
    )
    target: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
