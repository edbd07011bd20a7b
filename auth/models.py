"""
SQLAlchemy models for API key authentication.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()

DEFAULT_PERMISSIONS = frozenset({"read", "write"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class APIKey(Base):
    """Issued API keys. Only the SHA-256 hash of a key is stored."""

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key_hash = Column(String(64), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_used_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    permissions = Column(Text, nullable=False, default=json.dumps(sorted(DEFAULT_PERMISSIONS)))  # JSON array

    __table_args__ = (
        Index("idx_api_keys_hash", "key_hash"),
    )
