"""
Pydantic schemas for API key records, validation results and request identity.

These schemas handle:
1. Records read from the key store (immutable)
2. Listing and issuance responses (what the API and CLI return)
3. The per-request identity produced by the auth middleware
"""

from datetime import datetime
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class APIKeyRecord(BaseModel):
    """A stored API key row. Internal only: carries the key hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    key_hash: str
    name: str
    created_at: datetime
    last_used_at: Optional[datetime] = None
    is_active: bool = True
    permissions: FrozenSet[str] = frozenset()


class APIKeySummary(BaseModel):
    """
    External listing representation of an API key.

    Never carries the key hash or the plaintext key.

    Example:
        {
            "id": 3,
            "name": "Zapier",
            "created_at": "2024-05-01T10:00:00",
            "last_used_at": null,
            "is_active": true,
            "permissions": ["read", "write"]
        }
    """

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    created_at: datetime
    last_used_at: Optional[datetime] = None
    is_active: bool
    permissions: FrozenSet[str] = frozenset()

    @field_serializer("permissions")
    def serialize_permissions(self, permissions: FrozenSet[str]) -> List[str]:
        return sorted(permissions)


class IssuedKey(BaseModel):
    """Result of issuing a key. The only place the plaintext key ever appears."""

    api_key: str
    id: int
    name: str
    created_at: datetime
    permissions: FrozenSet[str]

    @field_serializer("permissions")
    def serialize_permissions(self, permissions: FrozenSet[str]) -> List[str]:
        return sorted(permissions)


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    valid: bool
    name: Optional[str] = None
    permissions: Optional[FrozenSet[str]] = None

    @classmethod
    def invalid(cls) -> "ValidationResult":
        return cls(valid=False)


class AuthContext(BaseModel):
    """Identity resolved for one request by the auth middleware."""

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    permissions: FrozenSet[str] = frozenset()
    bypassed: bool = False

    @classmethod
    def bypass(cls) -> "AuthContext":
        return cls(bypassed=True)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


# ============ Request Schemas ============

class CreateAPIKeyRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Human-readable key label")
    permissions: Optional[List[str]] = Field(
        None,
        description="Permissions granted to the key (defaults to read and write)"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("permissions")
    @classmethod
    def validate_permissions(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        cleaned = [p.strip() for p in v if p and p.strip()]
        if not cleaned:
            raise ValueError("Permissions must contain at least one non-empty name")
        return cleaned
