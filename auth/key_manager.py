"""
API key manager: issuance, validation and administration of API keys.
"""

import hashlib
import secrets
from typing import Iterable, List, Optional

from loguru import logger

from auth.errors import PersistenceError
from auth.key_store import APIKeyStore
from auth.models import DEFAULT_PERMISSIONS, utcnow
from auth.schemas import APIKeySummary, IssuedKey, ValidationResult

# Marks tokens minted here so they can be spotted in logs and scanners.
# Not a security boundary.
KEY_PREFIX = "bh_"
KEY_BYTES = 32


def hash_api_key(api_key: str) -> str:
    """SHA-256 hex digest of the full token"""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    return f"{KEY_PREFIX}{secrets.token_hex(KEY_BYTES)}"


class APIKeyManager:
    """API key manager"""

    def __init__(self, store: APIKeyStore):
        self.store = store

    # ==================== ISSUANCE ====================

    def issue(self, name: str, permissions: Optional[Iterable[str]] = None) -> IssuedKey:
        """
        Mint a new API key.

        The plaintext key is returned once and is never stored or logged.
        Raises PersistenceError (or DuplicateHash) if the store write fails.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("API key name must not be empty")

        granted = frozenset(p.strip() for p in permissions if p and p.strip()) if permissions else frozenset()
        if not granted:
            granted = DEFAULT_PERMISSIONS

        api_key = generate_api_key()
        record = self.store.insert(
            key_hash=hash_api_key(api_key),
            name=name,
            created_at=utcnow(),
            permissions=granted,
        )

        logger.info(f"[ISSUE] API key {record.id} issued for {name!r} with {sorted(granted)}")
        return IssuedKey(
            api_key=api_key,
            id=record.id,
            name=record.name,
            created_at=record.created_at,
            permissions=record.permissions,
        )

    # ==================== VALIDATION ====================

    def validate(self, api_key: str) -> ValidationResult:
        """
        Decide whether a presented key is usable.

        Unknown and revoked keys produce the same invalid result.
        """
        key_hash = hash_api_key(api_key)
        record = self.store.find_by_hash(key_hash)

        if record is None or not record.is_active:
            logger.debug("[VALIDATE] Rejected unknown or revoked API key")
            return ValidationResult.invalid()

        try:
            self.store.touch_last_used(key_hash, utcnow())
        except PersistenceError as e:
            logger.warning(f"[VALIDATE] Could not update last_used_at for key {record.id}: {e}")

        return ValidationResult(valid=True, name=record.name, permissions=record.permissions)

    # ==================== ADMINISTRATION ====================

    def list_keys(self) -> List[APIKeySummary]:
        return self.store.list_all()

    def revoke(self, key_id: int) -> bool:
        revoked = self.store.set_active(key_id, False)
        if revoked:
            logger.info(f"[REVOKE] API key {key_id} revoked")
        else:
            logger.warning(f"[REVOKE] API key {key_id} not found")
        return revoked

    def delete(self, key_id: int) -> bool:
        deleted = self.store.delete(key_id)
        if deleted:
            logger.info(f"[DELETE] API key {key_id} deleted")
        else:
            logger.warning(f"[DELETE] API key {key_id} not found")
        return deleted
