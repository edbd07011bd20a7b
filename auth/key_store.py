"""
Data access layer for API keys.

The store isolates SQL from the issuance and validation logic. Every
write runs in its own transaction; a failed write leaves nothing behind.

Store methods:
- ensure_schema: idempotent table and index creation
- insert, find_by_hash, list_all
- set_active, delete, touch_last_used
"""

import json
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional

from sqlalchemy import delete, desc, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.schema import CreateIndex, CreateTable
from loguru import logger

from auth.errors import DuplicateHash, PersistenceError
from auth.models import APIKey
from auth.schemas import APIKeyRecord, APIKeySummary
from storage.relational.database import DatabaseManager


def serialize_permissions(permissions: Iterable[str]) -> str:
    return json.dumps(sorted(set(permissions)))


def parse_permissions(raw: Optional[str]) -> FrozenSet[str]:
    try:
        values = json.loads(raw or "[]")
    except (json.JSONDecodeError, TypeError):
        logger.error("Stored API key permissions are not valid JSON; treating as empty")
        return frozenset()
    if not isinstance(values, list):
        logger.error("Stored API key permissions are not a JSON array; treating as empty")
        return frozenset()
    return frozenset(str(v) for v in values)


class APIKeyStore:
    """
    Repository for API key rows.

    Uniqueness of key_hash is enforced by the database, not by this class.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    # ==================== SCHEMA ====================

    def ensure_schema(self) -> None:
        """
        Create the api_keys table and its hash index if absent.

        Uses IF NOT EXISTS DDL so repeated or concurrent startups never
        fail on already-existing structures.
        """
        table = APIKey.__table__
        try:
            with self.db.engine.begin() as conn:
                conn.execute(CreateTable(table, if_not_exists=True))
                for index in table.indexes:
                    conn.execute(CreateIndex(index, if_not_exists=True))
        except SQLAlchemyError as e:
            logger.error(f"Failed to create api_keys schema: {e}")
            raise PersistenceError("Could not create API key schema") from e
        logger.debug("api_keys schema ready")

    # ==================== WRITES ====================

    def insert(
        self,
        key_hash: str,
        name: str,
        created_at: datetime,
        permissions: Iterable[str],
    ) -> APIKeyRecord:
        row = APIKey(
            key_hash=key_hash,
            name=name,
            created_at=created_at,
            is_active=True,
            permissions=serialize_permissions(permissions),
        )
        try:
            with self.db.session_scope() as session:
                session.add(row)
                session.flush()
                record = self._to_record(row)
        except IntegrityError as e:
            logger.error(f"API key insert rejected by unique constraint (name={name!r})")
            raise DuplicateHash("An API key with this hash already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"API key insert failed: {type(e).__name__}: {e}")
            raise PersistenceError("Could not store API key") from e

        logger.info(f"Stored API key {record.id} ({record.name})")
        return record

    def set_active(self, key_id: int, active: bool) -> bool:
        """
        Update the activity flag. Returns whether a row was affected.

        Revocation is one-way: activating a key is rejected.
        """
        if active:
            raise ValueError("Revoked API keys cannot be re-activated")

        stmt = (
            update(APIKey)
            .where(APIKey.id == key_id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        return self._execute_write(stmt, f"deactivate API key {key_id}") > 0

    def delete(self, key_id: int) -> bool:
        stmt = delete(APIKey).where(APIKey.id == key_id).execution_options(synchronize_session=False)
        return self._execute_write(stmt, f"delete API key {key_id}") > 0

    def touch_last_used(self, key_hash: str, timestamp: datetime) -> bool:
        """Advance last_used_at; an older timestamp never overwrites a newer one."""
        stmt = (
            update(APIKey)
            .where(APIKey.key_hash == key_hash)
            .where(or_(APIKey.last_used_at.is_(None), APIKey.last_used_at < timestamp))
            .values(last_used_at=timestamp)
            .execution_options(synchronize_session=False)
        )
        return self._execute_write(stmt, "update API key last_used_at") > 0

    def _execute_write(self, stmt, description: str) -> int:
        try:
            with self.db.session_scope() as session:
                result = session.execute(stmt)
                return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"Failed to {description}: {type(e).__name__}: {e}")
            raise PersistenceError(f"Could not {description}") from e

    # ==================== READS ====================

    def find_by_hash(self, key_hash: str) -> Optional[APIKeyRecord]:
        try:
            with self.db.session_scope() as session:
                row = session.execute(
                    select(APIKey).where(APIKey.key_hash == key_hash)
                ).scalar_one_or_none()
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"API key lookup failed: {type(e).__name__}: {e}")
            raise PersistenceError("Could not look up API key") from e

    def list_all(self) -> List[APIKeySummary]:
        """All keys, newest first. The hash is not part of the result."""
        try:
            with self.db.session_scope() as session:
                rows = session.execute(
                    select(APIKey).order_by(desc(APIKey.created_at), desc(APIKey.id))
                ).scalars().all()
                return [
                    APIKeySummary(
                        id=row.id,
                        name=row.name,
                        created_at=row.created_at,
                        last_used_at=row.last_used_at,
                        is_active=bool(row.is_active),
                        permissions=parse_permissions(row.permissions),
                    )
                    for row in rows
                ]
        except SQLAlchemyError as e:
            logger.error(f"API key listing failed: {type(e).__name__}: {e}")
            raise PersistenceError("Could not list API keys") from e

    @staticmethod
    def _to_record(row: APIKey) -> APIKeyRecord:
        return APIKeyRecord(
            id=row.id,
            key_hash=row.key_hash,
            name=row.name,
            created_at=row.created_at,
            last_used_at=row.last_used_at,
            is_active=bool(row.is_active),
            permissions=parse_permissions(row.permissions),
        )
