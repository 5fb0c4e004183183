"""
Pending verification code storage.

One keyspace for email identifiers and one for phone identifiers. Expiry is
not enforced here: callers compare ``expires_at`` themselves so that an
expired code and a missing code produce different errors.
"""
import os
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple, Type

from dotenv import load_dotenv
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linkist.models import EmailOTP, MobileOTP
from linkist.models.pending_verification import PendingCodeMixin
from linkist.schemas.verification import PendingUserData, PendingVerification

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

CODE_STORE_BACKEND = os.getenv("CODE_STORE_BACKEND", "database").lower()
CODE_STORE_MEMORY_GRACE_SECONDS = int(os.getenv("CODE_STORE_MEMORY_GRACE_SECONDS", "3600"))


class CodeStore(ABC):
    """Keyed store of pending codes for one identifier keyspace."""

    @abstractmethod
    async def set(self, identifier: str, record: PendingVerification) -> None:
        """Insert or replace the record for ``identifier``."""

    @abstractmethod
    async def get(self, identifier: str) -> Optional[PendingVerification]:
        """Return the record for ``identifier`` or ``None``."""

    @abstractmethod
    async def delete(self, identifier: str) -> None:
        """Remove the record for ``identifier``; absent keys are ignored."""


class DatabaseCodeStore(CodeStore):
    def __init__(self, db: AsyncSession, model: Type[PendingCodeMixin]):
        self.db = db
        self.model = model

    def _to_record(self, row) -> PendingVerification:
        return PendingVerification(
            identifier=row.identifier,
            code=row.code,
            expires_at=row.expires_at,
            verified=bool(row.verified),
            pending_user_data=PendingUserData.model_validate(row.user_data) if row.user_data else None,
        )

    async def _fetch_row(self, identifier: str):
        result = await self.db.execute(select(self.model).where(self.model.identifier == identifier))
        return result.scalar_one_or_none()

    def _apply(self, row, record: PendingVerification) -> None:
        row.code = record.code
        row.expires_at = record.expires_at
        row.verified = record.verified
        row.user_data = (
            record.pending_user_data.model_dump(exclude_none=True) if record.pending_user_data else None
        )

    async def set(self, identifier: str, record: PendingVerification) -> None:
        row = await self._fetch_row(identifier)
        if row is None:
            row = self.model(identifier=identifier)
            self._apply(row, record)
            self.db.add(row)
            try:
                await self.db.commit()
                return
            except IntegrityError:
                # Another request inserted the same identifier first
                await self.db.rollback()
                row = await self._fetch_row(identifier)
                if row is None:
                    raise
        self._apply(row, record)
        await self.db.commit()

    async def get(self, identifier: str) -> Optional[PendingVerification]:
        row = await self._fetch_row(identifier)
        return self._to_record(row) if row is not None else None

    async def delete(self, identifier: str) -> None:
        await self.db.execute(delete(self.model).where(self.model.identifier == identifier))
        await self.db.commit()


# keyspace -> identifier -> (record, purge deadline)
_memory_keyspaces: Dict[str, Dict[str, Tuple[PendingVerification, datetime]]] = {}


class MemoryCodeStore(CodeStore):
    """Process-local store used when no database is configured.

    Entries outlive ``expires_at`` by a grace period so an expired code is
    still reported as expired rather than missing.
    """

    def __init__(self, keyspace: str, grace_seconds: int = CODE_STORE_MEMORY_GRACE_SECONDS):
        self.entries = _memory_keyspaces.setdefault(keyspace, {})
        self.grace = timedelta(seconds=grace_seconds)

    def _purge(self) -> None:
        now = datetime.now(timezone.utc)
        for key in [k for k, (_, deadline) in self.entries.items() if deadline <= now]:
            del self.entries[key]

    async def set(self, identifier: str, record: PendingVerification) -> None:
        self._purge()
        self.entries[identifier] = (record.model_copy(deep=True), record.expires_at + self.grace)

    async def get(self, identifier: str) -> Optional[PendingVerification]:
        self._purge()
        entry = self.entries.get(identifier)
        return entry[0].model_copy(deep=True) if entry else None

    async def delete(self, identifier: str) -> None:
        self.entries.pop(identifier, None)


def clear_memory_stores() -> None:
    for entries in _memory_keyspaces.values():
        entries.clear()


def get_code_stores(db: Optional[AsyncSession], backend: Optional[str] = None) -> Tuple[CodeStore, CodeStore]:
    """Return the (email, phone) stores for the configured backend."""
    backend = (backend or CODE_STORE_BACKEND).lower()
    if backend == "memory" or db is None:
        if backend != "memory":
            logger.warning("[CodeStore] No database session available; using in-memory code store")
        return MemoryCodeStore("email"), MemoryCodeStore("phone")
    if backend != "database":
        logger.warning(f"[CodeStore] Unknown CODE_STORE_BACKEND '{backend}', using database")
    return DatabaseCodeStore(db, EmailOTP), DatabaseCodeStore(db, MobileOTP)
