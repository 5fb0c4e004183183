import os
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, cast

from dotenv import load_dotenv
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from linkist.database import redis_client
from linkist.models import Session
from linkist.schemas.user import SessionRecord

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

SESSION_TTL_DAYS = int(os.getenv("SESSION_TTL_DAYS", "30"))
SESSION_TTL_SECONDS = SESSION_TTL_DAYS * 24 * 60 * 60


def _redis_key(token: str) -> str:
    return f"session:{token}"


class SessionStore:
    """Opaque session tokens persisted in SQL, mirrored into Redis when available."""

    def __init__(self, db: AsyncSession, ttl_seconds: int = SESSION_TTL_SECONDS):
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds)

    async def create(self, user_id: str, email: str, role: str) -> str:
        token = secrets.token_urlsafe(32)
        now = datetime.now(timezone.utc)
        row = Session(
            session_id=token,
            user_id=user_id,
            email=email,
            role=role,
            created_at=now,
            expires_at=now + self.ttl,
        )
        self.db.add(row)
        await self.db.commit()
        if redis_client is not None:
            try:
                key = _redis_key(token)
                await cast(Any, redis_client).hset(key, mapping={
                    "user_id": user_id,
                    "email": email,
                    "role": role,
                    "created_at": now.isoformat(),
                    "expires_at": (now + self.ttl).isoformat(),
                })
                await cast(Any, redis_client).expire(key, int(self.ttl.total_seconds()))
            except Exception as e:
                # SQL row is authoritative
                logger.warning(f"[SessionStore] Redis mirror failed: {e}")
        logger.info(f"[SessionStore] Session created for user {user_id}")
        return token

    async def _from_redis(self, token: str) -> Optional[SessionRecord]:
        if redis_client is None:
            return None
        try:
            data = await cast(Any, redis_client).hgetall(_redis_key(token))
        except Exception as e:
            logger.warning(f"[SessionStore] Redis lookup failed: {e}")
            return None
        if not data:
            return None
        fields = {
            (k.decode() if isinstance(k, bytes) else k): (v.decode() if isinstance(v, bytes) else v)
            for k, v in data.items()
        }
        return SessionRecord(session_id=token, **fields)

    async def get(self, token: str) -> Optional[SessionRecord]:
        if not token:
            return None
        record = await self._from_redis(token)
        if record is None:
            result = await self.db.execute(select(Session).where(Session.session_id == token))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            record = SessionRecord.model_validate(row)
        if datetime.now(timezone.utc) >= record.expires_at:
            await self.delete(token)
            return None
        return record

    async def delete(self, token: str) -> None:
        await self.db.execute(delete(Session).where(Session.session_id == token))
        await self.db.commit()
        if redis_client is not None:
            try:
                await cast(Any, redis_client).delete(_redis_key(token))
            except Exception as e:
                logger.warning(f"[SessionStore] Redis delete failed: {e}")
