import inspect
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from linkist.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def _maybe_await(result):
    # Works with both AsyncSession and plain Session
    if inspect.isawaitable(result):
        return await result
    return result


async def log_audit_event(db, user_id: Optional[str], action: str, details: str | None = None):
    log = AuditLog(
        user_id=user_id,
        action=action,
        details=details,
        timestamp=datetime.now(timezone.utc)
    )
    db.add(log)
    await _maybe_await(db.commit())
    return log


async def log_otp_event(db, user_id: Optional[str], channel: str, status: str, details: str | None = None):
    """Record an OTP issuance or verification outcome; never fails the caller."""
    if db is None:
        return None
    combined = f"channel={channel}. {details}" if details else f"channel={channel}"
    try:
        return await log_audit_event(db, user_id, f"otp_{status}", combined)
    except SQLAlchemyError as e:
        logger.warning(f"[AuditLog] Could not record otp_{status}: {e}")
        await _maybe_await(db.rollback())
        return None
