"""
OTP verification workflow.

Proves ownership of an email address or phone number with a pending code,
resolves (or creates) the matching account and issues a session for it.

Phone codes are checked against the external provider first, trying every
candidate format of the submitted number; when no candidate is approved the
local code store is consulted with the same candidates. Email codes only
ever use the local store.
"""
import hmac
import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from linkist.schemas.user import CreateUserInput, UserAccount
from linkist.schemas.verification import PendingUserData, PendingVerification
from linkist.services.code_store import CodeStore
from linkist.services.errors import CodeExpired, CodeMismatch, MissingInput, NoCodeFound, UserNotFound
from linkist.services.identifiers import classify, normalize_email, phone_candidates
from linkist.services.session_store import SessionStore
from linkist.services.user_directory import UserDirectory
from linkist.services.verification_provider import ProviderResult, VerificationProvider

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "temp-mobile-user.com"


@dataclass
class VerificationResult:
    session_token: str
    user: UserAccount
    channel: str


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def placeholder_email() -> str:
    return f"{uuid.uuid4().hex}@{PLACEHOLDER_EMAIL_DOMAIN}"


class OTPVerifier:
    def __init__(
        self,
        email_store: CodeStore,
        phone_store: CodeStore,
        directory: UserDirectory,
        sessions: SessionStore,
        provider: Optional[VerificationProvider] = None,
        country_code: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.email_store = email_store
        self.phone_store = phone_store
        self.directory = directory
        self.sessions = sessions
        self.provider = provider
        self.country_code = country_code
        self.clock = clock

    async def verify(self, email: Optional[str] = None, mobile: Optional[str] = None, otp: Optional[str] = None) -> VerificationResult:
        identifier = (mobile or "").strip() or (email or "").strip()
        code = (otp or "").strip()
        if not identifier or not code:
            raise MissingInput()

        if classify(identifier) == "phone":
            logger.info(f"[verify-otp] Verifying phone OTP for {identifier}")
            user = await self._verify_phone(identifier, code)
            channel = "mobile"
        else:
            logger.info(f"[verify-otp] Verifying email OTP for {identifier}")
            user = await self._verify_email(normalize_email(identifier), code)
            channel = "email"

        updated = await self.directory.update_verification_status(user.email, channel, True)
        if updated is not None:
            user = updated
        token = await self.sessions.create(user.id, user.email, user.role)
        logger.info(f"[verify-otp] Session issued for user {user.id} via {channel}")
        return VerificationResult(session_token=token, user=user, channel=channel)

    async def _locate(self, store: CodeStore, keys: List[str]) -> Tuple[Optional[str], Optional[PendingVerification]]:
        for key in keys:
            record = await store.get(key)
            if record is not None:
                return key, record
        return None, None

    async def _consume(self, store: CodeStore, key: str, record: PendingVerification, code: str) -> None:
        if record.is_expired(self.clock()):
            await store.delete(key)
            raise CodeExpired()
        if not hmac.compare_digest(record.code.encode(), code.encode()):
            # Record stays so the user can retry before it expires
            raise CodeMismatch()
        await store.set(key, record.model_copy(update={"verified": True}))
        await store.delete(key)

    async def _provider_approved(self, candidates: List[str], code: str) -> Optional[str]:
        if self.provider is None:
            return None
        for candidate in candidates:
            outcome = await self.provider.check(candidate, code)
            if outcome is ProviderResult.approved:
                return candidate
        logger.warning(f"[verify-otp] Provider approved none of {candidates}; falling back to stored codes")
        return None

    async def _verify_phone(self, identifier: str, code: str) -> UserAccount:
        candidates = phone_candidates(identifier, self.country_code)
        pending: Optional[PendingUserData] = None

        verified_phone = await self._provider_approved(candidates, code)
        if verified_phone is not None:
            # Provider is authoritative; the stored record only carries registration data
            key, record = await self._locate(self.phone_store, candidates)
            if record is not None:
                pending = record.pending_user_data
                await self.phone_store.delete(key)
        else:
            key, record = await self._locate(self.phone_store, candidates)
            if record is None:
                raise NoCodeFound()
            await self._consume(self.phone_store, key, record, code)
            verified_phone = key
            pending = record.pending_user_data
        logger.info(f"[verify-otp] Phone OTP verified for {verified_phone}")

        for candidate in candidates:
            user = await self.directory.get_by_phone(candidate)
            if user is not None:
                return user

        if pending is None:
            logger.error(f"[verify-otp] No user for any of {candidates} and no registration data")
            raise UserNotFound()
        return await self.directory.upsert_by_email(CreateUserInput(
            email=pending.email or placeholder_email(),
            first_name=pending.first_name,
            last_name=pending.last_name,
            phone_number=verified_phone,
            email_verified=False,
            mobile_verified=True,
        ))

    async def _verify_email(self, email: str, code: str) -> UserAccount:
        record = await self.email_store.get(email)
        if record is None:
            raise NoCodeFound("No verification code found for this email. Please request a new code.")
        await self._consume(self.email_store, email, record, code)
        logger.info(f"[verify-otp] Email OTP verified for {email}")

        user = await self.directory.get_by_email(email)
        if user is not None:
            return user

        pending = record.pending_user_data
        if pending is None:
            logger.error(f"[verify-otp] No user for {email} and no registration data")
            raise UserNotFound()
        return await self.directory.upsert_by_email(CreateUserInput(
            email=email,
            first_name=pending.first_name,
            last_name=pending.last_name,
            phone_number=pending.phone,
            email_verified=True,
            mobile_verified=False,
        ))
