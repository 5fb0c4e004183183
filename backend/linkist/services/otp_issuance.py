import os
import secrets
import string
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from starlette.concurrency import run_in_threadpool

from linkist.schemas.verification import PendingUserData, PendingVerification
from linkist.services.code_store import CodeStore
from linkist.services.email_service import send_otp_email
from linkist.services.errors import CodeDeliveryFailed, MissingInput
from linkist.services.identifiers import classify, clean_phone, normalize_email
from linkist.services.sms_service import send_otp_sms
from linkist.services.verification_provider import VerificationProvider

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", "5"))
OTP_LENGTH = 6


def generate_code(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice(string.digits) for _ in range(length))


@dataclass
class IssuedCode:
    identifier: str
    channel: str
    expires_in: int
    delivered: bool


class OTPIssuer:
    """Creates the pending code for an identifier and delivers it."""

    def __init__(
        self,
        email_store: CodeStore,
        phone_store: CodeStore,
        provider: Optional[VerificationProvider] = None,
        expiry_minutes: int = OTP_EXPIRY_MINUTES,
        environment: Optional[str] = None,
    ):
        self.email_store = email_store
        self.phone_store = phone_store
        self.provider = provider
        self.expiry_minutes = expiry_minutes
        self.environment = (environment or os.getenv("ENVIRONMENT", "development")).lower()

    async def issue(self, identifier: Optional[str], user_data: Optional[PendingUserData] = None) -> IssuedCode:
        identifier = (identifier or "").strip()
        if not identifier:
            raise MissingInput("Email or mobile number is required")

        if classify(identifier) == "email":
            key, store, channel = normalize_email(identifier), self.email_store, "email"
        else:
            key, store, channel = clean_phone(identifier), self.phone_store, "mobile"

        code = generate_code()
        record = PendingVerification(
            identifier=key,
            code=code,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=self.expiry_minutes),
            pending_user_data=user_data,
        )
        await store.set(key, record)
        logger.info(f"[send-otp] Pending {channel} code stored for {key}")

        delivered = await self._deliver(channel, key, code)
        if not delivered:
            if self.environment == "production":
                raise CodeDeliveryFailed()
            logger.warning(f"[send-otp] Delivery failed; verification code for {key} (dev): {code}")
        return IssuedCode(identifier=key, channel=channel, expires_in=self.expiry_minutes * 60, delivered=delivered)

    async def _deliver(self, channel: str, key: str, code: str) -> bool:
        if channel == "email":
            return await run_in_threadpool(send_otp_email, key, code, self.expiry_minutes)
        if self.provider is not None:
            e164 = key if key.startswith("+") else f"+{key}"
            if await self.provider.start(e164):
                return True
            logger.warning(f"[send-otp] Provider could not start verification for {e164}; sending stored code by SMS")
        return await run_in_threadpool(send_otp_sms, key, code)
