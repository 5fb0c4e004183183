"""
External phone verification provider (Twilio Verify).

The provider is optional. When it is configured the OTP workflow checks
phone codes against it first and falls back to the local code store when
every candidate format is denied or errors out.
"""
import os
import enum
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from dotenv import load_dotenv
from starlette.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_VERIFY_SERVICE_SID = os.getenv("TWILIO_VERIFY_SERVICE_SID")
TWILIO_TIMEOUT_SECONDS = float(os.getenv("TWILIO_TIMEOUT_SECONDS", "10"))


class ProviderResult(enum.Enum):
    approved = "approved"
    denied = "denied"
    error = "error"


class VerificationProvider(ABC):
    """Interface of a phone verification provider."""

    @abstractmethod
    async def check(self, phone: str, code: str) -> ProviderResult:
        raise NotImplementedError

    @abstractmethod
    async def start(self, phone: str) -> bool:
        """Ask the provider to deliver a code to ``phone``."""
        raise NotImplementedError


class TwilioVerifyProvider(VerificationProvider):
    def __init__(self, client: Client, service_sid: str):
        self.client = client
        self.service_sid = service_sid

    def _check_sync(self, phone: str, code: str) -> str:
        verification_check = self.client.verify.v2.services(
            self.service_sid
        ).verification_checks.create(to=phone, code=code)
        return verification_check.status

    def _start_sync(self, phone: str) -> str:
        verification = self.client.verify.v2.services(
            self.service_sid
        ).verifications.create(to=phone, channel="sms")
        return verification.status

    async def check(self, phone: str, code: str) -> ProviderResult:
        try:
            status = await run_in_threadpool(self._check_sync, phone, code)
        except TwilioRestException as e:
            logger.warning(f"[TwilioVerify] Check failed for {phone}: HTTP {e.status} {e.msg}")
            return ProviderResult.error
        except (TwilioException, requests.RequestException) as e:
            logger.warning(f"[TwilioVerify] Check unavailable for {phone}: {e}")
            return ProviderResult.error
        logger.info(f"[TwilioVerify] Check status '{status}' for {phone}")
        return ProviderResult.approved if status == "approved" else ProviderResult.denied

    async def start(self, phone: str) -> bool:
        try:
            status = await run_in_threadpool(self._start_sync, phone)
        except (TwilioException, requests.RequestException) as e:
            logger.error(f"[TwilioVerify] Could not start verification for {phone}: {e}")
            return False
        logger.info(f"[TwilioVerify] Verification started for {phone} (status={status})")
        return status == "pending"


_provider: Optional[VerificationProvider] = None


def provider_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_VERIFY_SERVICE_SID)


def get_verification_provider() -> Optional[VerificationProvider]:
    """Return the shared provider, or ``None`` when credentials are missing."""
    global _provider
    if not provider_configured():
        return None
    if _provider is None:
        client = Client(
            TWILIO_ACCOUNT_SID,
            TWILIO_AUTH_TOKEN,
            http_client=TwilioHttpClient(timeout=TWILIO_TIMEOUT_SECONDS),
        )
        _provider = TwilioVerifyProvider(client, TWILIO_VERIFY_SERVICE_SID)
    return _provider
