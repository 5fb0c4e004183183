"""
Tests for the Twilio Verify adapter and plain SMS delivery.
"""
import pytest
import requests
from unittest.mock import MagicMock, patch
from twilio.base.exceptions import TwilioRestException

from linkist.services import verification_provider
from linkist.services.sms_service import send_otp_sms
from linkist.services.verification_provider import (
    ProviderResult, TwilioVerifyProvider, VerificationProvider, get_verification_provider,
)


def _provider(status=None, error=None):
    client = MagicMock()
    service = client.verify.v2.services.return_value
    if error is not None:
        service.verification_checks.create.side_effect = error
        service.verifications.create.side_effect = error
    else:
        service.verification_checks.create.return_value = MagicMock(status=status)
        service.verifications.create.return_value = MagicMock(status=status)
    return TwilioVerifyProvider(client, "VA123"), client


class TestTwilioVerifyProvider:

    def test_interface_is_abstract(self):
        with pytest.raises(TypeError):
            VerificationProvider()

    @pytest.mark.asyncio
    async def test_check_approved(self):
        provider, client = _provider(status="approved")

        assert await provider.check("+15551234567", "123456") is ProviderResult.approved
        client.verify.v2.services.assert_called_with("VA123")
        client.verify.v2.services.return_value.verification_checks.create.assert_called_once_with(
            to="+15551234567", code="123456",
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["pending", "canceled", "max_attempts_reached"])
    async def test_check_not_approved(self, status):
        provider, _ = _provider(status=status)
        assert await provider.check("+15551234567", "123456") is ProviderResult.denied

    @pytest.mark.asyncio
    async def test_check_rest_error(self):
        provider, _ = _provider(error=TwilioRestException(404, "https://verify.twilio.com", msg="not found"))
        assert await provider.check("+15551234567", "123456") is ProviderResult.error

    @pytest.mark.asyncio
    async def test_check_network_error(self):
        provider, _ = _provider(error=requests.ConnectionError("timeout"))
        assert await provider.check("+15551234567", "123456") is ProviderResult.error

    @pytest.mark.asyncio
    async def test_start(self):
        provider, client = _provider(status="pending")

        assert await provider.start("+15551234567") is True
        client.verify.v2.services.return_value.verifications.create.assert_called_once_with(
            to="+15551234567", channel="sms",
        )

    @pytest.mark.asyncio
    async def test_start_failure(self):
        provider, _ = _provider(error=requests.ConnectionError("timeout"))
        assert await provider.start("+15551234567") is False


class TestProviderFactory:

    def test_unconfigured_returns_none(self, monkeypatch):
        monkeypatch.setattr(verification_provider, "TWILIO_VERIFY_SERVICE_SID", None)
        assert get_verification_provider() is None

    def test_client_is_built_once(self, monkeypatch):
        monkeypatch.setattr(verification_provider, "TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setattr(verification_provider, "TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setattr(verification_provider, "TWILIO_VERIFY_SERVICE_SID", "VA123")
        monkeypatch.setattr(verification_provider, "_provider", None)

        with patch.object(verification_provider, "Client") as mock_client:
            first = get_verification_provider()
            second = get_verification_provider()

        assert first is second
        assert first.service_sid == "VA123"
        mock_client.assert_called_once()


class TestSMSService:

    def test_missing_configuration(self, monkeypatch):
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_PHONE_NUMBER", None)
        assert send_otp_sms("+15551234567", "482913") is False

    def test_sends_with_plus_prefix(self, monkeypatch):
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_PHONE_NUMBER", "+15550000000")

        with patch("linkist.services.sms_service.Client") as mock_client:
            assert send_otp_sms("9876543210", "482913") is True

        kwargs = mock_client.return_value.messages.create.call_args.kwargs
        assert kwargs["to"] == "+9876543210"
        assert kwargs["from_"] == "+15550000000"
        assert "482913" in kwargs["body"]

    def test_twilio_error(self, monkeypatch):
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setattr("linkist.services.sms_service.TWILIO_PHONE_NUMBER", "+15550000000")

        with patch("linkist.services.sms_service.Client") as mock_client:
            mock_client.return_value.messages.create.side_effect = TwilioRestException(400, "uri", msg="bad number")
            assert send_otp_sms("+15551234567", "482913") is False
