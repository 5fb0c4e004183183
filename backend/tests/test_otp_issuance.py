"""
Tests for issuing and delivering verification codes.
"""
import pytest
from datetime import datetime, timedelta, timezone

from conftest import FakeProvider
from linkist.schemas.verification import PendingUserData
from linkist.services.errors import CodeDeliveryFailed, MissingInput
from linkist.services.otp_issuance import OTPIssuer, generate_code


def test_generate_code():
    codes = {generate_code() for _ in range(20)}
    assert all(len(c) == 6 and c.isdigit() for c in codes)
    assert len(codes) > 1


class TestOTPIssuer:

    @pytest.mark.asyncio
    async def test_email_code_is_stored_and_sent(self, email_store, phone_store, mock_email_delivery):
        issuer = OTPIssuer(email_store, phone_store, expiry_minutes=5, environment="test")

        issued = await issuer.issue(" User@Example.com ", PendingUserData(firstName="Ada", plan="pro"))

        assert issued.identifier == "user@example.com"
        assert issued.channel == "email"
        assert issued.expires_in == 300
        assert issued.delivered is True
        record = await email_store.get("user@example.com")
        assert record.pending_user_data.first_name == "Ada"
        assert record.pending_user_data.plan == "pro"
        assert timedelta(minutes=4) < record.expires_at - datetime.now(timezone.utc) <= timedelta(minutes=5)
        to_email, code, minutes = mock_email_delivery.call_args.args
        assert to_email == "user@example.com"
        assert code == record.code
        assert minutes == 5

    @pytest.mark.asyncio
    async def test_reissue_replaces_code(self, email_store, phone_store, mock_email_delivery):
        issuer = OTPIssuer(email_store, phone_store, environment="test")

        await issuer.issue("user@example.com")
        first_code = mock_email_delivery.call_args.args[1]
        await issuer.issue("user@example.com")
        second_code = mock_email_delivery.call_args.args[1]

        assert (await email_store.get("user@example.com")).code == second_code
        assert mock_email_delivery.call_count == 2
        assert first_code.isdigit()

    @pytest.mark.asyncio
    async def test_phone_uses_provider_when_available(self, email_store, phone_store, mock_sms_delivery):
        provider = FakeProvider(start_ok=True)
        issuer = OTPIssuer(email_store, phone_store, provider=provider, environment="test")

        issued = await issuer.issue("+1 (555) 123-4567")

        assert issued.identifier == "+15551234567"
        assert issued.channel == "mobile"
        assert provider.started == ["+15551234567"]
        mock_sms_delivery.assert_not_called()
        assert await phone_store.get("+15551234567") is not None

    @pytest.mark.asyncio
    async def test_phone_falls_back_to_sms(self, email_store, phone_store, mock_sms_delivery):
        provider = FakeProvider(start_ok=False)
        issuer = OTPIssuer(email_store, phone_store, provider=provider, environment="test")

        await issuer.issue("9876543210")

        assert provider.started == ["+9876543210"]
        phone, code = mock_sms_delivery.call_args.args
        assert phone == "9876543210"
        assert code == (await phone_store.get("9876543210")).code

    @pytest.mark.asyncio
    async def test_phone_without_provider_sends_sms(self, email_store, phone_store, mock_sms_delivery):
        issuer = OTPIssuer(email_store, phone_store, provider=None, environment="test")

        issued = await issuer.issue("+15551234567")

        assert issued.delivered is True
        mock_sms_delivery.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_delivery_outside_production(self, email_store, phone_store, mock_email_delivery):
        mock_email_delivery.return_value = False
        issuer = OTPIssuer(email_store, phone_store, environment="development")

        issued = await issuer.issue("user@example.com")

        assert issued.delivered is False
        assert await email_store.get("user@example.com") is not None

    @pytest.mark.asyncio
    async def test_failed_delivery_in_production(self, email_store, phone_store, mock_email_delivery):
        mock_email_delivery.return_value = False
        issuer = OTPIssuer(email_store, phone_store, environment="production")

        with pytest.raises(CodeDeliveryFailed) as exc:
            await issuer.issue("user@example.com")
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_blank_identifier(self, email_store, phone_store):
        with pytest.raises(MissingInput):
            await OTPIssuer(email_store, phone_store).issue("  ")
