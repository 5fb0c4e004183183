import os
import logging

import requests
from dotenv import load_dotenv
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")


def send_otp_sms(to_phone: str, code: str) -> bool:
    """Send a locally generated code as a plain SMS (used when Twilio Verify is not in play)."""
    if not TWILIO_ACCOUNT_SID or not TWILIO_AUTH_TOKEN or not TWILIO_PHONE_NUMBER:
        logger.warning("[SMSService] SMS configuration missing - TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN or TWILIO_PHONE_NUMBER not set")
        return False
    if not to_phone.startswith("+"):
        to_phone = f"+{to_phone}"
    try:
        client = Client(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)
        message = client.messages.create(
            body=f"Your Linkist verification code is {code}",
            from_=TWILIO_PHONE_NUMBER,
            to=to_phone,
        )
        logger.info(f"[SMSService] Code sent to {to_phone} (status={message.status})")
        return True
    except (TwilioException, requests.RequestException) as e:
        logger.error(f"[SMSService] Failed to send code to {to_phone}: {e}")
        return False
