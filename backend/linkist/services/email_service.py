import os
import logging
import smtplib
from email.mime.text import MIMEText
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

EMAIL_SENDER = os.getenv("EMAIL_SENDER")
EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD")

SMTP_SERVER = os.getenv("SMTP_SERVER", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))


def send_otp_email(to_email: str, code: str, expires_in_minutes: int) -> bool:
    if not EMAIL_SENDER or not EMAIL_PASSWORD:
        logger.warning("[EmailService] Email configuration missing - EMAIL_SENDER or EMAIL_PASSWORD not set")
        return False

    subject = "Your Linkist verification code"
    body = (
        f"Your Linkist verification code is {code}.\n\n"
        f"It expires in {expires_in_minutes} minutes. If you did not request it, you can ignore this email."
    )
    msg = MIMEText(body)
    msg["Subject"] = subject
    msg["From"] = EMAIL_SENDER
    msg["To"] = to_email

    try:
        with smtplib.SMTP(SMTP_SERVER, SMTP_PORT) as server:
            server.starttls()
            server.login(EMAIL_SENDER, EMAIL_PASSWORD)
            server.sendmail(EMAIL_SENDER, [to_email], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[EmailService] Failed to send verification code to {to_email}: {e}")
        return False
