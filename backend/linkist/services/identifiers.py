import os
import re
from typing import List, Literal
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

DEFAULT_COUNTRY_CODE = os.getenv("DEFAULT_COUNTRY_CODE", "91").lstrip("+")

IdentifierKind = Literal["email", "phone"]

_PHONE_PUNCTUATION = re.compile(r"[\s\-()]")
_LEADING_PLUS = re.compile(r"^\\*\+")


def classify(identifier: str) -> IdentifierKind:
    return "email" if "@" in identifier else "phone"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def clean_phone(phone: str) -> str:
    """Strip spaces, hyphens and parentheses."""
    return _PHONE_PUNCTUATION.sub("", phone)


def phone_candidates(phone: str, country_code: str | None = None) -> List[str]:
    """Ordered representations a phone number may have been stored under.

    Order: as cleaned, ``+`` prefixed, default country code prefixed, and
    without a leading (possibly backslash-escaped) plus sign.
    """
    cc = (country_code if country_code is not None else DEFAULT_COUNTRY_CODE).lstrip("+")
    cleaned = clean_phone(phone)
    formats = [
        cleaned,
        f"+{cleaned}",
        f"+{cc}{cleaned}",
        _LEADING_PLUS.sub("", cleaned),
    ]
    candidates: List[str] = []
    for fmt in formats:
        if fmt and fmt not in candidates:
            candidates.append(fmt)
    return candidates
