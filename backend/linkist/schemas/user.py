from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import Optional, Literal
from datetime import datetime, timezone

from linkist.services.identifiers import clean_phone

RoleType = Literal["user", "admin"]


class UserAccount(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    role: RoleType = "user"
    email_verified: bool = False
    mobile_verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def public_fields(self) -> dict:
        """Fields returned to the client after a successful verification."""
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone_number": self.phone_number,
            "email_verified": self.email_verified,
            "role": self.role,
        }


class CreateUserInput(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    role: RoleType = "user"
    email_verified: bool = False
    mobile_verified: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("phone_number")
    @classmethod
    def clean_phone_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return clean_phone(v)


class SessionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_id: str
    user_id: str
    email: str
    role: RoleType = "user"
    created_at: datetime
    expires_at: datetime

    @field_validator("created_at", "expires_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive datetimes
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)
