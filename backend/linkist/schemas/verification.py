from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime, timezone


class PendingUserData(BaseModel):
    """Registration fields captured when the code was issued."""
    model_config = ConfigDict(populate_by_name=True)

    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    plan: Optional[str] = None


class PendingVerification(BaseModel):
    identifier: str
    code: str
    expires_at: datetime
    verified: bool = False
    pending_user_data: Optional[PendingUserData] = None

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at
