from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from linkist.models.user import Base


class PendingCodeMixin:
    """Columns shared by the email and mobile keyspaces of the code store."""
    id = Column(Integer, primary_key=True, index=True)
    identifier = Column(String, unique=True, index=True, nullable=False)
    code = Column(String, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    user_data = Column(JSON, nullable=True)


class EmailOTP(PendingCodeMixin, Base):
    __tablename__ = "email_otps"


class MobileOTP(PendingCodeMixin, Base):
    __tablename__ = "mobile_otps"
