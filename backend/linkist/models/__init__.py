from linkist.models.user import Base, User, UserRole
from linkist.models.session import Session
from linkist.models.audit_log import AuditLog
from linkist.models.pending_verification import EmailOTP, MobileOTP

__all__ = ["Base", "User", "UserRole", "Session", "AuditLog", "EmailOTP", "MobileOTP"]
