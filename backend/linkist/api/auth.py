import os
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import ValidationError

from linkist.database import get_db
from linkist.middlewares.session_auth import (
    clear_session_cookie, extract_session_token, get_current_session,
    _cookie_samesite, _cookie_secure,
)
from linkist.schemas.auth import (
    CheckUserRequest, CheckUserResponse, RegisterRequest, RegisterResponse,
    SendOTPRequest, SendOTPResponse, MessageResponse,
)
from linkist.schemas.user import CreateUserInput, SessionRecord
from linkist.schemas.verification import PendingUserData
from linkist.services.audit_log_service import log_otp_event
from linkist.services.code_store import get_code_stores
from linkist.services.identifiers import clean_phone, phone_candidates
from linkist.services.otp_issuance import OTPIssuer
from linkist.services.rate_limit import limiter
from linkist.services.session_store import SessionStore
from linkist.services.user_directory import UserDirectory
from linkist.services.verification_provider import get_verification_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Registration hand-off cookie read by the verification page
USER_EMAIL_COOKIE = "userEmail"
USER_EMAIL_COOKIE_MAX_AGE = int(os.getenv("USER_EMAIL_COOKIE_MAX_AGE", str(30 * 60)))


def _require_db(db: Optional[AsyncSession]) -> AsyncSession:
    if db is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database connection not available")
    return db


@router.post("/check-user", response_model=CheckUserResponse)
@limiter.limit("20/minute")
async def check_user(request: Request, data: CheckUserRequest, db: AsyncSession = Depends(get_db)):
    email = (data.email or "").strip()
    mobile = (data.mobile or "").strip()
    if not email and not mobile:
        raise HTTPException(status_code=400, detail="Email or mobile number is required")
    directory = UserDirectory(_require_db(db))

    exists = False
    if email:
        exists = await directory.exists(email=email)
    if not exists and mobile:
        for candidate in phone_candidates(mobile):
            if await directory.exists(phone_number=candidate):
                exists = True
                break
    message = "User found" if exists else "User not found"
    return CheckUserResponse(success=True, exists=exists, message=message)


@router.post("/register", response_model=RegisterResponse, status_code=201)
@limiter.limit("5/minute; 50/day")
async def register(request: Request, data: RegisterRequest, response: Response, db: AsyncSession = Depends(get_db)):
    first_name = (data.first_name or "").strip()
    last_name = (data.last_name or "").strip()
    if not first_name or not last_name or not (data.email or "").strip():
        raise HTTPException(status_code=400, detail="First name, last name and email are required")
    try:
        new_user = CreateUserInput(
            email=data.email,
            first_name=first_name,
            last_name=last_name,
            phone_number=clean_phone(data.phone) if data.phone else None,
            country=data.country,
            country_code=data.country_code,
        )
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid email address")

    directory = UserDirectory(_require_db(db))
    # Check if user exists by email
    if await directory.exists(email=new_user.email):
        raise HTTPException(status_code=409, detail="Email already registered.")
    # Check if user exists by phone
    if new_user.phone_number and await directory.exists(phone_number=new_user.phone_number):
        raise HTTPException(status_code=409, detail="Phone already registered.")

    user = await directory.upsert_by_email(new_user)

    response.set_cookie(
        key=USER_EMAIL_COOKIE,
        value=user.email,
        httponly=True,
        secure=_cookie_secure(),
        samesite=_cookie_samesite(),
        max_age=USER_EMAIL_COOKIE_MAX_AGE,
        path="/",
    )
    logger.info(f"[register] Registered {user.email}")
    return RegisterResponse(success=True, message="Registration successful. Please verify your email.", user=user.public_fields())


@router.post("/send-otp", response_model=SendOTPResponse)
@limiter.limit("3/minute; 20/hour")
async def send_otp(request: Request, data: SendOTPRequest, db: AsyncSession = Depends(get_db)):
    identifier = (data.mobile or data.email or "").strip()
    if not identifier:
        raise HTTPException(status_code=400, detail="Email or mobile number is required")

    user_data = None
    if data.first_name or data.last_name or data.plan:
        user_data = PendingUserData(
            first_name=data.first_name,
            last_name=data.last_name,
            # The counterpart identifier travels with the pending code
            email=data.email if data.mobile else None,
            phone=clean_phone(data.phone) if data.phone else None,
            plan=data.plan,
        )

    email_store, phone_store = get_code_stores(db)
    issuer = OTPIssuer(email_store, phone_store, provider=get_verification_provider())
    issued = await issuer.issue(identifier, user_data)
    await log_otp_event(db, None, issued.channel, "issued", f"identifier={issued.identifier}")

    target = "email" if issued.channel == "email" else "mobile number"
    return SendOTPResponse(success=True, message=f"Verification code sent to your {target}", expires_in=issued.expires_in)


@router.get("/me")
async def me(session: SessionRecord = Depends(get_current_session), db: AsyncSession = Depends(get_db)):
    user = await UserDirectory(_require_db(db)).get_by_id(session.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User account not found. Please register first.")
    fields = user.public_fields()
    fields["mobile_verified"] = user.mobile_verified
    return {"success": True, "user": fields}


@router.post("/logout", response_model=MessageResponse)
async def logout(request: Request, response: Response, db: AsyncSession = Depends(get_db)):
    token = extract_session_token(request)
    if token and db is not None:
        await SessionStore(db).delete(token)
    clear_session_cookie(response)
    return MessageResponse(success=True, message="Logged out successfully")
