import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from linkist.database import get_db
from linkist.middlewares.session_auth import set_session_cookie
from linkist.schemas.auth import VerifyOTPRequest, VerifyOTPResponse
from linkist.services.audit_log_service import log_otp_event
from linkist.services.code_store import get_code_stores
from linkist.services.errors import VerificationError
from linkist.services.identifiers import classify
from linkist.services.otp_verification import OTPVerifier
from linkist.services.rate_limit import limiter
from linkist.services.session_store import SessionStore
from linkist.services.user_directory import UserDirectory
from linkist.services.verification_provider import get_verification_provider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["verify-otp"])


def get_otp_verifier(db: AsyncSession = Depends(get_db)) -> OTPVerifier:
    if db is None:
        raise HTTPException(status_code=503, detail="Database connection not available")
    email_store, phone_store = get_code_stores(db)
    return OTPVerifier(
        email_store=email_store,
        phone_store=phone_store,
        directory=UserDirectory(db),
        sessions=SessionStore(db),
        provider=get_verification_provider(),
    )


@router.post("/verify-otp", response_model=VerifyOTPResponse)
@limiter.limit("10/minute; 100/day")
async def verify_otp(
    request: Request,
    data: VerifyOTPRequest,
    response: Response,
    verifier: OTPVerifier = Depends(get_otp_verifier),
    db: AsyncSession = Depends(get_db),
):
    identifier = (data.mobile or data.email or "").strip()
    channel = "mobile" if identifier and classify(identifier) == "phone" else "email"
    try:
        result = await verifier.verify(email=data.email, mobile=data.mobile, otp=data.otp)
    except VerificationError as e:
        logger.info(f"[verify-otp] {type(e).__name__} for {identifier or '<missing>'}")
        await log_otp_event(db, None, channel, "verify_failure", f"identifier={identifier}. reason={type(e).__name__}")
        raise
    except Exception:
        logger.exception(f"[verify-otp] Error verifying OTP for {identifier}")
        return JSONResponse(status_code=500, content={"error": "Failed to verify code"})

    await log_otp_event(db, result.user.id, result.channel, "verify_success")
    set_session_cookie(response, result.session_token)
    message = "Email verified successfully" if result.channel == "email" else "Mobile number verified successfully"
    return VerifyOTPResponse(success=True, message=message, verified=True, user=result.user.public_fields())
