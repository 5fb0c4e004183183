import os
from typing import Literal, cast
from fastapi import Depends, HTTPException, status, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linkist.database import get_db
from linkist.schemas.user import SessionRecord
from linkist.services.session_store import SessionStore, SESSION_TTL_SECONDS

SESSION_COOKIE = "session"

ENV = os.environ.get("ENVIRONMENT", "development").lower()

# Typed helper to validate and return an allowed SameSite value
SamesiteType = Literal['lax', 'strict', 'none']

def _cookie_samesite() -> SamesiteType:
    v_lower = (os.environ.get("COOKIE_SAMESITE", "lax") or "").lower()
    return cast(SamesiteType, v_lower if v_lower in ("lax", "strict", "none") else "lax")

def _cookie_secure() -> bool:
    return ENV == "production" or bool(int(os.environ.get("COOKIE_SECURE", "0")))


def set_session_cookie(response: Response, token: str, max_age: int = SESSION_TTL_SECONDS) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=_cookie_secure(),
        samesite=_cookie_samesite(),
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        secure=_cookie_secure(),
        samesite=_cookie_samesite(),
    )


def extract_session_token(request: Request) -> str | None:
    cookie_token = request.cookies.get(SESSION_COOKIE)
    if cookie_token:
        return cookie_token
    # Optional: bearer fallback for non-browser clients
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    return None


# Dependency resolving the caller's session
async def get_current_session(request: Request, db: AsyncSession = Depends(get_db)) -> SessionRecord:
    token = extract_session_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if db is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database connection not available")
    session = await SessionStore(db).get(token)
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or invalid")
    return session
