import os
import logging
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.exception_handlers import RequestValidationError
from fastapi.exceptions import HTTPException
from dotenv import load_dotenv
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from linkist.database import AsyncSessionLocal, redis_client, create_tables
from linkist.api import auth, verify_otp
from linkist.security import security_config, validate_environment
from linkist.services.errors import VerificationError
from linkist.services.rate_limit import limiter, rate_limit_exceeded_handler
from linkist.services.verification_provider import provider_configured

# Load environment variables and validate
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../.env'))
validate_environment()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Linkist Backend", version="0.1.0")

# JSON error responses
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail if exc.detail else str(exc)})

@app.exception_handler(VerificationError)
async def verification_error_handler(request: Request, exc: VerificationError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"error": "Invalid request", "detail": exc.errors()})

# Security and rate limiting
security_config.apply_security_middleware(app)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Basic routes
@app.get("/")
def root():
    return {"message": "Linkist API is running.", "status": "healthy"}

@app.head("/")
def root_head():
    return Response(status_code=200)

@app.get("/health")
async def health_check():
    redis_status = "not configured"
    if redis_client is not None:
        try:
            await redis_client.ping()
            redis_status = "connected"
        except Exception as e:
            logger.warning(f"[Health] Redis ping failed: {e}")
            redis_status = "error"
    return {
        "status": "ok",
        "postgres": "connected" if AsyncSessionLocal else "not configured",
        "redis": redis_status,
        "verification_provider": "configured" if provider_configured() else "not configured",
    }

# Routers
app.include_router(auth.router, prefix="/api")
app.include_router(verify_otp.router, prefix="/api")

@app.on_event("startup")
async def on_startup():
    try:
        await create_tables()
    except Exception as e:
        logger.error(f"[Startup] Table creation failed: {e}")
