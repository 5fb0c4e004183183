"""
Security Configuration Module

CORS, trusted hosts, compression and response security headers for the
Linkist backend, plus a startup check of the environment.
"""

import os
from typing import List
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

logger = logging.getLogger(__name__)

class SecurityConfig:
    """Security configuration class"""

    def __init__(self):
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.allowed_hosts = self._get_allowed_hosts()
        self.cors_origins = self._get_cors_origins()

    def _get_allowed_hosts(self) -> List[str]:
        """Get allowed hosts based on environment"""
        configured = os.getenv("ALLOWED_HOSTS")
        if configured:
            return [h.strip() for h in configured.split(",") if h.strip()]
        if self.environment == "production":
            return ["linkist.ai", "*.linkist.ai"]
        return ["*"]

    def _get_cors_origins(self) -> List[str]:
        """Get CORS origins based on environment"""
        configured = os.getenv("CORS_ORIGINS")
        if configured:
            return [o.strip() for o in configured.split(",") if o.strip()]
        if self.environment == "production":
            return ["https://linkist.ai", "https://www.linkist.ai"]
        return [
            "http://127.0.0.1:3000",
            "http://localhost:3000",
        ]

    def apply_security_middleware(self, app: FastAPI) -> None:
        """Apply all security middleware to the FastAPI app."""

        # Trusted hosts
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=self.allowed_hosts,
        )

        # GZip
        app.add_middleware(GZipMiddleware, minimum_size=1000)

        # Security headers
        app.add_middleware(SecurityHeadersMiddleware)

        # Finally, add CORS outermost so even error responses include CORS headers
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=[
                "Accept",
                "Content-Type",
                "Authorization",
                "X-Requested-With",
                "Origin",
            ],
            max_age=86400,
        )

        logger.info(f"Security middleware applied for environment: {self.environment}")

class SecurityHeadersMiddleware:
    """Middleware to add security headers to all responses"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        async def send_with_headers(message):
            if message.get("type") == "http.response.start":
                headers = list(message.get("headers", []))
                headers.extend([
                    (b"X-Content-Type-Options", b"nosniff"),
                    (b"X-Frame-Options", b"DENY"),
                    (b"Referrer-Policy", b"strict-origin-when-cross-origin"),
                    (b"Cache-Control", b"no-store"),
                ])
                message["headers"] = headers
            await send(message)

        return await self.app(scope, receive, send_with_headers)

def validate_environment() -> None:
    """Validate environment configuration"""
    required_vars = [
        "POSTGRES_URI",
        "REDIS_URI",
    ]

    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        logger.warning(f"Missing environment variables: {missing_vars}")

    twilio_vars = ["TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_VERIFY_SERVICE_SID"]
    if any(os.getenv(v) for v in twilio_vars) and not all(os.getenv(v) for v in twilio_vars):
        logger.warning("Twilio Verify is partially configured; phone codes will use the local store only")

    # Validate environment
    env = os.getenv("ENVIRONMENT", "development")
    if env not in ["development", "test", "staging", "production"]:
        logger.warning(f"Invalid ENVIRONMENT value: {env}")

# Create global security config instance
security_config = SecurityConfig()
