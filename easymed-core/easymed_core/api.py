"""
HTTP Surface
============
FastAPI router and application factory for challenge and token endpoints.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .config import EasyMedSettings
from .errors import EasyMedAuthError
from .health import create_health_router
from .logging_config import RequestLoggingMiddleware
from .metrics import CONTENT_TYPE_LATEST, get_metrics_text
from .otp import ChallengePurpose
from .service import VerificationService, create_verification_service

logger = structlog.get_logger(__name__)


class OTPRequest(BaseModel):
    identifier: str
    purpose: ChallengePurpose = ChallengePurpose.LOGIN
    language: str = "english"


class OTPVerifyRequest(BaseModel):
    identifier: str
    code: str = ""
    bypass_token: Optional[str] = None


class RefreshRequest(BaseModel):
    refresh_token: str


class LogoutRequest(BaseModel):
    refresh_token: str
    all_devices: bool = False


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class LogoutResponse(BaseModel):
    revoked: int = Field(..., description="Number of refresh tokens revoked")


def get_client_ip(request: Request) -> str:
    """Client address, honouring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip", "")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


def error_response(err: EasyMedAuthError) -> JSONResponse:
    headers = {"Retry-After": str(err.retry_after)} if err.retry_after is not None else None
    return JSONResponse(status_code=err.http_status, content=err.to_dict(), headers=headers)


def create_auth_router(service: VerificationService) -> APIRouter:
    """
    Create the authentication router.

    Returns:
        FastAPI router with /auth/otp/request, /auth/otp/verify,
        /auth/token/refresh, /auth/logout and /metrics
    """
    router = APIRouter()

    @router.post("/auth/otp/request", tags=["Auth"])
    async def request_otp(body: OTPRequest, request: Request):
        try:
            response = await service.request_challenge(
                body.identifier,
                purpose=body.purpose,
                client_address=get_client_ip(request),
                language=body.language,
            )
        except EasyMedAuthError as e:
            return error_response(e)
        return response.to_dict()

    @router.post("/auth/otp/verify", tags=["Auth"])
    async def verify_otp(body: OTPVerifyRequest, request: Request):
        try:
            response = await service.submit_challenge(
                body.identifier,
                body.code,
                client_address=get_client_ip(request),
                bypass_token=body.bypass_token,
            )
        except EasyMedAuthError as e:
            return error_response(e)
        return response.to_dict()

    @router.post("/auth/token/refresh", tags=["Auth"], response_model=AccessTokenResponse)
    async def refresh_token(body: RefreshRequest):
        try:
            access_token = await service.refresh_access_token(body.refresh_token)
        except EasyMedAuthError as e:
            return error_response(e)
        return AccessTokenResponse(
            access_token=access_token,
            expires_in=service.settings.tokens.access_ttl_seconds,
        )

    @router.post("/auth/logout", tags=["Auth"], response_model=LogoutResponse)
    async def logout(body: LogoutRequest):
        revoked = await service.logout(body.refresh_token, all_devices=body.all_devices)
        return LogoutResponse(revoked=revoked)

    @router.get("/metrics", tags=["Metrics"])
    async def metrics():
        return Response(content=get_metrics_text(), media_type=CONTENT_TYPE_LATEST)

    return router


def create_app(
    service: Optional[VerificationService] = None,
    settings: Optional[EasyMedSettings] = None,
) -> FastAPI:
    """Application factory used by ASGI servers and tests."""
    service = service or create_verification_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.startup()
        yield
        await service.shutdown()

    app = FastAPI(title="EasyMed Auth", version=__version__, lifespan=lifespan)
    app.state.verification_service = service
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(create_auth_router(service))
    app.include_router(
        create_health_router(
            service.settings.service_name,
            version=__version__,
            orchestrator=service.orchestrator,
            quota=service.quota,
        )
    )
    return app
