# zahnflow/main.py
"""
ZahnFlow API - authentication and session endpoints.

Token transport: HTTP-only, same-site-strict cookie ``token`` or an
``Authorization: Bearer <token>`` header. Both are accepted on read.
"""

from fastapi import FastAPI, HTTPException, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from zahnflow.core.config import settings, validate_required_settings
from zahnflow.core.exceptions import AuthBaseException, SessionExpiredOrInvalidError, SessionNotFoundError, UserNotFoundError
from zahnflow.core.logging_config import setup_logging
from zahnflow.core.rate_limit_config import create_limiter, get_real_ip, get_rate_limit_message
from zahnflow.core.security import AuthServices, get_auth_services, init_auth_services
from zahnflow.middleware.security_middleware import RequestLogger, SecurityHeadersMiddleware
from zahnflow.models.session import SessionInfo, TokenPayload
from zahnflow.services.credential_store import InMemoryCredentialStore, RedisCredentialStore
from zahnflow.services.redis_service import RedisConfig, RedisService
from zahnflow.services.seed import seed_demo_user
from zahnflow.services.session_store import InMemorySessionStore, RedisSessionStore

# Setup logging
logger = setup_logging()

redis_service: Optional[RedisService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan event handler for startup/shutdown"""
    global redis_service

    logger.info("=" * 60)
    logger.info("🦷 ZahnFlow API Starting...")
    logger.info("=" * 60)

    # Validate environment variables (warn but don't fail)
    if not validate_required_settings(settings):
        logger.warning("⚠️ Running with development defaults - do not use in production")

    try:
        redis_service = RedisService(RedisConfig.from_settings(settings))
        await redis_service.initialize()

        if redis_service.is_connected():
            credentials = RedisCredentialStore(redis_service)
            sessions = RedisSessionStore(redis_service)
        else:
            credentials = InMemoryCredentialStore()
            sessions = InMemorySessionStore()

        services = init_auth_services(settings, credentials, sessions)

        if settings.SEED_DEMO_USER:
            if settings.is_production:
                logger.warning("⚠️ SEED_DEMO_USER is enabled in production - demo credentials are public")
            await seed_demo_user(services.credentials, settings)

        logger.info("📋 Configuration:")
        logger.info(f"  - Session Store: {type(sessions).__name__}")
        logger.info(f"  - Session TTL: {settings.SESSION_TTL_HOURS}h")
        logger.info(f"  - Max sessions per user: {settings.MAX_SESSIONS_PER_USER}")
        logger.info(f"  - Login rate limit: {settings.LOGIN_RATE_LIMIT}")
        logger.info("✅ ZahnFlow API Ready!")

    except Exception as e:
        logger.error(f"❌ Failed to initialize auth services: {e}")
        raise  # Re-raise to fail startup

    yield

    logger.info("🛑 ZahnFlow API Shutting down...")
    if redis_service:
        await redis_service.shutdown()


app = FastAPI(
    title="ZahnFlow API",
    description="Praxis-CRM: Anmeldung und Sitzungsverwaltung",
    version="1.0.0",
    lifespan=lifespan,
)

# =============================================================================
# ERROR HANDLING
# =============================================================================

# Validation messages per request field
FIELD_MESSAGES = {
    "email": "Ungültige E-Mail-Adresse",
    "password": "Passwort ist erforderlich",
}


def get_safe_error_message(error: Exception, context: str = "") -> str:
    """Return a safe error message that doesn't expose internal details"""
    logger.error(f"Error in {context}: {type(error).__name__}: {str(error)}")

    if isinstance(error, HTTPException):
        return error.detail

    error_messages = {
        "ConnectionError": "Verbindungsfehler. Bitte versuchen Sie es später erneut.",
        "TimeoutError": "Die Anfrage hat zu lange gedauert. Bitte versuchen Sie es erneut.",
    }

    error_type = type(error).__name__
    return error_messages.get(error_type, "Ein Fehler ist aufgetreten. Bitte versuchen Sie es später erneut.")


@app.exception_handler(AuthBaseException)
async def auth_exception_handler(request: Request, exc: AuthBaseException):
    """Map domain errors to ``{"error": message}`` with their status code"""
    if exc.status_code >= 500:
        message = get_safe_error_message(exc, request.url.path)
    else:
        message = exc.message
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content={"error": message}, headers=headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Store outages and other unexpected failures: 500 without internals"""
    return JSONResponse(status_code=500, content={"error": get_safe_error_message(exc, request.url.path)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc)
        details.append({"field": field, "message": FIELD_MESSAGES.get(field, err.get("msg", ""))})
    return JSONResponse(status_code=400, content={"error": "Validierungsfehler", "details": details})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


# =============================================================================
# RATE LIMITING
# =============================================================================

limiter = create_limiter(settings.REDIS_URL)


def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Custom rate limit response with helpful message"""
    response = JSONResponse(
        content={"error": get_rate_limit_message("login")},
        status_code=429,
    )
    response.headers["Retry-After"] = "60"
    response.headers["X-RateLimit-Limit"] = str(getattr(exc, "limit", "N/A"))
    return response


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)

# CRITICAL: Add limiter to app state (required by slowapi)
app.state.limiter = limiter

# =============================================================================
# MIDDLEWARE
# =============================================================================

request_logger = RequestLogger()
app.middleware("http")(request_logger)
app.middleware("http")(SecurityHeadersMiddleware())

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# =============================================================================
# AUTHENTICATION
# =============================================================================


def extract_token(request: Request) -> Optional[str]:
    """Token from the ``token`` cookie, else from a Bearer header"""
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def require_user(
    request: Request,
    services: AuthServices = Depends(get_auth_services),
) -> TokenPayload:
    """Validate the caller's token against signature and live session"""
    token = extract_token(request)
    if not token:
        raise SessionExpiredOrInvalidError(
            "Nicht autorisiert. Bitte melden Sie sich an.", error_type="missing"
        )

    payload = await services.validator.validate(token)
    if payload is None:
        raise SessionExpiredOrInvalidError(error_type="invalid")

    request.state.user = payload
    return payload


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.session_ttl_seconds,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


# API Models
class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


# =============================================================================
# HEALTH
# =============================================================================

@app.get("/", status_code=200)
def read_root():
    return {"status": "ok", "version": "1.0.0", "service": "zahnflow-api"}


@app.get("/healthz", response_class=PlainTextResponse, status_code=200)
def healthz():
    """Plain text health check for maximum compatibility"""
    return "OK"


@app.get("/api/health", status_code=200)
async def health():
    status = {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
    if redis_service is not None:
        status["redis"] = (await redis_service.health_check())["status"]
    return status


# =============================================================================
# AUTH ENDPOINTS
# =============================================================================

@app.post("/api/auth/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    services: AuthServices = Depends(get_auth_services),
):
    """Check credentials, open a session and set the auth cookie."""
    session_info = SessionInfo(
        device_info=request.headers.get("User-Agent") or "Unknown",
        ip_address=get_real_ip(request) or "Unknown",
    )

    result = await services.authenticator.login(body.email, body.password, session_info)

    set_auth_cookie(response, result.token)
    return {"user": result.user.model_dump(mode="json"), "token": result.token}


@app.post("/api/auth/logout")
async def logout(
    request: Request,
    response: Response,
    services: AuthServices = Depends(get_auth_services),
):
    """Delete the caller's session (if any) and clear the cookie. Idempotent."""
    token = extract_token(request)
    if token:
        await services.manager.logout(token)

    clear_auth_cookie(response)
    return {"message": "Erfolgreich abgemeldet."}


@app.get("/api/auth/me")
async def me(
    user: TokenPayload = Depends(require_user),
    services: AuthServices = Depends(get_auth_services),
):
    current = await services.authenticator.get_user_by_id(user.user_id)
    if current is None:
        raise UserNotFoundError(user.user_id)
    return {"user": current.model_dump(mode="json")}


@app.get("/api/auth/sessions")
async def list_sessions(
    user: TokenPayload = Depends(require_user),
    services: AuthServices = Depends(get_auth_services),
):
    sessions = await services.manager.get_active_sessions(user.user_id)
    return {"sessions": [s.model_dump(mode="json", by_alias=True) for s in sessions]}


@app.post("/api/auth/logout-all")
async def logout_all(
    response: Response,
    user: TokenPayload = Depends(require_user),
    services: AuthServices = Depends(get_auth_services),
):
    await services.manager.logout_all_sessions(user.user_id)
    clear_auth_cookie(response)
    return {"message": "Von allen Geräten abgemeldet."}


@app.delete("/api/auth/sessions/{session_id}")
async def revoke_session(
    session_id: str,
    user: TokenPayload = Depends(require_user),
    services: AuthServices = Depends(get_auth_services),
):
    if not await services.manager.revoke_session(user.user_id, session_id):
        raise SessionNotFoundError(session_id)
    return {"message": "Session beendet."}


# Main entry point
if __name__ == "__main__":
    import os
    import uvicorn

    port = int(os.getenv("PORT", "3001"))
    logger.info(f"🚀 Starting ZahnFlow API on port {port}...")
    uvicorn.run(app, host="0.0.0.0", port=port, log_level="info")
