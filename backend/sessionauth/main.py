import logging
import sys
from contextlib import asynccontextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sessionauth.api.deps import apply_session_cookies, get_auth_context
from sessionauth.api.v1 import auth, users

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)
logging.getLogger("sessionauth").setLevel(logging.DEBUG)
from sessionauth.config import settings
from sessionauth.db.session import init_db
from sessionauth.services.session_store import StorageUnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate_production_config()
    await init_db()
    yield


app = FastAPI(
    title="Session Auth API",
    description="Cookie-based session authentication with rotating access/refresh tokens",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request: Request, exc: StorageUnavailableError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc)
    detail = "Internal server error"
    if not settings.is_production:
        detail += f": {exc}"
    return JSONResponse(status_code=500, content={"detail": detail})


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """Applies cookie updates staged during the request, including on error responses."""

    async def dispatch(self, request, call_next):
        request.state.session_cookies = None
        response = await call_next(request)
        apply_session_cookies(request, response)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if getattr(settings, "enable_hsts", False):
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        return response


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] if settings.cors_origins else ["*"]
app.add_middleware(SessionCookieMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Every versioned request resolves its session before the handler runs.
_session_dependencies = [Depends(get_auth_context)]
app.include_router(auth.router, prefix="/api/v1", dependencies=_session_dependencies)
app.include_router(users.router, prefix="/api/v1", dependencies=_session_dependencies)


@app.get("/health")
def health():
    return {"status": "ok"}
