import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.templating import Jinja2Templates
from starlette.middleware.base import BaseHTTPMiddleware

from profilepage.core.config import get_settings
from profilepage.core.log import configure_logging
from profilepage.db.create_tables import create_all
from profilepage.routers import editor as editor_router
from profilepage.routers import pages as pages_router
from profilepage.routers import profiles as profiles_router
from profilepage.services.document_service import DocumentService
from profilepage.services.edit_session import EditSessionRegistry

log = logging.getLogger(__name__)

BASE = os.path.dirname(__file__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject baseline security headers (CSP, anti clickjacking, referrer policy)."""

    def __init__(self, app, *, enforce_hsts: bool) -> None:
        super().__init__(app)
        self._enforce_hsts = enforce_hsts

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'self'; "
            "img-src 'self' data: https:; "
            "style-src 'self' 'unsafe-inline'; "
            "script-src 'self' 'unsafe-inline'; "
            "connect-src 'self'",
        )
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer-when-downgrade")
        if self._enforce_hsts:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_all()
    log.info("profile page service started")
    yield
    # pending edits are written before shutdown
    await app.state.edit_sessions.close_all()
    log.info("profile page service stopped")


def create_app() -> FastAPI:
    """Factory compatible with uvicorn/gunicorn (--factory)."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Profile Page API", lifespan=lifespan)

    allowed_cors = {settings.public_base_url}
    if settings.app_env != "prod":
        allowed_cors.update(
            {
                "http://localhost:8000",
                "http://127.0.0.1:8000",
                "http://localhost:5173",
                "http://127.0.0.1:5173",
            }
        )
    allowed_cors = {origin for origin in allowed_cors if origin}
    if allowed_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=sorted(allowed_cors),
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )
    app.add_middleware(SecurityHeadersMiddleware, enforce_hsts=settings.app_env == "prod")

    documents = DocumentService()
    app.state.templates = Jinja2Templates(directory=os.path.join(BASE, "templates"))
    app.state.document_service = documents
    app.state.edit_sessions = EditSessionRegistry(documents, debounce_seconds=settings.save_debounce_seconds)

    app.include_router(pages_router.router)
    app.include_router(editor_router.router)
    app.include_router(profiles_router.router)
    return app
