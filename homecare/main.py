# homecare/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from homecare.api.exception_handlers import register_exception_handlers
from homecare.api.router import api_router
from homecare.core.config import settings
from homecare.core.logging import configure_logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Service-Key"],
    )

register_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_V1_STR)

logger.info("%s: API mounted at %s (row security enforced by %s)",
            settings.PROJECT_NAME, settings.API_V1_STR,
            "database + session" if settings.DB_ENFORCE_RLS else "session")


@app.get("/")
def health():
    return {"service": settings.PROJECT_NAME, "status": "ok"}
