"""
Royal Post Intake API
FastAPI application relaying contact and Royal Post form submissions by email.
"""

import logging
import os
from typing import List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_mail_settings
from app.routers import contact, royal_post

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Royal Post Intake API",
    description="Validates contact and Royal Post forms and relays them by email",
    version="0.1.0",
)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes http://localhost:3000 (Next.js dev server). Additional
    origins are read from the CORS_ORIGINS environment variable as a
    comma-separated list, e.g.:
        CORS_ORIGINS=https://royalpost.example.com,https://preview.example.com

    Duplicates are removed while preserving order.
    """
    always_included = ["http://localhost:3000"]

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    # Deduplicate while preserving order
    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(contact.router, prefix="/api/contact", tags=["contact"])
app.include_router(royal_post.router, prefix="/api/royal-post", tags=["royal-post"])


@app.on_event("startup")
async def log_startup_config() -> None:
    """
    Log the local URL and which mail provider is active.

    The port shown is taken from ``HOST_PORT`` so Docker-mapped ports are
    reported correctly. Defaults to 8000.
    """
    host_port = os.getenv("HOST_PORT", "8000")
    settings = get_mail_settings()
    logger.info(
        "Royal Post Intake API running at http://localhost:%s (mail provider: %s, %s)",
        host_port,
        settings.provider,
        "configured" if settings.is_configured else "NOT configured",
    )


@app.get("/")
async def root():
    return {"message": "Royal Post Intake API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/mail")
async def health_mail():
    """
    Report whether outbound mail can be sent.

    Checks configuration only; no email is sent. Returns 503 when the
    selected provider is missing its API key or recipients.
    """
    settings = get_mail_settings()
    if not settings.is_configured:
        raise HTTPException(
            status_code=503,
            detail=f"Mail provider '{settings.provider}' is not configured: "
                   "set RESEND_API_KEY and CONTACT_EMAIL",
        )
    return {"status": "ok", "provider": settings.provider, "recipients": len(settings.recipients)}
