"""
CORS for the map frontends. Origins come from settings; no wildcards.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from services.amenities.config import settings


def setup_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID", "X-User-Id"],
        expose_headers=["X-Request-ID", "X-RateLimit-Remaining", "Retry-After"],
        max_age=600,
    )
