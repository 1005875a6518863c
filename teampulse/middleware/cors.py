"""
CORS Configuration
Cross-Origin Resource Sharing settings for dashboard access

SECURITY:
- Origins come from CORS_ALLOW_ORIGINS (comma-separated)
- Development adds local dev servers
- NO "null" origin (prevents file:// attacks)
"""
from typing import List

from fastapi.middleware.cors import CORSMiddleware as FastAPICORSMiddleware
from teampulse.core.config import settings

DEV_ORIGINS = [
    "http://localhost:3000",  # Next.js dev server
    "http://localhost:5173",  # Vite dev server
]


def allowed_origins() -> List[str]:
    origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    if settings.environment != "production":
        origins += [o for o in DEV_ORIGINS if o not in origins]
    # SECURITY: Do NOT include "null" - it allows file:// based attacks
    return [o for o in origins if o != "null"]


def get_cors_middleware():
    """Returns configured CORS middleware with environment-based settings."""
    return FastAPICORSMiddleware, {
        "allow_origins": allowed_origins(),
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "OPTIONS"],  # Read-only API plus analysis POSTs
        "allow_headers": [
            "Content-Type",
            "Authorization",
            "X-Request-ID",
        ],
        "expose_headers": ["X-Request-ID"],  # Headers dashboard can read
        "max_age": 600,  # Cache preflight requests for 10 minutes
    }
