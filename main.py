"""
TeamPulse - Cross-Service Team Analytics API
============================================
FastAPI application combining:
- Normalization of Slack, Discord, Teams, ChatWork, LINE WORKS and Google payloads
- Message / meeting / cross-service statistics
- LLM-backed team health analysis with statistical fallback

Architecture:
- teampulse/core/: Configuration, dependencies, errors
- teampulse/middleware/: Error handling, logging, CORS, rate limiting
- teampulse/models/: Pydantic schemas
- teampulse/services/: Normalization, aggregation, analysis
- teampulse/api/v1/routes/: API endpoints
"""
import sys
import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI

# Startup error handling
try:
    # Import core components
    from teampulse import __version__
    from teampulse.core.config import settings
    from teampulse.core.dependencies import initialize_clients, shutdown_clients

    # Import middleware
    from teampulse.middleware.error_handler import ErrorHandlerMiddleware
    from teampulse.middleware.logging import RequestLoggingMiddleware
    from teampulse.middleware.cors import get_cors_middleware

    # Import routes
    from teampulse.api.v1.routes import (
        health_router,
        data_router,
        analysis_router,
    )
except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# SENTRY ERROR TRACKING
# ============================================================================

def configure_sentry() -> bool:
    """Report unhandled errors to Sentry when SENTRY_DSN is set."""
    if not settings.sentry_dsn:
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    # Request payloads carry message bodies, so they never leave the process
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"teampulse@{__version__}",
        send_default_pii=False,
        max_request_body_size="never",
        integrations=[
            FastApiIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
    )
    return True


sentry_enabled = configure_sentry()


# ============================================================================
# LIFECYCLE MANAGEMENT
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the LLM client and analysis engine, and close them on shutdown."""
    logger.info(
        f"🚀 TeamPulse {__version__} starting ({settings.environment}, "
        f"analysis timezone {settings.analysis_timezone}, "
        f"sentry {'on' if sentry_enabled else 'off'})"
    )
    await initialize_clients()

    yield

    await shutdown_clients()
    logger.info("👋 TeamPulse stopped")

# ============================================================================
# APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="TeamPulse Analytics API",
    description="Cross-service communication statistics and AI team health analysis",
    version=__version__,
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# ============================================================================
# RATE LIMITING
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from teampulse.middleware.rate_limit import limiter

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
logger.debug(f"Analysis endpoints limited to {settings.analysis_rate_limit}")

# ============================================================================
# MIDDLEWARE
# ============================================================================

# CORS
cors_middleware, cors_config = get_cors_middleware()
app.add_middleware(cors_middleware, **cors_config)

# Request logging
app.add_middleware(RequestLoggingMiddleware)

# Global error handler (must be last)
app.add_middleware(ErrorHandlerMiddleware)

# ============================================================================
# ROUTES
# ============================================================================

app.include_router(health_router)
app.include_router(data_router)
app.include_router(analysis_router)

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
