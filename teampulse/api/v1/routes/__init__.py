"""
API Routes
All v1 API endpoints
"""
from teampulse.api.v1.routes.health import router as health_router
from teampulse.api.v1.routes.data import router as data_router
from teampulse.api.v1.routes.analysis import router as analysis_router

__all__ = [
    "health_router",
    "data_router",
    "analysis_router",
]
