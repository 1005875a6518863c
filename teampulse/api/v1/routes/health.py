"""
Health Check
Liveness probe for load balancers and uptime monitors
"""
from typing import Optional

from fastapi import APIRouter, Depends

from teampulse import __version__
from teampulse.core.dependencies import get_llm_client
from teampulse.models.schemas.api import HealthResponse
from teampulse.services.analysis.llm_client import LLMClient

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(llm_client: Optional[LLMClient] = Depends(get_llm_client)):
    return HealthResponse(status="ok", llm_configured=llm_client is not None, version=__version__)
