"""
Analysis API Routes
LLM-backed team health analysis, single variant or batch
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from teampulse.core.dependencies import get_analysis_engine
from teampulse.core.errors import AnalysisRequestError
from teampulse.middleware.rate_limit import ANALYSIS_LIMIT, limiter
from teampulse.models.schemas.analysis import AnalysisResult, BatchAnalysisResponse
from teampulse.models.schemas.api import BatchAnalysisRequest, IntegrationPayload
from teampulse.api.v1.routes.data import normalize_payload
from teampulse.services.analysis.batch import run_batch_analysis
from teampulse.services.analysis.engine import AnalysisEngine
from teampulse.services.analysis.variants import get_variant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])


# Registered before /{analysis_type} so "batch" is not taken as a type
@router.post("/batch", response_model=BatchAnalysisResponse, response_model_by_alias=True)
@limiter.limit(ANALYSIS_LIMIT)
async def batch_analysis(
    request: Request,
    payload: BatchAnalysisRequest,
    engine: AnalysisEngine = Depends(get_analysis_engine),
):
    """
    Run several analyses over the same records concurrently.

    Per-analysis failures are reported under `errors`; the request itself
    only fails for invalid payloads.
    """
    messages, meetings, activities = normalize_payload(payload)
    return await run_batch_analysis(engine, messages, meetings, activities, payload.analyses)


@router.post("/{analysis_type}", response_model=AnalysisResult, response_model_by_alias=True)
@limiter.limit(ANALYSIS_LIMIT)
async def run_analysis(
    request: Request,
    analysis_type: str,
    payload: IntegrationPayload,
    engine: AnalysisEngine = Depends(get_analysis_engine),
):
    """Run one analysis variant (comprehensive, productivity, burnout, team_dynamics, communication)."""
    try:
        get_variant(analysis_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    messages, meetings, activities = normalize_payload(payload)

    try:
        return await engine.run(analysis_type, messages, meetings, activities)
    except AnalysisRequestError as e:
        raise HTTPException(status_code=502, detail=e.message)
