"""
Batch Analysis
Runs several analysis variants concurrently over the same records
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from teampulse.core.errors import AnalysisRequestError
from teampulse.models.schemas.analysis import (
    AnalysisResult,
    AnalysisType,
    BatchAnalysisResponse,
    BatchMetadata,
    DataPoints,
)
from teampulse.models.schemas.unified import UnifiedActivity, UnifiedMeeting, UnifiedMessage
from teampulse.services.analysis.engine import AnalysisEngine

logger = logging.getLogger(__name__)

DEFAULT_BATCH_ANALYSES: List[str] = [
    AnalysisType.COMPREHENSIVE.value,
    AnalysisType.PRODUCTIVITY.value,
    AnalysisType.BURNOUT.value,
    AnalysisType.TEAM_DYNAMICS.value,
]

NO_DATA_ERROR = "No data available for batch analysis"
NO_TYPES_ERROR = "No analysis types requested"


async def run_batch_analysis(
    engine: AnalysisEngine,
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting],
    activities: Sequence[UnifiedActivity] = (),
    analysis_types: Optional[Sequence[str]] = None,
    timeout: Optional[float] = None,
) -> BatchAnalysisResponse:
    """
    Run each requested variant with asyncio.gather.

    A failing variant is reported under `errors` and does not affect the
    others. `success` is True when at least one variant produced a result.
    """
    requested = list(analysis_types) if analysis_types is not None else list(DEFAULT_BATCH_ANALYSES)

    if not messages and not meetings and not activities:
        logger.warning("⚠️  Batch analysis requested with no data")
        return BatchAnalysisResponse(success=False, error=NO_DATA_ERROR)

    if not requested:
        logger.warning("⚠️  Batch analysis requested with an empty analysis list")
        return BatchAnalysisResponse(success=False, error=NO_TYPES_ERROR)

    # Duplicates would overwrite each other's result
    unique_types = list(dict.fromkeys(requested))

    logger.info(f"📊 Batch analysis: {', '.join(unique_types)}")
    outcomes = await asyncio.gather(
        *(engine.run(t, messages, meetings, activities, timeout=timeout) for t in unique_types),
        return_exceptions=True,
    )

    results: Dict[str, AnalysisResult] = {}
    errors: Dict[str, str] = {}
    for analysis_type, outcome in zip(unique_types, outcomes):
        if isinstance(outcome, AnalysisResult):
            results[analysis_type] = outcome
        elif isinstance(outcome, AnalysisRequestError):
            errors[analysis_type] = outcome.message
        elif isinstance(outcome, ValueError):
            errors[analysis_type] = str(outcome)
        elif isinstance(outcome, BaseException):
            # Unexpected failures are still isolated to their variant
            logger.error(f"❌ {analysis_type} analysis crashed: {outcome!r}")
            errors[analysis_type] = "Analysis failed"

    logger.info(f"✅ Batch analysis done: {len(results)} completed, {len(errors)} failed")

    return BatchAnalysisResponse(
        success=bool(results),
        results=results,
        errors=errors or None,
        metadata=BatchMetadata(
            data_points=DataPoints(messages=len(messages), meetings=len(meetings), activities=len(activities)),
            analyses_requested=len(unique_types),
            analyses_completed=len(results),
            analyses_failed=len(errors),
            generated_at=datetime.now(timezone.utc),
        ),
    )
