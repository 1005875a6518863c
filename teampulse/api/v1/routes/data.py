"""
Data API Routes
Normalization and statistics over raw service payloads
"""
import logging
from typing import List, Tuple

from fastapi import APIRouter, HTTPException

from teampulse.core.errors import NormalizationError
from teampulse.models.schemas.api import IntegrationPayload, NormalizedPayload
from teampulse.models.schemas.stats import AggregatedStatistics
from teampulse.models.schemas.unified import UnifiedActivity, UnifiedMeeting, UnifiedMessage
from teampulse.services.intelligence import aggregate, analyze_data_quality
from teampulse.services.normalization import normalize_activity, normalize_meeting, normalize_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["data"])


def normalize_payload(
    payload: IntegrationPayload,
) -> Tuple[List[UnifiedMessage], List[UnifiedMeeting], List[UnifiedActivity]]:
    """
    Normalize every record in the payload.

    Raises HTTPException(422) naming the first record that fails.
    """
    normalized = {}
    for kind, records, normalize in (
        ("messages", payload.messages, normalize_message),
        ("meetings", payload.meetings, normalize_meeting),
        ("activities", payload.activities, normalize_activity),
    ):
        items = []
        for index, record in enumerate(records):
            try:
                items.append(normalize(record.service, record.raw, payload.received_at))
            except NormalizationError as e:
                logger.warning(f"⚠️  Rejected {kind}[{index}] from {record.service}: {e}")
                raise HTTPException(
                    status_code=422,
                    detail={"code": e.code, "message": e.message, "kind": kind, "index": index},
                )
        normalized[kind] = items

    return normalized["messages"], normalized["meetings"], normalized["activities"]


@router.post("/normalize", response_model=NormalizedPayload)
async def normalize(payload: IntegrationPayload):
    """Map raw service payloads to unified records and report their completeness."""
    messages, meetings, activities = normalize_payload(payload)
    logger.info(f"📥 Normalized {len(messages)} messages, {len(meetings)} meetings, {len(activities)} activities")

    return NormalizedPayload(
        messages=messages,
        meetings=meetings,
        activities=activities,
        data_quality=analyze_data_quality(messages, meetings),
    )


@router.post("/statistics", response_model=AggregatedStatistics)
async def statistics(payload: IntegrationPayload):
    """Message, meeting, cross-service and data quality statistics."""
    messages, meetings, _ = normalize_payload(payload)
    return aggregate(messages, meetings)
