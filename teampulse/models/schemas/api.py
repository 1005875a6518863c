"""
API Schemas
Request and response bodies for the HTTP layer
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from teampulse.models.schemas.analysis import AnalysisType
from teampulse.models.schemas.stats import DataQuality
from teampulse.models.schemas.unified import UnifiedActivity, UnifiedMeeting, UnifiedMessage


class RawRecord(BaseModel):
    """One already-fetched payload, tagged with the service it came from."""
    service: str = Field(..., description="Service identifier, e.g. 'slack' or 'line-works'")
    raw: Dict[str, Any] = Field(..., description="Payload exactly as the service API returned it")


class IntegrationPayload(BaseModel):
    messages: List[RawRecord] = Field(default_factory=list)
    meetings: List[RawRecord] = Field(default_factory=list)
    activities: List[RawRecord] = Field(default_factory=list)
    received_at: Optional[datetime] = Field(
        default=None,
        description="Substituted (and flagged) for payloads that carry no timestamp",
    )


class BatchAnalysisRequest(IntegrationPayload):
    # Plain strings: an unknown type is reported per analysis, not as a 422
    analyses: List[str] = Field(
        default_factory=lambda: [
            AnalysisType.COMPREHENSIVE.value,
            AnalysisType.PRODUCTIVITY.value,
            AnalysisType.BURNOUT.value,
            AnalysisType.TEAM_DYNAMICS.value,
        ]
    )


class NormalizedPayload(BaseModel):
    messages: List[UnifiedMessage]
    meetings: List[UnifiedMeeting]
    activities: List[UnifiedActivity]
    data_quality: DataQuality


class HealthResponse(BaseModel):
    status: str
    llm_configured: bool
    version: str
