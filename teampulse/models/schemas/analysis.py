"""
Analysis - Data Models

Pydantic models for AI analysis results. Field names are snake_case in Python
and camelCase on the wire (keyFindings, confidenceScore, ...), which is also
the shape the LLM is asked to answer in.
"""
from datetime import datetime
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from teampulse.models.schemas.unified import ServiceType


class AnalysisType(str, Enum):
    """Supported analysis variants."""
    COMPREHENSIVE = "comprehensive"
    PRODUCTIVITY = "productivity"
    BURNOUT = "burnout"
    TEAM_DYNAMICS = "team_dynamics"
    COMMUNICATION = "communication"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RiskFactor(CamelModel):
    factor: str
    severity: Literal["low", "medium", "high"] = "medium"
    impact: str = ""
    mitigation: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class Opportunity(CamelModel):
    area: str
    potential: str = ""
    implementation: str = ""


class Insights(CamelModel):
    summary: str
    key_findings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    opportunities: List[Opportunity] = Field(default_factory=list)


class AnalysisMetrics(CamelModel):
    confidence_score: int = Field(..., ge=0, le=100)
    data_quality_score: int = Field(..., ge=0, le=100, description="Always computed locally, never taken from the LLM")
    analysis_depth: int = Field(..., ge=0, le=100)


class AnalysisTimeRange(CamelModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class DataSource(CamelModel):
    services: List[ServiceType] = Field(default_factory=list)
    message_count: int = 0
    meeting_count: int = 0
    time_range: AnalysisTimeRange = Field(default_factory=AnalysisTimeRange)


class AnalysisResult(CamelModel):
    """Structured team-health analysis. The only surface dashboards consume."""
    id: str
    type: AnalysisType
    insights: Insights
    metrics: AnalysisMetrics
    generated_at: datetime
    data_source: DataSource
    is_fallback: bool = Field(
        default=False,
        description="True when built from local statistics because the LLM response was unusable",
    )


class AnalysisResponsePayload(CamelModel):
    """
    Shape expected from the LLM.

    Every field is optional: a JSON object with none of them is still usable.
    Variant-specific summary keys (productivitySummary, ...) are read from the
    raw dict by the parser, so extra keys are allowed.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    summary: Optional[str] = None
    key_findings: Optional[List[str]] = None
    recommendations: Optional[List[str]] = None
    risk_factors: Optional[List[RiskFactor]] = None
    opportunities: Optional[List[Opportunity]] = None
    confidence_score: Optional[float] = None
    analysis_depth: Optional[float] = None


# ============================================================================
# BATCH
# ============================================================================

class DataPoints(CamelModel):
    messages: int = 0
    meetings: int = 0
    activities: int = 0


class BatchMetadata(CamelModel):
    data_points: DataPoints
    analyses_requested: int
    analyses_completed: int
    analyses_failed: int
    generated_at: datetime


class BatchAnalysisResponse(CamelModel):
    success: bool
    results: Dict[str, AnalysisResult] = Field(default_factory=dict)
    errors: Optional[Dict[str, str]] = None
    error: Optional[str] = None
    metadata: Optional[BatchMetadata] = None
