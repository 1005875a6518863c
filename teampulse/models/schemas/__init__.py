"""
Schemas
Pydantic models shared by every stage and by the API
"""
from teampulse.models.schemas.unified import (
    ServiceType,
    UnifiedMessage,
    UnifiedMeeting,
    UnifiedActivity,
)
from teampulse.models.schemas.stats import (
    MessageStats,
    MeetingStats,
    CrossServiceAnalysis,
    DataQuality,
    AggregatedStatistics,
)
from teampulse.models.schemas.analysis import (
    AnalysisType,
    AnalysisResult,
    BatchAnalysisResponse,
)

__all__ = [
    # Unified records
    "ServiceType",
    "UnifiedMessage",
    "UnifiedMeeting",
    "UnifiedActivity",

    # Aggregation
    "MessageStats",
    "MeetingStats",
    "CrossServiceAnalysis",
    "DataQuality",
    "AggregatedStatistics",

    # Analysis
    "AnalysisType",
    "AnalysisResult",
    "BatchAnalysisResponse",
]
