"""
Aggregation Output Models

Read-only snapshots produced by the aggregator. They are rebuilt on every
call and never hold references to the records they were computed from.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from teampulse.models.schemas.unified import ServiceType


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class TimeRange(_Snapshot):
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None


class UserCount(_Snapshot):
    name: str
    count: int


class ChannelCount(_Snapshot):
    channel_id: str
    channel_name: str
    count: int


class MessageStats(_Snapshot):
    total_messages: int = 0
    messages_by_service: Dict[str, int] = Field(default_factory=dict)
    messages_by_hour: Dict[int, int] = Field(
        default_factory=lambda: {hour: 0 for hour in range(24)},
        description="Hour of day (0-23) -> message count; every bucket present",
    )
    messages_by_user: Dict[str, UserCount] = Field(default_factory=dict)
    average_message_length: int = 0
    most_active_channels: List[ChannelCount] = Field(default_factory=list)
    time_range: TimeRange = Field(default_factory=TimeRange)


class MeetingSummary(_Snapshot):
    """Copy of the identifying fields of a meeting."""
    id: str
    service: ServiceType
    title: str
    duration: int
    participant_count: int


class MeetingStats(_Snapshot):
    total_meetings: int = 0
    meetings_by_service: Dict[str, int] = Field(default_factory=dict)
    total_duration: int = Field(default=0, description="Minutes")
    average_duration: int = 0
    average_participants: int = 0
    meetings_by_day: Dict[str, int] = Field(default_factory=dict)
    longest_meeting: Optional[MeetingSummary] = None
    most_participants: Optional[MeetingSummary] = None
    time_range: TimeRange = Field(default_factory=TimeRange)


class ServiceUsage(_Snapshot):
    messages: int = 0
    meetings: int = 0
    total: int = 0


class UserServiceActivity(_Snapshot):
    name: str
    services: List[ServiceType]
    total_activity: int


class HourActivity(_Snapshot):
    hour: int
    activity: int


class DayActivity(_Snapshot):
    day: str
    activity: int


class TimelineAnalysis(_Snapshot):
    peak_hours: List[HourActivity] = Field(default_factory=list)
    peak_days: List[DayActivity] = Field(default_factory=list)


class CrossServiceAnalysis(_Snapshot):
    service_usage_distribution: Dict[str, ServiceUsage] = Field(default_factory=dict)
    user_activity_across_services: Dict[str, UserServiceActivity] = Field(default_factory=dict)
    timeline_analysis: TimelineAnalysis = Field(default_factory=TimelineAnalysis)
    collaboration_score: int = 0
    balance_score: int = 0


class MessageCompleteness(_Snapshot):
    total: int = 0
    with_content: int = 0
    with_author: int = 0
    with_timestamp: int = 0
    with_channel: int = 0


class MeetingCompleteness(_Snapshot):
    total: int = 0
    with_title: int = 0
    with_participants: int = 0
    with_duration: int = 0
    with_organizer: int = 0


class DataQuality(_Snapshot):
    messages: MessageCompleteness = Field(default_factory=MessageCompleteness)
    meetings: MeetingCompleteness = Field(default_factory=MeetingCompleteness)
    # Unrounded scores stay internal; only overall_score is serialized
    message_score: float = Field(default=100.0, exclude=True)
    meeting_score: float = Field(default=100.0, exclude=True)
    raw_score: float = Field(default=100.0, exclude=True, description="Unrounded overall score, for threshold checks")
    overall_score: int = 100
    needs_attention: bool = False


class AggregatedStatistics(_Snapshot):
    """Everything the aggregator computes for one batch of records."""
    message_stats: MessageStats
    meeting_stats: MeetingStats
    cross_service: CrossServiceAnalysis
    data_quality: DataQuality
