"""
Statistics Aggregator

Pure functions that compute message, meeting, cross-service and data quality
statistics over unified records. Every function is total: empty input gives
zeroed output, never an exception. Hour and weekday buckets use the
configured analysis timezone.
"""
import logging
import math
import statistics
from collections import Counter
from datetime import datetime, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from teampulse.core.config import settings
from teampulse.models.schemas.stats import (
    AggregatedStatistics,
    ChannelCount,
    CrossServiceAnalysis,
    DataQuality,
    DayActivity,
    HourActivity,
    MeetingCompleteness,
    MeetingStats,
    MeetingSummary,
    MessageCompleteness,
    MessageStats,
    ServiceUsage,
    TimelineAnalysis,
    TimeRange,
    UserCount,
    UserServiceActivity,
)
from teampulse.models.schemas.unified import (
    SERVICE_ORDER,
    ServiceType,
    UnifiedMeeting,
    UnifiedMessage,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_CHANNELS = 10
PEAK_LIMIT = 3
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (2.5 -> 3), unlike round()."""
    return math.floor(value + 0.5)


def analysis_zone(tz: Optional[tzinfo] = None) -> tzinfo:
    """The zone used for hour/day buckets: `tz` or settings.analysis_timezone."""
    if tz is not None:
        return tz
    try:
        return ZoneInfo(settings.analysis_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"⚠️  Invalid ANALYSIS_TIMEZONE {settings.analysis_timezone!r}, using UTC")
        return ZoneInfo("UTC")


def _time_range(timestamps: Iterable[datetime]) -> TimeRange:
    values = list(timestamps)
    if not values:
        return TimeRange()
    return TimeRange(earliest=min(values), latest=max(values))


def _summarize(meeting: UnifiedMeeting) -> MeetingSummary:
    return MeetingSummary(
        id=meeting.id,
        service=meeting.service,
        title=meeting.title,
        duration=meeting.duration,
        participant_count=len(meeting.participants),
    )


def _ordered_services(keys: Iterable[str]) -> Dict[str, int]:
    return {s.value: 0 for s in SERVICE_ORDER if s.value in set(keys)}


# ============================================================================
# MESSAGES
# ============================================================================

def calculate_message_stats(
    messages: Sequence[UnifiedMessage],
    top_n: int = DEFAULT_TOP_CHANNELS,
    tz: Optional[tzinfo] = None,
) -> MessageStats:
    zone = analysis_zone(tz)
    by_service: Counter = Counter()
    by_hour = {hour: 0 for hour in range(24)}
    by_user: Dict[str, Dict] = {}
    channels: Dict[str, Dict] = {}
    total_length = 0

    for message in messages:
        by_service[message.service.value] += 1
        by_hour[message.timestamp.astimezone(zone).hour] += 1

        user = by_user.setdefault(message.author.id, {"name": message.author.name, "count": 0})
        user["count"] += 1

        total_length += len(message.content)

        if message.channel and message.channel.id:
            channel = channels.setdefault(message.channel.id, {"name": message.channel.name, "count": 0})
            channel["count"] += 1

    # sorted() is stable, so equal counts keep first-encounter order
    top_channels = sorted(channels.items(), key=lambda item: -item[1]["count"])[:top_n]

    messages_by_service = _ordered_services(by_service)
    messages_by_service.update(by_service)

    return MessageStats(
        total_messages=len(messages),
        messages_by_service=messages_by_service,
        messages_by_hour=by_hour,
        messages_by_user={uid: UserCount(**data) for uid, data in by_user.items()},
        average_message_length=round_half_up(total_length / len(messages)) if messages else 0,
        most_active_channels=[
            ChannelCount(channel_id=cid, channel_name=data["name"], count=data["count"])
            for cid, data in top_channels
        ],
        time_range=_time_range(m.timestamp for m in messages),
    )


# ============================================================================
# MEETINGS
# ============================================================================

def calculate_meeting_stats(meetings: Sequence[UnifiedMeeting], tz: Optional[tzinfo] = None) -> MeetingStats:
    zone = analysis_zone(tz)
    by_service: Counter = Counter()
    by_day: Dict[str, int] = {}
    total_duration = 0
    total_participants = 0
    longest: Optional[UnifiedMeeting] = None
    largest: Optional[UnifiedMeeting] = None

    for meeting in meetings:
        by_service[meeting.service.value] += 1
        total_duration += meeting.duration
        total_participants += len(meeting.participants)

        # Strict comparison: first seen wins ties
        if longest is None or meeting.duration > longest.duration:
            longest = meeting
        if largest is None or len(meeting.participants) > len(largest.participants):
            largest = meeting

        day = meeting.start_time.astimezone(zone).date().isoformat()
        by_day[day] = by_day.get(day, 0) + 1

    count = len(meetings)
    meetings_by_service = _ordered_services(by_service)
    meetings_by_service.update(by_service)

    return MeetingStats(
        total_meetings=count,
        meetings_by_service=meetings_by_service,
        total_duration=total_duration,
        average_duration=round_half_up(total_duration / count) if count else 0,
        average_participants=round_half_up(total_participants / count) if count else 0,
        meetings_by_day=dict(sorted(by_day.items())),
        longest_meeting=_summarize(longest) if longest else None,
        most_participants=_summarize(largest) if largest else None,
        time_range=_time_range(m.start_time for m in meetings),
    )


# ============================================================================
# CROSS-SERVICE
# ============================================================================

def calculate_balance_score(values: Sequence[float]) -> float:
    """
    Evenness of a distribution: 100 - 100 * pstdev / mean, clamped to [0, 100].

    Degenerate input (empty, a single bucket, or all zeros) scores 0 since
    there is nothing to balance.
    """
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean <= 0:
        return 0.0
    score = 100.0 - 100.0 * statistics.pstdev(values) / mean
    return max(0.0, min(100.0, score))


def calculate_cross_service_analysis(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting],
    tz: Optional[tzinfo] = None,
) -> CrossServiceAnalysis:
    zone = analysis_zone(tz)
    usage: Dict[ServiceType, Dict[str, int]] = {}
    user_services: Dict[str, List[ServiceType]] = {}
    user_names: Dict[str, str] = {}
    user_counts: Counter = Counter()
    hours: Counter = Counter()
    days: Counter = Counter()

    def touch(user_id: str, name: str, service: ServiceType) -> None:
        services = user_services.setdefault(user_id, [])
        if service not in services:
            services.append(service)
        user_names.setdefault(user_id, name)
        user_counts[user_id] += 1

    for message in messages:
        bucket = usage.setdefault(message.service, {"messages": 0, "meetings": 0})
        bucket["messages"] += 1
        touch(message.author.id, message.author.name, message.service)
        local = message.timestamp.astimezone(zone)
        hours[local.hour] += 1
        days[WEEKDAYS[local.weekday()]] += 1

    for meeting in meetings:
        bucket = usage.setdefault(meeting.service, {"messages": 0, "meetings": 0})
        bucket["meetings"] += 1
        touch(meeting.organizer.id, meeting.organizer.name, meeting.service)
        for participant in meeting.participants:
            if participant.id != meeting.organizer.id:
                touch(participant.id, participant.name, meeting.service)
        local = meeting.start_time.astimezone(zone)
        hours[local.hour] += 1
        days[WEEKDAYS[local.weekday()]] += 1

    distribution = {
        service.value: ServiceUsage(
            messages=usage[service]["messages"],
            meetings=usage[service]["meetings"],
            total=usage[service]["messages"] + usage[service]["meetings"],
        )
        for service in SERVICE_ORDER
        if service in usage
    }

    total_users = len(user_services)
    multi_service_users = sum(1 for services in user_services.values() if len(services) > 1)
    collaboration = round_half_up(100 * multi_service_users / total_users) if total_users else 0

    return CrossServiceAnalysis(
        service_usage_distribution=distribution,
        user_activity_across_services={
            uid: UserServiceActivity(
                name=user_names[uid],
                services=[s for s in SERVICE_ORDER if s in services],
                total_activity=user_counts[uid],
            )
            for uid, services in user_services.items()
        },
        timeline_analysis=TimelineAnalysis(
            peak_hours=[HourActivity(hour=h, activity=c) for h, c in hours.most_common(PEAK_LIMIT)],
            peak_days=[DayActivity(day=d, activity=c) for d, c in days.most_common(PEAK_LIMIT)],
        ),
        collaboration_score=collaboration,
        balance_score=round_half_up(calculate_balance_score([u.total for u in distribution.values()])),
    )


# ============================================================================
# DATA QUALITY
# ============================================================================

def _has_valid_timestamp(message: UnifiedMessage) -> bool:
    return message.timestamp is not None and not message.timestamp_missing


def analyze_data_quality(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting],
    threshold: Optional[float] = None,
) -> DataQuality:
    """
    Completeness of the records, 0-100.

    Four checks per record kind; an empty collection scores 100. The overall
    score is the mean of both kinds. `needs_attention` compares the unrounded
    score to the alert threshold.
    """
    threshold = settings.quality_alert_threshold if threshold is None else threshold

    message_checks = MessageCompleteness(
        total=len(messages),
        with_content=sum(1 for m in messages if m.content and m.content.strip()),
        with_author=sum(1 for m in messages if m.author and m.author.name),
        with_timestamp=sum(1 for m in messages if _has_valid_timestamp(m)),
        with_channel=sum(1 for m in messages if m.channel and m.channel.id),
    )
    meeting_checks = MeetingCompleteness(
        total=len(meetings),
        with_title=sum(1 for m in meetings if m.title and m.title.strip()),
        with_participants=sum(1 for m in meetings if m.participants),
        with_duration=sum(1 for m in meetings if m.duration > 0),
        with_organizer=sum(1 for m in meetings if m.organizer and m.organizer.name),
    )

    message_score = 100.0
    if message_checks.total:
        passed = (
            message_checks.with_content + message_checks.with_author
            + message_checks.with_timestamp + message_checks.with_channel
        )
        message_score = 100.0 * passed / (message_checks.total * 4)

    meeting_score = 100.0
    if meeting_checks.total:
        passed = (
            meeting_checks.with_title + meeting_checks.with_participants
            + meeting_checks.with_duration + meeting_checks.with_organizer
        )
        meeting_score = 100.0 * passed / (meeting_checks.total * 4)

    raw_score = (message_score + meeting_score) / 2
    needs_attention = raw_score < threshold
    if needs_attention:
        logger.warning(f"⚠️  Data quality {raw_score:.1f} is below threshold {threshold}")

    return DataQuality(
        messages=message_checks,
        meetings=meeting_checks,
        message_score=message_score,
        meeting_score=meeting_score,
        raw_score=raw_score,
        overall_score=round_half_up(raw_score),
        needs_attention=needs_attention,
    )


def aggregate(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting],
    tz: Optional[tzinfo] = None,
) -> AggregatedStatistics:
    """Compute all four statistics bundles in one pass over the inputs."""
    zone = analysis_zone(tz)
    return AggregatedStatistics(
        message_stats=calculate_message_stats(messages, tz=zone),
        meeting_stats=calculate_meeting_stats(meetings, tz=zone),
        cross_service=calculate_cross_service_analysis(messages, meetings, tz=zone),
        data_quality=analyze_data_quality(messages, meetings),
    )
