"""
Derived Behavioral Metrics

Signals the analysis variants feed to the LLM on top of the aggregator's
statistics: response rhythm, after-hours load, collaboration structure.
Every value is computed from the records; functions return plain dicts so
they can be embedded in prompts with json.dumps.
"""
import logging
import statistics
from collections import Counter
from datetime import datetime, timedelta, tzinfo
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from teampulse.core.config import settings
from teampulse.models.schemas.unified import (
    SERVICE_ORDER,
    UnifiedActivity,
    UnifiedMeeting,
    UnifiedMessage,
)
from teampulse.services.intelligence.aggregator import PEAK_LIMIT, analysis_zone

logger = logging.getLogger(__name__)

COMPLETION_KEYWORDS = ("完了", "done", "終了", "finished", "解決", "resolved")
MAX_RESPONSE_GAP = timedelta(hours=24)
WORK_PERIOD_GAP = timedelta(minutes=60)
DECLINE_RATIO = 0.7
TOP_CONTRIBUTORS = 5


def _timeline(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    activities: Sequence[UnifiedActivity] = (),
) -> List[datetime]:
    points = [m.timestamp for m in messages]
    points += [m.start_time for m in meetings]
    points += [a.timestamp for a in activities]
    return points


def _gaps_minutes(messages: Sequence[UnifiedMessage]) -> List[float]:
    ordered = sorted(m.timestamp for m in messages)
    gaps = []
    for previous, current in zip(ordered, ordered[1:]):
        gap = current - previous
        if gap < MAX_RESPONSE_GAP:
            gaps.append(gap.total_seconds() / 60)
    return gaps


def _is_after_hours(moment: datetime, zone: tzinfo) -> bool:
    hour = moment.astimezone(zone).hour
    return hour < settings.business_hours_start or hour > settings.business_hours_end


def _is_weekend(moment: datetime, zone: tzinfo) -> bool:
    return moment.astimezone(zone).weekday() >= 5


# ============================================================================
# TEMPORAL
# ============================================================================

def identify_peak_hours(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    activities: Sequence[UnifiedActivity] = (),
    tz: Optional[tzinfo] = None,
) -> List[int]:
    """Top hours of day by activity. Ties resolve to the earlier hour."""
    zone = analysis_zone(tz)
    hours = Counter(t.astimezone(zone).hour for t in _timeline(messages, meetings, activities))
    ranked = sorted(hours.items(), key=lambda item: (-item[1], item[0]))
    return [hour for hour, _ in ranked[:PEAK_LIMIT]]


def daily_distribution(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    activities: Sequence[UnifiedActivity] = (),
    tz: Optional[tzinfo] = None,
) -> Dict[str, int]:
    zone = analysis_zone(tz)
    days = Counter(t.astimezone(zone).date().isoformat() for t in _timeline(messages, meetings, activities))
    return dict(sorted(days.items()))


def average_response_time_minutes(messages: Sequence[UnifiedMessage]) -> float:
    """Mean gap between consecutive messages; gaps of a day or more are breaks, not responses."""
    gaps = _gaps_minutes(messages)
    return statistics.fmean(gaps) if gaps else 0.0


def response_time_variation(messages: Sequence[UnifiedMessage]) -> Dict[str, float]:
    """Coefficient of variation of response gaps; high values mean erratic rhythm."""
    gaps = _gaps_minutes(messages)
    if len(gaps) < 2:
        return {"mean_minutes": gaps[0] if gaps else 0.0, "stdev_minutes": 0.0, "coefficient_of_variation": 0.0}
    mean = statistics.fmean(gaps)
    stdev = statistics.pstdev(gaps)
    return {
        "mean_minutes": mean,
        "stdev_minutes": stdev,
        "coefficient_of_variation": stdev / mean if mean > 0 else 0.0,
    }


def platform_switch_ratio(messages: Sequence[UnifiedMessage]) -> float:
    """Share of chronologically adjacent message pairs that change service."""
    if len(messages) < 2:
        return 0.0
    ordered = sorted(messages, key=lambda m: m.timestamp)
    switches = sum(1 for a, b in zip(ordered, ordered[1:]) if a.service != b.service)
    return switches / (len(ordered) - 1)


def after_hours_activity(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    zone = analysis_zone(tz)
    points = _timeline(messages, meetings)
    count = sum(1 for t in points if _is_after_hours(t, zone))
    return {"after_hours_count": count, "after_hours_ratio": count / len(points) if points else 0.0}


def weekend_activity(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    zone = analysis_zone(tz)
    points = _timeline(messages, meetings)
    count = sum(1 for t in points if _is_weekend(t, zone))
    return {"weekend_count": count, "weekend_ratio": count / len(points) if points else 0.0}


def continuous_work_periods(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    activities: Sequence[UnifiedActivity] = (),
) -> Dict[str, Any]:
    """
    Runs of activity where consecutive events are less than an hour apart.

    Meetings extend a run until they end.
    """
    spans: List[Tuple[datetime, datetime]] = [(t, t) for t in _timeline(messages, (), activities)]
    spans += [(m.start_time, m.end_time) for m in meetings]
    if not spans:
        return {"period_count": 0, "longest_period_minutes": 0.0, "average_period_minutes": 0.0}

    spans.sort()
    periods = []
    run_start, run_end = spans[0]
    for start, end in spans[1:]:
        if start - run_end < WORK_PERIOD_GAP:
            run_end = max(run_end, end)
        else:
            periods.append(run_end - run_start)
            run_start, run_end = start, end
    periods.append(run_end - run_start)

    minutes = [p.total_seconds() / 60 for p in periods]
    return {
        "period_count": len(minutes),
        "longest_period_minutes": max(minutes),
        "average_period_minutes": statistics.fmean(minutes),
    }


def participation_trend(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
) -> Dict[str, Any]:
    """Compare activity in the first and second half of the observed window."""
    points = sorted(_timeline(messages, meetings))
    if len(points) < 2 or points[0] == points[-1]:
        return {"first_half": len(points), "second_half": 0, "change_ratio": 0.0, "declining": False}

    midpoint = points[0] + (points[-1] - points[0]) / 2
    first = sum(1 for t in points if t < midpoint)
    second = len(points) - first
    change = (second - first) / first if first else 0.0
    return {
        "first_half": first,
        "second_half": second,
        "change_ratio": change,
        "declining": first > 0 and second < DECLINE_RATIO * first,
    }


# ============================================================================
# PRODUCTIVITY
# ============================================================================

def meeting_engagement(meetings: Sequence[UnifiedMeeting]) -> float:
    """Mean participants per meeting."""
    if not meetings:
        return 0.0
    return sum(len(m.participants) for m in meetings) / len(meetings)


def meeting_frequency(meetings: Sequence[UnifiedMeeting]) -> float:
    """Meetings per day over the span between the first and last meeting start."""
    if not meetings:
        return 0.0
    starts = [m.start_time for m in meetings]
    days = (max(starts) - min(starts)).total_seconds() / 86400
    return len(meetings) / days if days > 0 else 0.0


def task_completion_patterns(messages: Sequence[UnifiedMessage]) -> Dict[str, Any]:
    completed = sum(
        1 for m in messages
        if any(keyword in m.content.lower() for keyword in COMPLETION_KEYWORDS)
    )
    return {
        "completion_rate": completed / len(messages) if messages else 0.0,
        "completion_messages": completed,
        "completion_keywords": list(COMPLETION_KEYWORDS),
    }


def collaboration_efficiency(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting],
) -> Dict[str, float]:
    """Messages with reactions, mentions or threads; meetings with more than two people."""
    collaborative = sum(1 for m in messages if m.reactions or "@" in m.content or m.thread)
    group_meetings = sum(1 for m in meetings if len(m.participants) > 2)
    message_rate = collaborative / len(messages) if messages else 0.0
    meeting_rate = group_meetings / len(meetings) if meetings else 0.0
    return {
        "message_collaboration": message_rate,
        "meeting_collaboration": meeting_rate,
        "overall_score": (message_rate + meeting_rate) / 2,
    }


# ============================================================================
# WELLBEING
# ============================================================================

def per_user_after_hours(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    tz: Optional[tzinfo] = None,
) -> Dict[str, Dict[str, Any]]:
    zone = analysis_zone(tz)
    users: Dict[str, Dict[str, Any]] = {}

    def record(user_id: str, name: str, moment: datetime) -> None:
        entry = users.setdefault(user_id, {"name": name, "total": 0, "after_hours": 0})
        entry["total"] += 1
        if _is_after_hours(moment, zone):
            entry["after_hours"] += 1

    for message in messages:
        record(message.author.id, message.author.name, message.timestamp)
    for meeting in meetings:
        record(meeting.organizer.id, meeting.organizer.name, meeting.start_time)
        for participant in meeting.participants:
            if participant.id != meeting.organizer.id:
                record(participant.id, participant.name, meeting.start_time)

    for entry in users.values():
        entry["ratio"] = entry["after_hours"] / entry["total"]
    return users


def high_risk_users(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    tz: Optional[tzinfo] = None,
    threshold: Optional[float] = None,
) -> List[Dict[str, Any]]:
    """Users whose after-hours share exceeds the threshold (compared unrounded)."""
    threshold = settings.high_risk_after_hours_ratio if threshold is None else threshold
    flagged = [
        {"user_id": uid, "name": entry["name"], "after_hours_ratio": entry["ratio"]}
        for uid, entry in per_user_after_hours(messages, meetings, tz).items()
        if entry["ratio"] > threshold
    ]
    if flagged:
        logger.info(f"🔥 {len(flagged)} user(s) above after-hours ratio {threshold}")
    return sorted(flagged, key=lambda user: -user["after_hours_ratio"])


# ============================================================================
# TEAM STRUCTURE
# ============================================================================

def communication_graph(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
) -> Dict[str, Any]:
    """
    Undirected graph of users. Two users are connected when they posted in
    the same channel or attended the same meeting.
    """
    groups: Dict[str, Set[str]] = {}
    nodes: Set[str] = set()
    for message in messages:
        nodes.add(message.author.id)
        if message.channel:
            key = f"{message.service.value}:channel:{message.channel.id}"
            groups.setdefault(key, set()).add(message.author.id)
    for meeting in meetings:
        members = {meeting.organizer.id} | {p.id for p in meeting.participants}
        nodes |= members
        groups[f"{meeting.service.value}:meeting:{meeting.id}"] = members

    edges: Set[Tuple[str, str]] = set()
    for members in groups.values():
        edges.update(combinations(sorted(members), 2))

    degree: Counter = Counter()
    for a, b in edges:
        degree[a] += 1
        degree[b] += 1

    return {
        "node_count": len(nodes),
        "edge_count": len(edges),
        "most_connected": [uid for uid, _ in degree.most_common(TOP_CONTRIBUTORS)],
    }


def team_cohesion(messages: Sequence[UnifiedMessage], meetings: Sequence[UnifiedMeeting] = ()) -> float:
    """Density of the communication graph (0 = isolated users, 1 = everyone connected)."""
    graph = communication_graph(messages, meetings)
    nodes = graph["node_count"]
    if nodes < 2:
        return 0.0
    return graph["edge_count"] / (nodes * (nodes - 1) / 2)


def influence_metrics(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
) -> Dict[str, Any]:
    authors = Counter(m.author.id for m in messages)
    reactions_received: Counter = Counter()
    for message in messages:
        reactions_received[message.author.id] += sum(r.count for r in message.reactions)
    organizers = Counter(m.organizer.id for m in meetings)
    return {
        "top_contributors": [
            {"user_id": uid, "messages": count, "reactions_received": reactions_received[uid]}
            for uid, count in authors.most_common(TOP_CONTRIBUTORS)
        ],
        "meeting_organizers": [
            {"user_id": uid, "meetings": count} for uid, count in organizers.most_common(TOP_CONTRIBUTORS)
        ],
    }


def knowledge_sharing(messages: Sequence[UnifiedMessage]) -> Dict[str, float]:
    if not messages:
        return {"attachment_ratio": 0.0, "link_ratio": 0.0}
    with_attachments = sum(1 for m in messages if m.attachments)
    with_links = sum(1 for m in messages if "http://" in m.content or "https://" in m.content)
    return {
        "attachment_ratio": with_attachments / len(messages),
        "link_ratio": with_links / len(messages),
    }


def channel_engagement(messages: Sequence[UnifiedMessage]) -> Dict[str, Any]:
    if not messages:
        return {"active_channels": 0, "thread_ratio": 0.0, "reaction_ratio": 0.0}
    channels = {(m.service, m.channel.id) for m in messages if m.channel}
    return {
        "active_channels": len(channels),
        "thread_ratio": sum(1 for m in messages if m.thread) / len(messages),
        "reaction_ratio": sum(1 for m in messages if m.reactions) / len(messages),
    }


def user_interactions(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
) -> Dict[str, Any]:
    services: Dict[str, Set] = {}
    for message in messages:
        services.setdefault(message.author.id, set()).add(message.service)
    for meeting in meetings:
        # Same population as the cross-service collaboration score
        services.setdefault(meeting.organizer.id, set()).add(meeting.service)
        for participant in meeting.participants:
            services.setdefault(participant.id, set()).add(meeting.service)

    total = len(services)
    return {
        "total_users": total,
        "multi_platform_users": sum(1 for s in services.values() if len(s) > 1),
        "average_services_per_user": sum(len(s) for s in services.values()) / total if total else 0.0,
    }


def service_breakdown(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting] = (),
    activities: Sequence[UnifiedActivity] = (),
) -> List[Dict[str, Any]]:
    def count(records: Iterable, service) -> int:
        return sum(1 for r in records if r.service == service)

    present = {r.service for r in [*messages, *meetings, *activities]}
    return [
        {
            "service": service.value,
            "message_count": count(messages, service),
            "meeting_count": count(meetings, service),
            "activity_count": count(activities, service),
        }
        for service in SERVICE_ORDER
        if service in present
    ]
