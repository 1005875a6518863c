"""
Fallback Results
Low-confidence AnalysisResult built from local statistics only
"""
from typing import List

from teampulse.models.schemas.analysis import Insights
from teampulse.models.schemas.stats import AggregatedStatistics
from teampulse.services.analysis.variants import AnalysisVariant

FALLBACK_SUMMARY = (
    "{title} was generated from local statistics because the AI analysis was unavailable. "
    "Results are based on limited data and should be treated as indicative."
)


def statistical_findings(stats: AggregatedStatistics) -> List[str]:
    """Findings that can be stated from the aggregates alone."""
    messages = stats.message_stats
    meetings = stats.meeting_stats
    cross = stats.cross_service

    findings = [
        f"{messages.total_messages} messages and {meetings.total_meetings} meetings analyzed "
        f"across {len(cross.service_usage_distribution)} service(s)",
    ]
    if cross.timeline_analysis.peak_hours:
        hours = ", ".join(f"{h.hour:02d}:00" for h in cross.timeline_analysis.peak_hours)
        findings.append(f"Peak activity hours: {hours}")
    if cross.user_activity_across_services:
        findings.append(f"Cross-service collaboration score: {cross.collaboration_score}/100")
    if meetings.total_meetings:
        findings.append(
            f"Meetings average {meetings.average_duration} minutes with {meetings.average_participants} participants"
        )
    findings.append(f"Data quality score: {stats.data_quality.overall_score}/100")
    return findings


def build_fallback_insights(variant: AnalysisVariant, stats: AggregatedStatistics) -> Insights:
    return Insights(
        summary=FALLBACK_SUMMARY.format(title=variant.title),
        key_findings=statistical_findings(stats) + list(variant.fallback_findings),
        recommendations=list(variant.fallback_recommendations),
        risk_factors=[r.model_copy() for r in variant.fallback_risk_factors],
        opportunities=[o.model_copy() for o in variant.fallback_opportunities],
    )
