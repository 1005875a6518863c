"""
Analysis Variants

Each variant is one AnalysisVariant descriptor: prompts, token budget,
data preparation and fallback content. The engine is variant-agnostic and
only reads these descriptors.
"""
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Any, Callable, Dict, List, Sequence

from teampulse.models.schemas.analysis import AnalysisType, Opportunity, RiskFactor
from teampulse.models.schemas.stats import AggregatedStatistics
from teampulse.models.schemas.unified import UnifiedActivity, UnifiedMeeting, UnifiedMessage
from teampulse.services.analysis import prompts
from teampulse.services.intelligence import patterns
from teampulse.services.intelligence.aggregator import calculate_balance_score


@dataclass(frozen=True)
class AnalysisContext:
    """Inputs shared by every data preparation function."""
    messages: Sequence[UnifiedMessage]
    meetings: Sequence[UnifiedMeeting]
    activities: Sequence[UnifiedActivity]
    stats: AggregatedStatistics
    tz: tzinfo


@dataclass(frozen=True)
class AnalysisVariant:
    type: AnalysisType
    title: str
    system_prompt: str
    focus: List[str]
    summary_key: str
    default_summary: str
    temperature: float
    max_tokens: int
    prepare: Callable[[AnalysisContext], Dict[str, Any]]
    analysis_depth: int
    fallback_findings: List[str] = field(default_factory=list)
    fallback_recommendations: List[str] = field(default_factory=list)
    fallback_risk_factors: List[RiskFactor] = field(default_factory=list)
    fallback_opportunities: List[Opportunity] = field(default_factory=list)

    def user_prompt(self, prepared: Dict[str, Any]) -> str:
        return prompts.build_user_prompt(self.title, self.focus, self.summary_key, prepared)


# ============================================================================
# DATA PREPARATION
# ============================================================================

def prepare_comprehensive(ctx: AnalysisContext) -> Dict[str, Any]:
    stats = ctx.stats
    service_totals = {
        item["service"]: item["message_count"] + item["meeting_count"] + item["activity_count"]
        for item in patterns.service_breakdown(ctx.messages, ctx.meetings, ctx.activities)
    }
    return {
        "summary": {
            "total_messages": len(ctx.messages),
            "total_meetings": len(ctx.meetings),
            "total_activities": len(ctx.activities),
            "services_used": list(service_totals),
        },
        "service_breakdown": patterns.service_breakdown(ctx.messages, ctx.meetings, ctx.activities),
        "temporal_patterns": {
            "peak_hours": patterns.identify_peak_hours(ctx.messages, ctx.meetings, ctx.activities, tz=ctx.tz),
            "daily_distribution": patterns.daily_distribution(ctx.messages, ctx.meetings, ctx.activities, tz=ctx.tz),
            "weekend_activity": patterns.weekend_activity(ctx.messages, ctx.meetings, tz=ctx.tz),
        },
        "user_interactions": patterns.user_interactions(ctx.messages, ctx.meetings),
        "cross_service_metrics": {
            "service_distribution": service_totals,
            "balance_score": calculate_balance_score(list(service_totals.values())),
            "dominant_service": max(service_totals, key=service_totals.get) if service_totals else "none",
            "collaboration_score": stats.cross_service.collaboration_score,
        },
        "data_quality_score": stats.data_quality.overall_score,
    }


def prepare_productivity(ctx: AnalysisContext) -> Dict[str, Any]:
    meeting_stats = ctx.stats.meeting_stats
    return {
        "communication_metrics": {
            "average_response_time_minutes": patterns.average_response_time_minutes(ctx.messages),
            "message_to_meeting_ratio": len(ctx.messages) / max(len(ctx.meetings), 1),
            "peak_activity_hours": patterns.identify_peak_hours(ctx.messages, ctx.meetings, tz=ctx.tz),
            "platform_switch_ratio": patterns.platform_switch_ratio(ctx.messages),
        },
        "meeting_efficiency": {
            "average_duration_minutes": meeting_stats.average_duration,
            "participant_engagement": patterns.meeting_engagement(ctx.meetings),
            "meetings_per_day": patterns.meeting_frequency(ctx.meetings),
        },
        "workflow_patterns": {
            "task_completion": patterns.task_completion_patterns(ctx.messages),
            "collaboration_efficiency": patterns.collaboration_efficiency(ctx.messages, ctx.meetings),
        },
    }


def prepare_burnout(ctx: AnalysisContext) -> Dict[str, Any]:
    daily = patterns.daily_distribution(ctx.messages, ctx.meetings, ctx.activities, tz=ctx.tz)
    return {
        "workload_metrics": {
            "daily_activity_volume": {
                "by_day": daily,
                "average_daily": sum(daily.values()) / len(daily) if daily else 0.0,
            },
            "after_hours_activity": patterns.after_hours_activity(ctx.messages, ctx.meetings, tz=ctx.tz),
            "weekend_activity": patterns.weekend_activity(ctx.messages, ctx.meetings, tz=ctx.tz),
            "continuous_work_periods": patterns.continuous_work_periods(ctx.messages, ctx.meetings, ctx.activities),
        },
        "stress_indicators": {
            "response_time_variation": patterns.response_time_variation(ctx.messages),
            "meeting_density": {
                "meetings_per_day": patterns.meeting_frequency(ctx.meetings),
                "total_meeting_minutes": ctx.stats.meeting_stats.total_duration,
            },
            "multitasking_load": patterns.platform_switch_ratio(ctx.messages),
        },
        "engagement_trends": {
            "participation": patterns.participation_trend(ctx.messages, ctx.meetings),
        },
        "high_risk_users": patterns.high_risk_users(ctx.messages, ctx.meetings, tz=ctx.tz),
    }


def prepare_team_dynamics(ctx: AnalysisContext) -> Dict[str, Any]:
    return {
        "interaction_networks": {
            "communication_graph": patterns.communication_graph(ctx.messages, ctx.meetings),
            "meeting_participation": patterns.meeting_engagement(ctx.meetings),
            "cross_platform_interactions": patterns.user_interactions(ctx.messages, ctx.meetings),
        },
        "leadership_patterns": {
            "influence_metrics": patterns.influence_metrics(ctx.messages, ctx.meetings),
        },
        "collaboration_metrics": {
            "team_cohesion": patterns.team_cohesion(ctx.messages, ctx.meetings),
            "knowledge_sharing": patterns.knowledge_sharing(ctx.messages),
            "collaboration_score": ctx.stats.cross_service.collaboration_score,
        },
    }


def prepare_communication(ctx: AnalysisContext) -> Dict[str, Any]:
    message_stats = ctx.stats.message_stats
    return {
        "volume": {
            "total_messages": message_stats.total_messages,
            "messages_by_service": message_stats.messages_by_service,
            "average_message_length": message_stats.average_message_length,
            "most_active_channels": [c.model_dump() for c in message_stats.most_active_channels],
        },
        "rhythm": {
            "peak_hours": patterns.identify_peak_hours(ctx.messages, tz=ctx.tz),
            "average_response_time_minutes": patterns.average_response_time_minutes(ctx.messages),
            "response_time_variation": patterns.response_time_variation(ctx.messages),
            "platform_switch_ratio": patterns.platform_switch_ratio(ctx.messages),
        },
        "channel_engagement": patterns.channel_engagement(ctx.messages),
        "knowledge_sharing": patterns.knowledge_sharing(ctx.messages),
    }


# ============================================================================
# REGISTRY
# ============================================================================

VARIANTS: Dict[AnalysisType, AnalysisVariant] = {
    AnalysisType.COMPREHENSIVE: AnalysisVariant(
        type=AnalysisType.COMPREHENSIVE,
        title="Cross-service comprehensive analysis",
        system_prompt=prompts.COMPREHENSIVE_SYSTEM_PROMPT,
        focus=[
            "Usage of each service and cross-platform activity patterns",
            "Productivity impact of switching between services; peak activity times",
            "Burnout risk: after-hours and weekend patterns, early warning signs",
            "Team dynamics: cross-platform collaboration and cohesion",
            "Short-term actions (1-3 months) and longer-term strategy (3-12 months)",
        ],
        summary_key="summary",
        default_summary="Comprehensive analysis summary",
        temperature=0.3,
        max_tokens=2000,
        prepare=prepare_comprehensive,
        analysis_depth=90,
        fallback_findings=["Activity patterns were analyzed across the connected services"],
        fallback_recommendations=[
            "Keep collecting data to enable a more detailed analysis",
            "Review the analysis results on a regular schedule",
        ],
    ),
    AnalysisType.PRODUCTIVITY: AnalysisVariant(
        type=AnalysisType.PRODUCTIVITY,
        title="Productivity analysis",
        system_prompt=prompts.PRODUCTIVITY_SYSTEM_PROMPT,
        focus=[
            "Efficiency lost to switching between platforms",
            "Balance between meetings and asynchronous messages",
            "Task completion signals and collaboration efficiency",
        ],
        summary_key="productivitySummary",
        default_summary="Productivity analysis result",
        temperature=0.2,
        max_tokens=1500,
        prepare=prepare_productivity,
        analysis_depth=85,
        fallback_recommendations=[
            "Trial shorter default meeting lengths",
            "Agree on which platform is used for which kind of conversation",
        ],
    ),
    AnalysisType.BURNOUT: AnalysisVariant(
        type=AnalysisType.BURNOUT,
        title="Burnout risk analysis",
        system_prompt=prompts.BURNOUT_SYSTEM_PROMPT,
        focus=[
            "After-hours and weekend workload",
            "Long uninterrupted work periods and response-time volatility",
            "Declining participation and individuals at elevated risk",
        ],
        summary_key="burnoutSummary",
        default_summary="Burnout risk analysis result",
        temperature=0.3,
        max_tokens=1800,
        prepare=prepare_burnout,
        analysis_depth=88,
        fallback_recommendations=[
            "Limit notifications outside business hours",
            "Block focus time in shared calendars",
        ],
        fallback_risk_factors=[
            RiskFactor(
                factor="After-hours activity",
                severity="medium",
                impact="Erodes work-life balance",
                mitigation="Set notification quiet hours",
            )
        ],
    ),
    AnalysisType.TEAM_DYNAMICS: AnalysisVariant(
        type=AnalysisType.TEAM_DYNAMICS,
        title="Team dynamics analysis",
        system_prompt=prompts.TEAM_DYNAMICS_SYSTEM_PROMPT,
        focus=[
            "Who communicates with whom, across which platforms",
            "Distribution of influence and meeting ownership",
            "Cohesion and knowledge sharing",
        ],
        summary_key="teamDynamicsSummary",
        default_summary="Team dynamics analysis result",
        temperature=0.3,
        max_tokens=1600,
        prepare=prepare_team_dynamics,
        analysis_depth=87,
        fallback_recommendations=[
            "Encourage cross-platform team activities",
            "Formalize mentoring between experienced and newer members",
        ],
        fallback_opportunities=[
            Opportunity(
                area="Cross-platform collaboration",
                potential="Higher team efficiency",
                implementation="Design shared workflows across tools",
            )
        ],
    ),
    AnalysisType.COMMUNICATION: AnalysisVariant(
        type=AnalysisType.COMMUNICATION,
        title="Communication analysis",
        system_prompt=prompts.COMMUNICATION_SYSTEM_PROMPT,
        focus=[
            "Channel health: threads, reactions and shared resources",
            "Response times and their consistency",
            "Which platforms carry which conversations",
        ],
        summary_key="communicationSummary",
        default_summary="Communication analysis result",
        temperature=0.3,
        max_tokens=1500,
        prepare=prepare_communication,
        analysis_depth=80,
        fallback_recommendations=["Move long discussions into threads to keep channels readable"],
    ),
}


def get_variant(analysis_type: Any) -> AnalysisVariant:
    """Look up a variant by enum member or string value; ValueError if unknown."""
    try:
        return VARIANTS[AnalysisType(analysis_type)]
    except ValueError:
        raise ValueError(f"Unknown analysis type: {analysis_type}") from None
