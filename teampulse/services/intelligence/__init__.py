"""
Intelligence
Statistics and behavioral metrics over unified records
"""
from teampulse.services.intelligence.aggregator import (
    aggregate,
    analyze_data_quality,
    calculate_balance_score,
    calculate_cross_service_analysis,
    calculate_meeting_stats,
    calculate_message_stats,
    round_half_up,
)

__all__ = [
    "aggregate",
    "analyze_data_quality",
    "calculate_balance_score",
    "calculate_cross_service_analysis",
    "calculate_meeting_stats",
    "calculate_message_stats",
    "round_half_up",
]
