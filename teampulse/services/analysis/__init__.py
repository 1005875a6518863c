"""
Analysis
LLM-backed team health analysis with statistical fallback
"""
from teampulse.services.analysis.batch import DEFAULT_BATCH_ANALYSES, run_batch_analysis
from teampulse.services.analysis.engine import AnalysisEngine
from teampulse.services.analysis.llm_client import LLMClient, OpenAIChatClient
from teampulse.services.analysis.variants import VARIANTS, AnalysisVariant, get_variant

__all__ = [
    "AnalysisEngine",
    "AnalysisVariant",
    "DEFAULT_BATCH_ANALYSES",
    "LLMClient",
    "OpenAIChatClient",
    "VARIANTS",
    "get_variant",
    "run_batch_analysis",
]
