"""
Dependency Injection
Provides global clients and services to routes via FastAPI dependencies
"""
from typing import Optional
import logging
import httpx

from teampulse.core.config import settings
from teampulse.services.analysis.engine import AnalysisEngine
from teampulse.services.analysis.llm_client import LLMClient, OpenAIChatClient

logger = logging.getLogger(__name__)

# ============================================================================
# GLOBAL CLIENTS (initialized at startup)
# ============================================================================

http_client: Optional[httpx.AsyncClient] = None
llm_client: Optional[LLMClient] = None
analysis_engine: Optional[AnalysisEngine] = None


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================

async def get_http_client() -> httpx.AsyncClient:
    """Get global HTTP client."""
    if not http_client:
        raise RuntimeError("HTTP client not initialized")
    return http_client


async def get_llm_client() -> Optional[LLMClient]:
    """Get LLM client. None when OPENAI_API_KEY is not configured."""
    return llm_client


async def get_analysis_engine() -> AnalysisEngine:
    """Get analysis engine (routes surface a missing LLM client as 502)."""
    if not analysis_engine:
        raise RuntimeError("Analysis engine not initialized")
    return analysis_engine


# ============================================================================
# STARTUP/SHUTDOWN
# ============================================================================

async def initialize_clients():
    """Initialize all global clients at startup."""
    global http_client, llm_client, analysis_engine

    # HTTP client (shared by the OpenAI SDK)
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.llm_request_timeout),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20)
    )

    if settings.openai_api_key:
        llm_client = OpenAIChatClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            http_client=http_client,
            timeout=settings.llm_request_timeout,
        )
        logger.info(f"✅ LLM client configured (model={settings.openai_model})")
    else:
        llm_client = None
        logger.warning("⚠️  No OPENAI_API_KEY: analysis endpoints will return 502")

    analysis_engine = AnalysisEngine(llm_client)
    logger.info(
        f"✅ Analysis engine ready (retries={analysis_engine.max_retries}, "
        f"timeout={analysis_engine.timeout}s)"
    )


async def shutdown_clients():
    """Cleanup clients at shutdown."""
    global http_client, llm_client, analysis_engine

    # Close HTTP client to prevent socket exhaustion
    if http_client:
        await http_client.aclose()
        logger.info("✅ HTTP client closed")

    http_client = None
    llm_client = None
    analysis_engine = None
