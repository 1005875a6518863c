"""
Analysis Engine

Runs one analysis variant end to end:

    prepare -> compose prompt -> LLM call -> parse -> AnalysisResult

The LLM call is the only I/O. Whatever the model returns, the engine hands
back a valid AnalysisResult: unusable output, transient provider failures,
timeouts and cancellation all end in a fallback built from local statistics.
Only an endpoint that cannot be used at all (no client, bad credentials,
rejected request) raises AnalysisRequestError.
"""
import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone, tzinfo
from typing import Any, Optional, Sequence

import httpx
import openai

from teampulse.core.config import settings
from teampulse.core.errors import AnalysisParseError, AnalysisRequestError
from teampulse.models.schemas.analysis import (
    AnalysisMetrics,
    AnalysisResult,
    AnalysisTimeRange,
    DataSource,
)
from teampulse.models.schemas.stats import AggregatedStatistics
from teampulse.models.schemas.unified import (
    SERVICE_ORDER,
    UnifiedActivity,
    UnifiedMeeting,
    UnifiedMessage,
)
from teampulse.services.analysis.fallback import build_fallback_insights
from teampulse.services.analysis.llm_client import LLMClient
from teampulse.services.analysis.parsing import build_insights, clamp_score, parse_response
from teampulse.services.analysis.variants import AnalysisContext, AnalysisVariant, get_variant
from teampulse.services.intelligence.aggregator import aggregate, analysis_zone

logger = logging.getLogger(__name__)


class AnalysisCancelled(Exception):
    """The caller's cancel event fired while the LLM request was in flight."""


def build_data_source(
    messages: Sequence[UnifiedMessage],
    meetings: Sequence[UnifiedMeeting],
    activities: Sequence[UnifiedActivity],
) -> DataSource:
    """Describe exactly what went into the analysis."""
    present = {r.service for r in [*messages, *meetings, *activities]}
    points = [m.timestamp for m in messages] + [m.start_time for m in meetings] + [a.timestamp for a in activities]
    return DataSource(
        services=[s for s in SERVICE_ORDER if s in present],
        message_count=len(messages),
        meeting_count=len(meetings),
        time_range=AnalysisTimeRange(
            start=min(points) if points else None,
            end=max(points) if points else None,
        ),
    )


class AnalysisEngine:
    """
    Orchestrates analysis variants over an injected LLM client.

    Retry, timeout and scoring defaults come from settings and can be
    overridden per engine.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient],
        max_retries: Optional[int] = None,
        initial_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.llm_client = llm_client
        self.max_retries = settings.llm_max_retries if max_retries is None else max_retries
        self.initial_delay = settings.llm_retry_initial_delay if initial_delay is None else initial_delay
        self.timeout = settings.llm_request_timeout if timeout is None else timeout
        self.tz = tz

    async def run(
        self,
        analysis_type: Any,
        messages: Sequence[UnifiedMessage],
        meetings: Sequence[UnifiedMeeting],
        activities: Sequence[UnifiedActivity] = (),
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AnalysisResult:
        """
        Run one analysis variant.

        Args:
            analysis_type: AnalysisType member or its string value
            messages, meetings, activities: Unified records to analyze
            timeout: Per-call override of llm_request_timeout (seconds)
            cancel_event: When set during the LLM call, the call is abandoned
                and a fallback result is returned

        Raises:
            ValueError: Unknown analysis type
            AnalysisRequestError: The LLM endpoint cannot be used at all
        """
        variant = get_variant(analysis_type)
        if self.llm_client is None:
            raise AnalysisRequestError("No LLM client configured", retryable=False)

        start = time.time()
        zone = analysis_zone(self.tz)
        stats = aggregate(messages, meetings, tz=zone)
        data_source = build_data_source(messages, meetings, activities)

        prepared = variant.prepare(AnalysisContext(messages, meetings, activities, stats, zone))
        user_prompt = variant.user_prompt(prepared)

        logger.info(
            f"🤖 Running {variant.type.value} analysis "
            f"({len(messages)} messages, {len(meetings)} meetings, {len(activities)} activities)"
        )

        try:
            text = await self._complete_with_retries(
                variant, user_prompt, self.timeout if timeout is None else timeout, cancel_event
            )
        except AnalysisCancelled:
            logger.info(f"⏹️  {variant.type.value} analysis cancelled, returning fallback")
            return self._fallback(variant, stats, data_source)
        except AnalysisRequestError as e:
            if not e.retryable:
                logger.error(f"❌ {variant.type.value} analysis failed: {e}")
                raise
            logger.warning(f"⚠️  {variant.type.value} analysis gave up after transient errors: {e}")
            return self._fallback(variant, stats, data_source)

        try:
            payload, raw = parse_response(text)
        except AnalysisParseError as e:
            logger.warning(f"⚠️  Unusable {variant.type.value} response, returning fallback: {e}")
            return self._fallback(variant, stats, data_source)

        result = AnalysisResult(
            id=f"{variant.type.value}_{uuid.uuid4().hex[:12]}",
            type=variant.type,
            insights=build_insights(payload, raw, variant.summary_key, variant.default_summary),
            metrics=AnalysisMetrics(
                confidence_score=clamp_score(payload.confidence_score, settings.default_confidence_score),
                data_quality_score=stats.data_quality.overall_score,
                analysis_depth=clamp_score(payload.analysis_depth, variant.analysis_depth),
            ),
            generated_at=datetime.now(timezone.utc),
            data_source=data_source,
        )

        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"✅ {variant.type.value} analysis complete in {duration_ms}ms")
        return result

    # ========================================================================
    # LLM CALL
    # ========================================================================

    async def _complete_with_retries(
        self,
        variant: AnalysisVariant,
        user_prompt: str,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> str:
        """Exponential backoff over transient AnalysisRequestErrors only."""
        delay = self.initial_delay
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                return await self._complete_once(variant, user_prompt, timeout, cancel_event)
            except AnalysisRequestError as e:
                if not e.retryable or attempt == attempts - 1:
                    raise
                logger.warning(f"LLM error ({e.message}), retrying in {delay}s (attempt {attempt + 1}/{attempts})")

            await asyncio.sleep(delay)
            delay *= 2

        raise AnalysisRequestError("LLM retries exhausted", retryable=True)

    async def _complete_once(
        self,
        variant: AnalysisVariant,
        user_prompt: str,
        timeout: Optional[float],
        cancel_event: Optional[asyncio.Event],
    ) -> str:
        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelled()

        request = asyncio.ensure_future(asyncio.wait_for(
            self.llm_client.complete(variant.system_prompt, user_prompt, variant.temperature, variant.max_tokens),
            timeout,
        ))
        try:
            if cancel_event is not None:
                waiter = asyncio.ensure_future(cancel_event.wait())
                try:
                    await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    waiter.cancel()
                if not request.done():
                    request.cancel()
                    await asyncio.gather(request, return_exceptions=True)
                    raise AnalysisCancelled()
            return await request
        except asyncio.TimeoutError as e:
            raise AnalysisRequestError(f"LLM request timed out after {timeout}s", retryable=True) from e
        except (ConnectionError, OSError, httpx.TransportError, openai.APIConnectionError) as e:
            # Clients that skip OpenAIChatClient error mapping still count as transient
            raise AnalysisRequestError(f"LLM connection failed: {e}", retryable=True) from e
        except (AnalysisRequestError, AnalysisCancelled, asyncio.CancelledError):
            raise
        except Exception as e:
            raise AnalysisRequestError(f"LLM client error: {e}", retryable=False) from e
        finally:
            if not request.done():
                request.cancel()

    def _fallback(
        self,
        variant: AnalysisVariant,
        stats: AggregatedStatistics,
        data_source: DataSource,
    ) -> AnalysisResult:
        return AnalysisResult(
            id=f"{variant.type.value}_fallback_{uuid.uuid4().hex[:12]}",
            type=variant.type,
            insights=build_fallback_insights(variant, stats),
            metrics=AnalysisMetrics(
                confidence_score=settings.fallback_confidence_score,
                data_quality_score=stats.data_quality.overall_score,
                analysis_depth=settings.fallback_analysis_depth,
            ),
            generated_at=datetime.now(timezone.utc),
            data_source=data_source,
            is_fallback=True,
        )
