"""
LLM Client
Thin seam between the analysis engine and the chat completion provider

The engine only depends on the LLMClient protocol so tests can inject a
deterministic fake. OpenAIChatClient is the production implementation and
translates provider exceptions into AnalysisRequestError with a retryable
flag.
"""
import logging
from typing import Optional, Protocol, runtime_checkable

import httpx
import openai
from openai import AsyncOpenAI

from teampulse.core.errors import AnalysisRequestError

logger = logging.getLogger(__name__)


@runtime_checkable
class LLMClient(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Return the assistant's text for one system + user exchange."""
        ...


class OpenAIChatClient:
    """
    Chat completions over an OpenAI-compatible endpoint.

    Retries are disabled on the SDK: the engine owns the retry policy so that
    transient failures end in a fallback result instead of a long stall.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=http_client,
            timeout=timeout,
            max_retries=0,
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as e:
            raise AnalysisRequestError(f"LLM request timed out: {e}", retryable=True) from e
        except openai.APIConnectionError as e:
            raise AnalysisRequestError(f"LLM endpoint unreachable: {e}", retryable=True) from e
        except openai.RateLimitError as e:
            raise AnalysisRequestError("LLM rate limit exceeded", retryable=True, status_code=429) from e
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AnalysisRequestError(
                "LLM endpoint rejected the credentials", retryable=False, status_code=e.status_code
            ) from e
        except openai.APIStatusError as e:
            retryable = e.status_code >= 500
            raise AnalysisRequestError(
                f"LLM request failed with status {e.status_code}",
                retryable=retryable,
                status_code=e.status_code,
            ) from e

        if not response.choices:
            logger.warning("⚠️  LLM returned no choices")
            return ""

        content = response.choices[0].message.content or ""
        logger.debug(f"LLM response: {len(content)} chars (model={self.model})")
        return content.strip()
