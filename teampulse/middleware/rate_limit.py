"""
Rate Limiting Middleware
Per-IP limits on the analysis endpoints, each of which costs an LLM call
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from teampulse.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

# Applied to every endpoint that calls the LLM
ANALYSIS_LIMIT = settings.analysis_rate_limit
