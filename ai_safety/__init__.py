"""
AI Safety Package - Guards around AI model calls
Handles rate limiting, IP bans, content filtering and output sanitization
"""

from .config import (
    ConfigurationError,
    FilterConfig,
    IPLimitConfig,
    SafeQueryError,
    SafetyConfig,
    UserLimitConfig,
)
from .safe_query import QueryResult, QueryStatus, SafeQueryPipeline, UpstreamError, simulate_response
from .stages import (
    ContentFilter,
    FilterDecision,
    IPLimiterStore,
    IPRateLimiter,
    QuotaInfo,
    RateLimitStatus,
    SafeHtml,
    SanitizerOptions,
    UserRateLimiter,
    detect_harmful_content,
    detect_prompt_injection,
    safe_html,
    sanitize_output,
)

__all__ = [
    "SafeQueryPipeline",
    "QueryResult",
    "QueryStatus",
    "UpstreamError",
    "simulate_response",
    "SafeQueryError",
    "ConfigurationError",
    "SafetyConfig",
    "UserLimitConfig",
    "IPLimitConfig",
    "FilterConfig",
    "UserRateLimiter",
    "QuotaInfo",
    "IPRateLimiter",
    "IPLimiterStore",
    "RateLimitStatus",
    "ContentFilter",
    "FilterDecision",
    "SanitizerOptions",
    "SafeHtml",
    "safe_html",
    "sanitize_output",
    "detect_harmful_content",
    "detect_prompt_injection",
]
