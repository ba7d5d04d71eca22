"""
AI safety stages package.

Rate limiting, content filtering and output sanitization components used by
the SafeQuery pipeline. Each stage can also be used on its own.
"""

# Content filtering module
from .content_filter import (
    ContentFilter,
    FilterDecision,
    emergency_content_block,
    get_content_filter,
    quick_content_check,
)

# Harmful pattern detection module
from .harmful_content import (
    HARMFUL_PATTERNS,
    PROMPT_INJECTION_PATTERNS,
    HarmfulPattern,
    detect_harmful_content,
    detect_prompt_injection,
    find_harmful_pattern,
)

# IP rate limiting module
from .ip_rate_limiter import IPCheckResult, IPLimiterStore, IPRateLimiter, RateLimitStatus, make_ip_key

# Output sanitization module
from .output_sanitizer import FILTERED_SENTINEL, SafeHtml, SanitizerOptions, safe_html, sanitize_output

# User rate limiting module
from .rate_limiter import (
    QuotaInfo,
    UserRateLimiter,
    check_rate_limit,
    get_rate_limiter,
    make_user_key,
    reset_rate_limit,
)
from .window_counter import HOUR_MS, MINUTE_MS, TimeWindowedCounter, system_clock

__all__ = [
    # Windowed counting
    "HOUR_MS",
    "MINUTE_MS",
    "TimeWindowedCounter",
    "system_clock",
    # User rate limiting
    "QuotaInfo",
    "UserRateLimiter",
    "make_user_key",
    "get_rate_limiter",
    "check_rate_limit",
    "reset_rate_limit",
    # IP rate limiting
    "IPCheckResult",
    "IPLimiterStore",
    "IPRateLimiter",
    "RateLimitStatus",
    "make_ip_key",
    # Harmful patterns
    "HARMFUL_PATTERNS",
    "PROMPT_INJECTION_PATTERNS",
    "HarmfulPattern",
    "detect_harmful_content",
    "detect_prompt_injection",
    "find_harmful_pattern",
    # Content filtering
    "ContentFilter",
    "FilterDecision",
    "get_content_filter",
    "quick_content_check",
    "emergency_content_block",
    # Output sanitization
    "FILTERED_SENTINEL",
    "SafeHtml",
    "SanitizerOptions",
    "safe_html",
    "sanitize_output",
]
