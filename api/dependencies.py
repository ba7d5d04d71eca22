"""Request-scoped accessors for objects created at application startup."""

from __future__ import annotations

from fastapi import Request

from ai_safety.safe_query import SafeQueryPipeline
from ai_safety.stages.content_filter import ContentFilter
from ai_safety.stages.ip_rate_limiter import IPRateLimiter


def get_pipeline(request: Request) -> SafeQueryPipeline:
    return request.app.state.pipeline


def get_content_filter(request: Request) -> ContentFilter:
    return request.app.state.content_filter


def get_ip_limiter(request: Request) -> IPRateLimiter:
    return request.app.state.pipeline.ip_limiter
