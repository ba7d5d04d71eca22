from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from ai_safety.safe_query import SafeQueryPipeline
from ai_safety.stages.content_filter import ContentFilter
from ai_safety.stages.output_sanitizer import SanitizerOptions, sanitize_output

from ..dependencies import get_content_filter, get_pipeline
from ..schemas import FilterDecisionResponse, FilterRequest, SanitizeRequest, SanitizeResponse

router = APIRouter(prefix="/content", tags=["content"])


@router.post("/filter", response_model=FilterDecisionResponse)
def filter_content(
    body: FilterRequest,
    content_filter: Annotated[ContentFilter, Depends(get_content_filter)],
) -> FilterDecisionResponse:
    """Score text against the PG-13 content filter."""
    decision = content_filter.filter_content(body.text)
    return FilterDecisionResponse(**decision.to_dict())


@router.post("/sanitize", response_model=SanitizeResponse)
def sanitize(
    body: SanitizeRequest,
    pipeline: Annotated[SafeQueryPipeline, Depends(get_pipeline)],
) -> SanitizeResponse:
    """Sanitize text for display; max_length defaults to the configured output limit."""
    options = SanitizerOptions(
        max_length=body.max_length or pipeline.config.max_output_length,
        check_for_harmful_content=body.check_for_harmful_content,
    )
    return SanitizeResponse(html=sanitize_output(body.text, options))
