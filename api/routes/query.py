"""AI query routes.

POST /ai/query runs a prompt through the SafeQuery pipeline; denials are
raised as SafetyDenied and rendered by the error handlers.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from ai_safety.safe_query import SafeQueryPipeline
from utils.asgi import client_ip

from ..dependencies import get_pipeline
from ..errors import SafetyDenied
from ..schemas import Quota, QueryRequest, QueryResponse, QuotaResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])

PipelineDep = Annotated[SafeQueryPipeline, Depends(get_pipeline)]


# Sync endpoints run in the threadpool; the limiters are lock-protected
@router.post("/query", response_model=QueryResponse)
def query(body: QueryRequest, request: Request, pipeline: PipelineDep) -> QueryResponse:
    result = pipeline.run(
        body.prompt,
        user_id=body.user_id,
        model_id=body.model_id,
        ip_address=client_ip(request.scope),
        max_tokens=body.max_tokens,
    )
    if not result.allowed:
        raise SafetyDenied(result)

    return QueryResponse(
        allowed=True,
        response=result.response or "",
        quota=Quota(**result.quota.to_dict()) if result.quota else None,
    )


@router.get("/quota", response_model=QuotaResponse)
def quota(
    pipeline: PipelineDep,
    user_id: Annotated[str, Query(min_length=1, max_length=128)] = "anonymous",
    model_id: Annotated[str, Query(min_length=1, max_length=128)] = "default",
) -> QuotaResponse:
    remaining = pipeline.get_remaining_quota(user_id, model_id)
    return QuotaResponse(user_id=user_id, model_id=model_id, quota=Quota(**remaining.to_dict()))
