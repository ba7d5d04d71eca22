from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from ai_safety.stages.ip_rate_limiter import IPRateLimiter, make_ip_key
from utils.log_sanitizer import sanitize_for_log

from ..dependencies import get_ip_limiter
from ..schemas import AdminResponse, UnbanRequest

logger = logging.getLogger(__name__)

# Guarded by AdminAuthMiddleware when SAFEQUERY_ADMIN_TOKEN is set
router = APIRouter(prefix="/admin", tags=["admin"])

LimiterDep = Annotated[IPRateLimiter, Depends(get_ip_limiter)]


@router.post("/unban", response_model=AdminResponse)
def unban(body: UnbanRequest, limiter: LimiterDep) -> AdminResponse:
    """Lift the ban and violation history for an IP (optionally scoped to a user)."""
    limiter.unban(body.ip_address, body.user_id)
    key = make_ip_key(body.ip_address, body.user_id)
    logger.info("Admin unban for %s", sanitize_for_log(key))
    return AdminResponse(key=key)


@router.post("/reset", response_model=AdminResponse)
def reset(limiter: LimiterDep) -> AdminResponse:
    """Clear all IP limiter state: event logs, violations and bans."""
    limiter.reset()
    logger.warning("Admin reset of IP limiter state")
    return AdminResponse()
