from __future__ import annotations

from fastapi import APIRouter

from ..schemas import HealthResponse

router = APIRouter()


@router.get("/health", tags=["system"], response_model=HealthResponse)
async def health() -> HealthResponse:
    """
    GET /health: liveness probe. Always {"status": "ok"} while the process
    is serving requests.
    """
    return HealthResponse()
