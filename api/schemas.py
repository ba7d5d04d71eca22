from __future__ import annotations

from pydantic import BaseModel, Field

# -----------------------
# Common types
# -----------------------


class Quota(BaseModel):
    requests_remaining_minute: int = Field(..., ge=0)
    requests_remaining_hour: int = Field(..., ge=0)


class HealthResponse(BaseModel):
    status: str = "ok"


# -----------------------
# Query DTOs
# -----------------------


class QueryRequest(BaseModel):
    # Length and emptiness are enforced by the pipeline so they map to 400s
    prompt: str = Field(..., description="User prompt")
    user_id: str = Field(default="anonymous", min_length=1, max_length=128)
    model_id: str = Field(default="default", min_length=1, max_length=128)
    max_tokens: int = Field(default=1000, ge=1, le=32_000)


class QueryResponse(BaseModel):
    allowed: bool
    response: str
    quota: Quota | None = None


class QuotaResponse(BaseModel):
    user_id: str
    model_id: str
    quota: Quota


# -----------------------
# Content DTOs
# -----------------------


class FilterRequest(BaseModel):
    text: str


class FilterDecisionResponse(BaseModel):
    allowed: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    reason: str | None = None
    suggestions: list[str] = Field(default_factory=list)


class SanitizeRequest(BaseModel):
    text: str
    max_length: int | None = Field(default=None, ge=1)
    check_for_harmful_content: bool = True


class SanitizeResponse(BaseModel):
    html: str


# -----------------------
# Admin DTOs
# -----------------------


class UnbanRequest(BaseModel):
    ip_address: str = Field(..., min_length=1, max_length=256)
    user_id: str | None = Field(default=None, max_length=128)


class AdminResponse(BaseModel):
    status: str = "ok"
    key: str | None = None
