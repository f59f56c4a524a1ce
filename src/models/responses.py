from typing import Any
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness probe reply, served without authentication"""

    status: str = "ok"
    timestamp: int = Field(..., description="Server time in epoch milliseconds")


class ResultEnvelope(BaseModel):
    result: Any = None


class ErrorEnvelope(BaseModel):
    error: str
