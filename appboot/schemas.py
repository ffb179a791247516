from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    code: str = Field(examples=["NOT_FOUND"])
    message: str = Field(examples=["Not Found"])
    request_id: Optional[str] = Field(default=None, examples=["c752262e-cf42-4075-917b-95ffcb5ceeeb"])
    details: Any = None


class HealthResponse(BaseModel):
    status: str = Field(examples=["alive"])


class InfoResponse(BaseModel):
    appName: str
    version: str
