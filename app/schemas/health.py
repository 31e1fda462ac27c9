"""Pydantic schemas for health check responses."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response body for the health check endpoint."""

    status: Literal["ok"] = Field(default="ok", description="Service status")
    environment: str = Field(description="Current app environment (e.g. dev, prod)")
    storage: Literal["connected", "disconnected"] = Field(
        description="Key-value store connectivity",
    )
    active_sessions: int = Field(ge=0, description="Sessions currently authenticated")
