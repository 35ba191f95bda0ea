"""Pydantic response models."""

from typing import Optional

from pydantic import BaseModel, Field


class DependencyHealth(BaseModel):
    """Health status for a dependency."""

    status: str = Field(..., description="Dependency status (ok/error)")
    latency_ms: Optional[float] = Field(None, description="Response latency in ms")
    error: Optional[str] = Field(None, description="Error message if unhealthy")


class HealthResponse(BaseModel):
    """Response for health endpoint."""

    status: str = Field(..., description="Overall service status")
    database: DependencyHealth = Field(..., description="Primary database health")
    notifications_database: DependencyHealth = Field(
        ..., description="Notification database health"
    )
    version: str = Field(..., description="Service version")


class ErrorResponse(BaseModel):
    """Structured error body returned for typed domain errors."""

    error: str = Field(..., description="Error kind")
    detail: str = Field(..., description="Human-readable message")
    retryable: bool = Field(False, description="Whether retrying unchanged can succeed")
