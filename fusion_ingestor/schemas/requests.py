"""Pydantic models for API request bodies and serialized rows."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MetricSampleInput(BaseModel):
    """One operational sample reported for an integration."""

    model_config = ConfigDict(extra="ignore")

    integration_name: str = Field(..., min_length=1, max_length=128)
    success_count: int = Field(..., ge=0)
    failure_count: int = Field(..., ge=0)
    avg_response_time_ms: float = Field(..., ge=0)
    data_quality_score: float = Field(..., ge=0, le=100)
    uptime_percentage: float = Field(..., ge=0, le=100)

    @field_validator("integration_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("integration_name must not be blank")
        return stripped


class FusionEfficiencyRequest(BaseModel):
    """Batch of samples to score."""

    metrics: list[MetricSampleInput] = Field(..., min_length=1)


class ReliabilityUpdate(BaseModel):
    """Channel reliability figures reported by the self-test process."""

    model_config = ConfigDict(extra="forbid")

    avg_latency_ms: int = Field(..., ge=0)
    failure_rate: float = Field(..., ge=0, le=1)
    recommended_retry_ms: int = Field(..., ge=500, le=10000)
    confidence_score: float = Field(..., ge=0, le=1)


class ReliabilityView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    channel: Literal["slack", "email"]
    avg_latency_ms: int
    failure_rate: float
    recommended_retry_ms: int
    confidence_score: float
    last_updated: datetime
