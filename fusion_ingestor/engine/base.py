"""Capability interface for the proprietary fusion analysis engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EngineRequest(BaseModel):
    """Input handed to an engine for analysis."""

    model_config = ConfigDict(extra="forbid")

    data_type: str = Field(..., min_length=1)
    normalized_data: dict[str, Any] = Field(default_factory=dict)
    context: dict[str, Any] | None = None


class EngineResponse(BaseModel):
    """Engine output. Every score is optional so partial engines stay valid."""

    core_score: float | None = Field(default=None, ge=0, le=100)
    efficiency_index: float | None = Field(default=None, ge=0, le=100)
    risk_factor: float | None = Field(default=None, ge=0, le=1)
    recommendations: list[str] = Field(default_factory=list)
    reasoning: str | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)


class FusionEngine(ABC):
    """Analysis engine seam; implementations must not depend on hidden state."""

    name: str = "engine"

    @abstractmethod
    async def analyze(self, request: EngineRequest) -> EngineResponse:
        pass
