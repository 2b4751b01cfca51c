"""Deterministic stand-in used when no engine is configured."""

from __future__ import annotations

from .base import EngineRequest, EngineResponse, FusionEngine

NULL_ENGINE_REASONING = (
    "No analysis engine is configured. Scores and recommendations are unavailable; "
    "this response carries no analytical content."
)


class NullFusionEngine(FusionEngine):
    """Returns the same documented response for every request."""

    name = "null"

    async def analyze(self, request: EngineRequest) -> EngineResponse:
        return EngineResponse(
            core_score=None,
            efficiency_index=None,
            risk_factor=None,
            recommendations=[],
            reasoning=NULL_ENGINE_REASONING,
            confidence=0.0,
        )
