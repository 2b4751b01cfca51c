"""Tests for the fusion engine seam and its implementations."""

from __future__ import annotations

import json

import httpx
import pytest

from fusion_ingestor.engine import (
    EngineRequest,
    NullFusionEngine,
    RemoteFusionEngine,
    build_fusion_engine,
)
from fusion_ingestor.engine.null import NULL_ENGINE_REASONING
from fusion_ingestor.exceptions import UpstreamError
from fusion_ingestor.utils.config import get_settings

REQUEST = EngineRequest(data_type="integration_metrics", normalized_data={"fusion_score": 88.7})


def test_factory_defaults_to_null_engine(settings) -> None:
    assert isinstance(build_fusion_engine(settings), NullFusionEngine)


def test_factory_builds_remote_engine_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FUSION_ENGINE_URL", "https://engine.example.com/")
    monkeypatch.setenv("FUSION_ENGINE_API_KEY", "engine-key")

    engine = build_fusion_engine(get_settings(reload=True))

    assert isinstance(engine, RemoteFusionEngine)
    assert engine.base_url == "https://engine.example.com"
    assert engine.api_key == "engine-key"


@pytest.mark.asyncio
async def test_null_engine_is_deterministic() -> None:
    engine = NullFusionEngine()

    first = await engine.analyze(REQUEST)
    second = await engine.analyze(EngineRequest(data_type="other"))

    assert first == second
    assert first.confidence == 0.0
    assert first.core_score is None
    assert first.recommendations == []
    assert first.reasoning == NULL_ENGINE_REASONING


@pytest.mark.asyncio
async def test_remote_engine_posts_request_and_validates_reply() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "core_score": 81.5,
                "efficiency_index": 64.0,
                "risk_factor": 0.2,
                "recommendations": ["Review Slack retry policy"],
                "reasoning": "Stable",
                "confidence": 0.7,
            },
        )

    engine = RemoteFusionEngine(
        "https://engine.example.com", api_key="secret", transport=httpx.MockTransport(handler)
    )

    result = await engine.analyze(REQUEST)

    assert captured["url"] == "https://engine.example.com/analyze"
    assert captured["auth"] == "Bearer secret"
    assert captured["body"]["data_type"] == "integration_metrics"
    assert result.core_score == 81.5
    assert result.recommendations == ["Review Slack retry policy"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(502, json={"error": "bad gateway"}),
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"core_score": 150}),
    ],
)
async def test_remote_engine_failures_raise_upstream_error(response: httpx.Response) -> None:
    engine = RemoteFusionEngine(
        "https://engine.example.com", transport=httpx.MockTransport(lambda request: response)
    )

    with pytest.raises(UpstreamError):
        await engine.analyze(REQUEST)


@pytest.mark.asyncio
async def test_remote_engine_connection_error_raises_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    engine = RemoteFusionEngine("https://engine.example.com", transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamError, match="Engine request failed"):
        await engine.analyze(REQUEST)
