"""Fusion engine seam and the implementation factory."""

from ..utils.config import GlobalSettings
from .base import EngineRequest, EngineResponse, FusionEngine
from .null import NullFusionEngine
from .remote import RemoteFusionEngine


def build_fusion_engine(settings: GlobalSettings) -> FusionEngine:
    """Return the remote engine when an engine URL is configured, else the null engine."""

    if settings.engine_url:
        return RemoteFusionEngine(
            settings.engine_url,
            api_key=settings.engine_api_key,
            timeout=settings.engine_timeout_seconds,
        )
    return NullFusionEngine()


__all__ = [
    "EngineRequest",
    "EngineResponse",
    "FusionEngine",
    "NullFusionEngine",
    "RemoteFusionEngine",
    "build_fusion_engine",
]
