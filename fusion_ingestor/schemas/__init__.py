"""Request and response schemas."""

from .requests import (
    FusionEfficiencyRequest,
    MetricSampleInput,
    ReliabilityUpdate,
    ReliabilityView,
)

__all__ = [
    "FusionEfficiencyRequest",
    "MetricSampleInput",
    "ReliabilityUpdate",
    "ReliabilityView",
]
