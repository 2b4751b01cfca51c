"""Fusion scoring and learning-state endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ...schemas.requests import FusionEfficiencyRequest
from ...services.fusion_service import FusionMetricsService
from ...services.learning_service import LearningStateService
from ...utils.config import GlobalSettings
from ..dependencies import AuthenticatedUser, require_user, settings_dependency

router = APIRouter(prefix="/fusion")


@router.post("/efficiency")
def calculate_efficiency(
    request: FusionEfficiencyRequest,
    user: AuthenticatedUser = Depends(require_user),
    settings: GlobalSettings = Depends(settings_dependency),
) -> dict[str, Any]:
    """Score a batch of integration samples for the calling tenant."""

    return FusionMetricsService(settings).process_batch(user.user_id, request.metrics)


@router.get("/learning-state")
def learning_state(
    user: AuthenticatedUser = Depends(require_user),
    settings: GlobalSettings = Depends(settings_dependency),
) -> dict[str, Any]:
    return LearningStateService(settings).learning_state(user.user_id)
