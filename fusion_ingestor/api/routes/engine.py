"""Analysis engine endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ...engine import EngineRequest, build_fusion_engine
from ...utils.config import GlobalSettings
from ..dependencies import AuthenticatedUser, require_user, settings_dependency

router = APIRouter(prefix="/engine")


@router.post("/analyze")
async def analyze(
    request: EngineRequest,
    user: AuthenticatedUser = Depends(require_user),
    settings: GlobalSettings = Depends(settings_dependency),
) -> dict[str, Any]:
    engine = build_fusion_engine(settings)
    result = await engine.analyze(request)
    return {"success": True, "engine": engine.name, "result": result.model_dump(mode="json")}
