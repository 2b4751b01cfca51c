"""Dashboard system status endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ...services.system_status import SystemStatusService
from ...utils.config import GlobalSettings
from ..dependencies import AuthenticatedUser, require_user, settings_dependency

router = APIRouter(prefix="/system")


@router.get("/status")
def system_status(
    user: AuthenticatedUser = Depends(require_user),
    settings: GlobalSettings = Depends(settings_dependency),
) -> dict[str, Any]:
    return SystemStatusService(settings).status(user.user_id)
