"""Endpoints that trigger scheduled poll cycles on demand."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ...connectors import get_poller, list_pollers
from ...utils.config import get_settings
from ..dependencies import require_api_key

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/poll/providers")
async def providers() -> dict[str, Any]:
    return {"providers": sorted(list_pollers())}


@router.post("/poll/{provider}")
async def run_poll(provider: str) -> dict[str, Any]:
    """Run one poll cycle for ``provider`` and return its summary."""

    poller = get_poller(provider)(get_settings())
    return await poller.run_cycle()
