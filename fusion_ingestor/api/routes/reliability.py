"""Channel reliability table endpoints for the external self-test process."""

from __future__ import annotations

from typing import Any, Literal

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from ...exceptions import PersistenceError
from ...models.base import session_scope
from ...models.repository import ReliabilityRepository
from ...monitoring.metrics import record_persistence_failure
from ...schemas.requests import ReliabilityUpdate, ReliabilityView
from ..dependencies import require_api_key

router = APIRouter(prefix="/reliability", dependencies=[Depends(require_api_key)])


@router.get("")
def list_reliability() -> dict[str, Any]:
    try:
        with session_scope() as session:
            rows = ReliabilityRepository(session).list_all()
            channels = [ReliabilityView.model_validate(row).model_dump(mode="json") for row in rows]
    except SQLAlchemyError as exc:
        raise PersistenceError(f"Failed to read reliability table: {exc}") from exc
    return {"channels": channels}


@router.put("/{channel}")
def update_reliability(
    channel: Literal["slack", "email"],
    update: ReliabilityUpdate,
) -> dict[str, Any]:
    """Insert or replace the reliability figures for ``channel``."""

    try:
        with session_scope() as session:
            row = ReliabilityRepository(session).upsert(channel=channel, **update.model_dump())
            view = ReliabilityView.model_validate(row).model_dump(mode="json")
    except SQLAlchemyError as exc:
        record_persistence_failure("reliability")
        raise PersistenceError(f"Failed to store reliability figures: {exc}") from exc
    return {"success": True, "channel": view}
