"""Inbound vendor webhook endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ...exceptions import FusionIngestorError
from ...utils.config import get_settings
from ...utils.logging import setup_logger
from ...webhooks import WebhookRequest, get_receiver

logger = setup_logger(__name__, context={"service_name": "WebhookAPI"})
router = APIRouter()


@router.post("/{service_name}/events")
async def receive_events(service_name: str, request: Request) -> JSONResponse:
    """
    Accept one vendor delivery.

    The raw body is passed through untouched because the signature covers
    the exact bytes the vendor sent.
    """
    receiver = get_receiver(service_name)(get_settings())
    delivery = WebhookRequest(body=await request.body(), headers=dict(request.headers))

    try:
        result = await run_in_threadpool(receiver.handle, delivery)
    except FusionIngestorError:
        raise
    except Exception:
        logger.exception(
            "Unexpected error while handling webhook",
            extra={"service_name": service_name, "status": "error"},
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return JSONResponse(status_code=result.status_code, content=result.body)
