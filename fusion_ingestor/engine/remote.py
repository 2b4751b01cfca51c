"""Engine implementation that delegates to an external analysis service over HTTP."""

from __future__ import annotations

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import UpstreamError
from ..utils.logging import setup_logger
from .base import EngineRequest, EngineResponse, FusionEngine

logger = setup_logger(__name__, context={"service_name": "engine"})


class RemoteFusionEngine(FusionEngine):
    """POSTs requests to ``{base_url}/analyze`` and validates the reply."""

    name = "remote"

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def analyze(self, request: EngineRequest) -> EngineResponse:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/analyze",
                    json=request.model_dump(mode="json"),
                    headers=self._headers(),
                )
            except httpx.HTTPError as exc:
                logger.error("Engine request failed: %s", exc, extra={"status": "error"})
                raise UpstreamError(f"Engine request failed: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamError(
                f"Engine returned {response.status_code}", status_code=response.status_code
            )

        try:
            return EngineResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as exc:
            raise UpstreamError(f"Engine returned an invalid response: {exc}") from exc
