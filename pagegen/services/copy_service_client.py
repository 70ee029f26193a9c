from __future__ import annotations

from typing import Any

import httpx

from pagegen.config import settings
from pagegen.schemas import ProductInput


class CopyServiceError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


class CopyServiceClient:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.copy_service_base_url).rstrip("/")
        self._timeout = float(timeout_seconds or settings.COPY_SERVICE_TIMEOUT_SECONDS)
        self._transport = transport

    async def generate_copy(self, *, prompt: str, product: ProductInput | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"prompt": prompt}
        if product is not None:
            payload["product"] = product.model_dump(mode="json", exclude_none=True)
        return await self._post_json(path="/api/generate-copy", payload=payload)

    async def _post_json(self, *, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
        except httpx.TimeoutException as exc:
            raise CopyServiceError(
                message=f"Copy service timed out after {self._timeout:g}s",
                status_code=504,
            ) from exc
        except httpx.RequestError as exc:
            raise CopyServiceError(message=f"Network error while calling copy service: {exc}") from exc

        if response.status_code >= 400:
            raise CopyServiceError(
                message=f"Copy service call failed ({response.status_code}): {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise CopyServiceError(message="Copy service returned invalid JSON") from exc

        if not isinstance(body, dict):
            raise CopyServiceError(message="Copy service response must be a JSON object")
        return body
