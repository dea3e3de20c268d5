"""
Module: connectors.gateway_client

Async client for the backend HTTP API the mobile screens talk to. Requests
carry a bearer token from the external session store; error responses are
turned into ``GatewayError`` using the server's ``error``/``message`` field.
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from config.config import GatewayConfig
from models.enums import PrepStatus
from models.inventory import Combo, FoodItem
from models.requests import PrepRequest

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]


class GatewayError(Exception):
    """Non-2xx response (or transport failure) from the backend API."""

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class GatewayClient:
    """
    Thin client over the backend routes the workflow relies on.

    Use as an async context manager, or call ``aclose`` when done.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or GatewayConfig()
        self.token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Prep requests ---

    async def list_prep_requests(self, cook_id: str) -> list[PrepRequest]:
        data = await self._request("GET", "/api/prep-requests", params={"cookId": cook_id})
        return [PrepRequest.model_validate(row) for row in data or []]

    async def update_prep_request(
        self,
        request_id: str,
        status: PrepStatus | str | None = None,
        quantity_to_prepare: int | None = None,
    ) -> PrepRequest:
        """PATCH exactly one of ``status`` or ``quantityToPrepare``."""
        if (status is None) == (quantity_to_prepare is None):
            raise ValueError("Pass exactly one of status or quantity_to_prepare")
        body: dict[str, Any] = (
            {"status": PrepStatus(status).value} if status is not None else {"quantityToPrepare": quantity_to_prepare}
        )
        data = await self._request("PATCH", f"/api/prep-requests/{request_id}", json=body)
        return PrepRequest.model_validate(data)

    async def delete_prep_request(self, request_id: str) -> None:
        await self._request("DELETE", f"/api/prep-requests/{request_id}")

    # --- Foods & combos ---

    async def list_foods(self) -> list[FoodItem]:
        data = await self._request("GET", "/api/foods")
        return [FoodItem.model_validate(row) for row in data or []]

    async def create_combo(self, combo: Combo) -> Combo:
        data = await self._request("POST", "/api/combos", json=combo.to_wire())
        return Combo.model_validate(data)

    async def update_combo(self, combo_id: str, **changes: Any) -> Combo:
        data = await self._request("PATCH", f"/api/combos/{combo_id}", json=changes)
        return Combo.model_validate(data)

    async def delete_combo(self, combo_id: str) -> None:
        await self._request("DELETE", f"/api/combos/{combo_id}")

    # --- Super-admin shell ---

    async def pending_requests_count(self) -> int:
        data = await self._request("GET", "/api/admin/requests/count")
        return int((data or {}).get("count", 0))

    # --- Internals ---

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as exc:
            logger.error(f"{method} {path} failed: {exc}")
            raise GatewayError(f"Request to {path} failed: {exc}") from exc

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None
            if not response.is_error:
                raise GatewayError(f"Invalid JSON from {path}", status_code=response.status_code) from None
        if response.is_error:
            message = None
            if isinstance(data, dict):
                message = data.get("error") or data.get("message")
            message = message or f"HTTP {response.status_code}"
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise GatewayError(message, status_code=response.status_code, payload=data)
        logger.debug(f"{method} {path} -> {response.status_code}")
        return data
