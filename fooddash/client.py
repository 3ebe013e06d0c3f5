"""HTTP client used by the storefront to talk to the FoodDash API."""

from __future__ import annotations

from typing import List, Optional

import httpx

from .config import Settings, get_settings
from .errors import UpstreamError


class FoodDashClient:
    """Thin wrapper over the JSON envelope API.

    Every call returns the ``data`` part of a success envelope and raises
    ``UpstreamError`` for network failures, non-2xx responses and error
    envelopes.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if http_client is not None:
            http_client.headers.update(headers)
            self._client = http_client
        else:
            self._client = httpx.Client(
                base_url=base_url.rstrip("/"),
                headers=headers,
                timeout=timeout,
                transport=transport,
            )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "FoodDashClient":
        settings = settings or get_settings()
        return cls(settings.api_url, settings.api_token, **kwargs)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "FoodDashClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Network error calling {path}: {exc}") from exc

        if response.status_code == httpx.codes.NO_CONTENT:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Invalid response from {path}: HTTP {response.status_code}",
                status_code=response.status_code,
            ) from exc

        if response.is_error or payload.get("status") != "success":
            raise UpstreamError(
                payload.get("message") or f"Request to {path} failed",
                status_code=response.status_code,
            )
        return payload.get("data") or {}

    def list_addresses(self) -> List[dict]:
        return self._request("GET", "/users/me/addresses")["addresses"]

    def list_orders(self) -> List[dict]:
        return self._request("GET", "/orders")["orders"]

    def get_order(self, order_id: int) -> dict:
        return self._request("GET", f"/orders/{order_id}")["order"]

    def create_order(self, payload: dict) -> dict:
        return self._request("POST", "/orders", json=payload)["order"]

    def cancel_order(self, order_id: int, reason: Optional[str] = None) -> dict:
        return self._request("PUT", f"/orders/{order_id}/cancel", json={"reason": reason})["order"]

    def update_payment_status(self, order_id: int, status: str) -> dict:
        return self._request("PUT", f"/orders/{order_id}/payment-status", json={"status": status})["order"]

    def record_payment(
        self,
        *,
        order_id: int,
        amount: float,
        payment_method: str,
        transaction_id: Optional[str] = None,
        status: str = "completed",
    ) -> dict:
        payload = {
            "order_id": order_id,
            "amount": amount,
            "payment_method": payment_method,
            "transaction_id": transaction_id,
            "status": status,
        }
        return self._request("POST", "/payments", json=payload)["payment"]
