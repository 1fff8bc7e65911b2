from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from ..domain.exceptions import SyncFailure
from ..domain.schemas import StoreEnvelope


class HttpSnapshotStore:
    """
    Remote snapshot service speaking the `bootstrap` / `syncAll` action API.

    Responses are wrapped as `{success, data, message}`.
    """

    def __init__(self, base_url: str, *, timeout_s: float = 10.0, transport: httpx.BaseTransport | None = None) -> None:
        self.base_url = base_url
        self.timeout_s = timeout_s
        self._transport = transport

    def _request(self, method: str, action: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                resp = client.request(
                    method,
                    self.base_url,
                    params={"action": action},
                    json=payload,
                    headers={"Cache-Control": "no-store"},
                )
        except httpx.HTTPError as e:
            raise SyncFailure("store_request_failed") from e

        if resp.status_code >= 400:
            raise SyncFailure(f"store_http_{resp.status_code}")

        try:
            envelope = StoreEnvelope.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise SyncFailure("store_bad_response") from e
        if not envelope.success:
            raise SyncFailure(envelope.message or "store_error")
        if envelope.data is None:
            return {"categories": [], "notes": []}
        return envelope.data.model_dump(mode="json")

    def load(self) -> dict[str, Any]:
        return self._request("GET", "bootstrap")

    def save(self, snapshot: dict[str, Any]) -> None:
        self._request("POST", "syncAll", snapshot)
