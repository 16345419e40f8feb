"""
HTTP Remote Store

Talks to the key/value persistence API:
- POST {api_base}/api/save with {"key": ..., "value": ...} answers {"ok": true}
- GET  {api_base}/api/load?key=... answers {"value": ... | null}

Transport failures (DNS, refused connection, timeout) raise
RemoteUnavailableError; any other httpx error (redirect loops, undecodable
bodies) raises RemoteStoreError. A non-2xx answer to save is a plain False so the
sync queue counts it as a failed attempt.
"""

from typing import Any, Optional

import httpx
import structlog

from organizer.services.storage.interface import (
    RemoteStoreError,
    RemoteStoreInterface,
    RemoteUnavailableError,
)


logger = structlog.get_logger(__name__)


class HttpRemoteStore(RemoteStoreInterface):
    """Remote store backed by the /api/save and /api/load endpoints."""

    def __init__(
        self,
        api_base: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            api_base: Base URL; empty means same-origin relative paths
            timeout: Per-request timeout in seconds
            client: Pre-built client (tests pass one with a MockTransport)
        """
        self._api_base = api_base.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def _url(self, path: str) -> str:
        return f"{self._api_base}{path}"

    async def save(self, key: str, value: dict[str, Any]) -> bool:
        try:
            response = await self._client.post(
                self._url("/api/save"),
                json={"key": key, "value": value},
            )
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"Save request failed: {e}")
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Save request failed: {e}")

        if not response.is_success:
            logger.warning(
                "remote_save_rejected",
                key=key,
                status_code=response.status_code,
            )
            return False

        try:
            body = response.json()
        except ValueError:
            return True
        return bool(body.get("ok", True)) if isinstance(body, dict) else True

    async def load(self, key: str) -> Optional[dict[str, Any]]:
        try:
            response = await self._client.get(
                self._url("/api/load"),
                params={"key": key},
            )
        except httpx.TransportError as e:
            raise RemoteUnavailableError(f"Load request failed: {e}")
        except httpx.HTTPError as e:
            raise RemoteStoreError(f"Load request failed: {e}")

        if not response.is_success:
            raise RemoteStoreError(
                f"Load of {key!r} failed with HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteStoreError(f"Load of {key!r} returned invalid JSON: {e}")

        value = body.get("value") if isinstance(body, dict) else None
        if value is None:
            return None
        if not isinstance(value, dict):
            raise RemoteStoreError(
                f"Load of {key!r} returned {type(value).__name__}, expected object"
            )
        return value

    async def aclose(self) -> None:
        """Close the underlying client if this store created it."""
        if self._owns_client:
            await self._client.aclose()
