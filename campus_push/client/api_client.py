"""HTTP client used by the background agent to reach the push server."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ServerRequestError(RuntimeError):
  """The push server could not be reached or rejected the request."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code


class PushServerClient:
  """Thin async wrapper over the server's subscription endpoints."""

  def __init__(self, base_url: str, *, timeout_seconds: float = 10.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._base_url = base_url.rstrip("/")
    self._timeout_seconds = timeout_seconds
    self._transport = transport

  def _build_client(self) -> httpx.AsyncClient:
    # Never trust environment proxy variables for app-to-origin calls.
    return httpx.AsyncClient(base_url=self._base_url, transport=self._transport, timeout=self._timeout_seconds, trust_env=False)

  async def _request(self, method: str, path: str, *, json: dict[str, Any] | None = None) -> httpx.Response:
    try:
      async with self._build_client() as client:
        response = await client.request(method, path, json=json)
        response.raise_for_status()
        return response
    except httpx.HTTPStatusError as exc:
      logger.error("Push server returned %s for %s %s", exc.response.status_code, method, path)
      raise ServerRequestError(f"{method} {path} failed with status {exc.response.status_code}", status_code=exc.response.status_code) from exc
    except httpx.RequestError as exc:
      logger.error("Push server unreachable for %s %s: %s", method, path, exc)
      raise ServerRequestError(f"{method} {path} failed: {type(exc).__name__}") from exc

  async def fetch_vapid_public_key(self) -> str:
    """Return the server's current public signing key."""
    response = await self._request("GET", "/vapidPublicKey")
    public_key = response.json().get("publicKey")
    if not isinstance(public_key, str) or not public_key:
      raise ServerRequestError("Server did not return a VAPID public key.")
    return public_key

  async def submit_subscription(self, identity: str, subscription: dict[str, Any]) -> None:
    """Upsert the subscription JSON exactly as the platform produced it."""
    await self._request("POST", "/subscribe", json={"identity": identity, "subscription": subscription})

  async def remove_subscription(self, identity: str) -> None:
    await self._request("DELETE", "/unsubscribe", json={"identity": identity})
