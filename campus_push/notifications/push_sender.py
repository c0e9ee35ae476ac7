"""Push notification delivery implementations."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from http import HTTPStatus

import requests
from pywebpush import WebPushException, webpush

from campus_push.config import Settings
from campus_push.notifications.contracts import Delivered, DeliveryResult, Gone, PushSubscriptionDescriptor, TransientError

logger = logging.getLogger(__name__)

_GONE_STATUSES = {HTTPStatus.GONE, HTTPStatus.NOT_FOUND}
_BACKOFF_SECONDS = (0.5, 1.0)


@dataclass(frozen=True)
class VapidKeyPair:
  """Process-wide key pair used to sign Web Push requests."""

  public_key: str
  private_key: str = field(repr=False)
  sub: str

  def __post_init__(self) -> None:
    if not self.public_key or not self.private_key:
      raise ValueError("Both halves of the VAPID key pair are required.")

  @classmethod
  def from_settings(cls, settings: Settings) -> VapidKeyPair:
    return cls(public_key=settings.vapid_public_key, private_key=settings.vapid_private_key, sub=settings.vapid_sub)


class WebPushSender:
  """`pywebpush` backed sender with retry and gone-endpoint classification."""

  def __init__(self, *, vapid_keys: VapidKeyPair, timeout_seconds: float = 10.0, ttl_seconds: int = 86400) -> None:
    self._vapid_keys = vapid_keys
    self._timeout_seconds = timeout_seconds
    self._ttl_seconds = ttl_seconds

  def send(self, descriptor: PushSubscriptionDescriptor, payload: bytes) -> DeliveryResult:
    """Send a signed Web Push payload with bounded retries for transient failures."""
    for attempt in range(len(_BACKOFF_SECONDS) + 1):
      try:
        webpush(
          subscription_info=descriptor.subscription_info(),
          data=payload,
          vapid_private_key=self._vapid_keys.private_key,
          vapid_claims={"sub": self._vapid_keys.sub},
          ttl=self._ttl_seconds,
          timeout=self._timeout_seconds,
        )
        return Delivered()
      except WebPushException as exc:
        status_code = _extract_status_code(exc)

        if status_code in _GONE_STATUSES:
          return Gone(status_code=int(status_code))

        if status_code is not None and (status_code == HTTPStatus.TOO_MANY_REQUESTS or 500 <= status_code < 600):
          if attempt < len(_BACKOFF_SECONDS):
            # Back off briefly to avoid amplifying transient provider incidents.
            time.sleep(_BACKOFF_SECONDS[attempt])
            continue

          return TransientError(detail=f"push service unavailable after retries (status={status_code})", status_code=status_code)

        return TransientError(detail=f"push delivery rejected (status={status_code if status_code is not None else 'unknown'})", status_code=status_code)
      except requests.RequestException as exc:
        logger.warning("Push transport error endpoint_host=%s error=%s", _endpoint_host(descriptor.endpoint), exc)
        return TransientError(detail=f"transport error: {type(exc).__name__}")

    return TransientError(detail="push delivery retries exhausted")


def _extract_status_code(exc: WebPushException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None


def _endpoint_host(endpoint: str) -> str:
  # Log only the push service host; the full endpoint is a bearer capability.
  without_scheme = endpoint.split("://", 1)[-1]
  return without_scheme.split("/", 1)[0]
