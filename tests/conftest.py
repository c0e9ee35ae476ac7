"""Test configuration for importing the application package."""

from __future__ import annotations

import os

# Settings are loaded at import time and fail fast without signing keys.
os.environ.setdefault("CAMPUS_PUSH_ENV", "test")
os.environ.setdefault("CAMPUS_PUSH_VAPID_PUBLIC_KEY", "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM")
os.environ.setdefault("CAMPUS_PUSH_VAPID_PRIVATE_KEY", "test-private-key")
os.environ.setdefault("CAMPUS_PUSH_VAPID_SUB", "mailto:test@example.com")
os.environ.setdefault("CAMPUS_PUSH_JWT_SECRET", "test-jwt-secret")
os.environ.pop("CAMPUS_PUSH_PG_DSN", None)
os.environ.pop("DATABASE_URL", None)

import threading  # noqa: E402

import pytest  # noqa: E402

from campus_push.notifications.contracts import Delivered, DeliveryResult, PushKeys, PushSubscriptionDescriptor  # noqa: E402
from campus_push.notifications.push_subscription_repo import InMemoryPushSubscriptionRepository  # noqa: E402


class RecordingSender:
  """Sender returning scripted results per endpoint and recording every call."""

  def __init__(self, results: dict[str, DeliveryResult | Exception] | None = None) -> None:
    self.results = results or {}
    self.calls: list[tuple[str, bytes]] = []
    self._lock = threading.Lock()

  def send(self, descriptor: PushSubscriptionDescriptor, payload: bytes) -> DeliveryResult:
    with self._lock:
      self.calls.append((descriptor.endpoint, payload))
    result = self.results.get(descriptor.endpoint, Delivered())
    if isinstance(result, Exception):
      raise result
    return result

  @property
  def endpoints(self) -> list[str]:
    return [endpoint for endpoint, _ in self.calls]


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def subscription_store():
  return InMemoryPushSubscriptionRepository()


@pytest.fixture
def recording_sender():
  return RecordingSender()


@pytest.fixture
def make_descriptor():
  def _make(endpoint: str = "https://fcm.googleapis.com/fcm/send/abc") -> PushSubscriptionDescriptor:
    return PushSubscriptionDescriptor(endpoint=endpoint, keys=PushKeys(p256dh="BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I", auth="gq8Yh5xA9l2mQ6pR"))

  return _make
