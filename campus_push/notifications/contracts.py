"""Contracts for push subscription storage and notification delivery."""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class PushKeys:
  """Browser-held key material the push service needs for payload encryption."""

  p256dh: str
  auth: str


@dataclass(frozen=True)
class PushSubscriptionDescriptor:
  """The browser `PushSubscription` object, opaque beyond what delivery needs."""

  endpoint: str
  keys: PushKeys
  expiration_time: int | None = None
  # The JSON as submitted, so a stored descriptor reads back unchanged.
  raw: dict[str, Any] | None = field(default=None, compare=False, repr=False)

  def to_dict(self) -> dict[str, Any]:
    """Serialize using the browser's own field names, preserving the submitted form."""
    if self.raw is not None:
      return copy.deepcopy(self.raw)
    return {"endpoint": self.endpoint, "expirationTime": self.expiration_time, "keys": {"p256dh": self.keys.p256dh, "auth": self.keys.auth}}

  @classmethod
  def from_dict(cls, raw: dict[str, Any]) -> PushSubscriptionDescriptor:
    """Rebuild a descriptor from its stored or submitted JSON form."""
    keys = raw["keys"]
    return cls(endpoint=raw["endpoint"], keys=PushKeys(p256dh=keys["p256dh"], auth=keys["auth"]), expiration_time=raw.get("expirationTime"), raw=copy.deepcopy(raw))

  def subscription_info(self) -> dict[str, Any]:
    """Return the shape `pywebpush` expects."""
    return {"endpoint": self.endpoint, "keys": {"p256dh": self.keys.p256dh, "auth": self.keys.auth}}


@dataclass(frozen=True)
class SubscriptionRecord:
  """The one push subscription stored for an identity."""

  identity: str
  descriptor: PushSubscriptionDescriptor


@dataclass(frozen=True)
class PushMessage:
  """A notification shared by every recipient of one dispatch."""

  title: str
  body: str
  url: str | None = None

  def to_payload(self) -> bytes:
    """Serialize the JSON payload rendered by the client agent."""
    payload: dict[str, str] = {"title": self.title, "body": self.body}
    if self.url:
      payload["url"] = self.url
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class Delivered:
  """The push service accepted the message."""


@dataclass(frozen=True)
class Gone:
  """The push service reports the endpoint no longer exists."""

  status_code: int


@dataclass(frozen=True)
class TransientError:
  """Delivery failed but the endpoint may still be valid."""

  detail: str
  status_code: int | None = None


DeliveryResult = Delivered | Gone | TransientError


@dataclass(frozen=True)
class DeliveryOutcome:
  """Aggregate result of one dispatch."""

  succeeded: int
  failed: int
  pruned: tuple[str, ...] = field(default=())

  @property
  def attempted(self) -> int:
    return self.succeeded + self.failed


class NotificationError(Exception):
  """Base class for request-level notification failures."""


class InvalidRequestError(NotificationError):
  """Caller input is missing or malformed."""


class NoSubscribersError(NotificationError):
  """None of the requested identities holds a subscription."""


class StorageError(NotificationError):
  """The subscription store could not be reached."""


class PushSender(Protocol):
  """Delivery contract for signed Web Push messages."""

  def send(self, descriptor: PushSubscriptionDescriptor, payload: bytes) -> DeliveryResult:
    """Deliver one payload synchronously and classify the outcome."""


class SubscriptionStore(Protocol):
  """Storage contract for one subscription record per identity."""

  async def upsert(self, identity: str, descriptor: PushSubscriptionDescriptor) -> None:
    """Create or replace the record for an identity."""

  async def get(self, identity: str) -> SubscriptionRecord | None:
    """Fetch the record for an identity, if any."""

  async def find_many(self, identities: Iterable[str]) -> list[SubscriptionRecord]:
    """Return the records that exist for the given identities."""

  async def delete(self, identity: str) -> None:
    """Remove the record for an identity; missing records are ignored."""
