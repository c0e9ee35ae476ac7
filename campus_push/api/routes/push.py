"""Routes for the Web Push subscription lifecycle and targeted delivery."""

from __future__ import annotations

import re
import urllib.parse

from fastapi import APIRouter, Depends, Response, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

from campus_push.api.deps import get_push_dispatcher, get_subscription_store, get_vapid_keys
from campus_push.notifications.contracts import PushSubscriptionDescriptor, SubscriptionStore
from campus_push.notifications.dispatcher import PushDispatcher
from campus_push.notifications.push_sender import VapidKeyPair

_BASE64URL_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

router = APIRouter()


class PushSubscriptionKeysModel(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_base64url(cls, value: str) -> str:
    """Keys must be base64url encoded, as browsers serialize them."""
    if not _BASE64URL_RE.fullmatch(value):
      raise PydanticCustomError("push_key_format", "subscription keys must be base64url encoded.")
    return value


class PushSubscriptionModel(BaseModel):
  """Standard browser push subscription object."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeysModel
  model_config = ConfigDict(populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    """Push services are only reachable over HTTPS."""
    parsed = urllib.parse.urlparse(value)
    if parsed.scheme.lower() != "https" or not parsed.hostname:
      raise PydanticCustomError("push_endpoint_https", "endpoint must be an https URL.")
    return value

  def to_descriptor(self) -> PushSubscriptionDescriptor:
    # Fields the client did not send stay absent in storage.
    return PushSubscriptionDescriptor.from_dict(self.model_dump(by_alias=True, exclude_unset=True))


class SubscribeRequest(BaseModel):
  """Bind a browser subscription to a student identity."""

  identity: str = Field(min_length=1, max_length=256, validation_alias=AliasChoices("identity", "studentId"))
  subscription: PushSubscriptionModel


class UnsubscribeRequest(BaseModel):
  identity: str = Field(min_length=1, max_length=256, validation_alias=AliasChoices("identity", "studentId"))


class SendNotificationRequest(BaseModel):
  """Deliver one message to a set of identities."""

  identities: list[str] = Field(validation_alias=AliasChoices("identities", "studentIds"))
  title: str
  body: str = Field(validation_alias=AliasChoices("body", "message"))
  url: str | None = Field(default=None, max_length=2048)


class SendNotificationResponse(BaseModel):
  succeeded: int
  failed: int
  message: str


@router.get("/vapidPublicKey")
async def get_vapid_public_key(vapid_keys: VapidKeyPair = Depends(get_vapid_keys)) -> dict[str, str]:  # noqa: B008
  """Expose only the public half of the signing key pair."""
  return {"publicKey": vapid_keys.public_key}


@router.post("/subscribe")
async def subscribe(payload: SubscribeRequest, store: SubscriptionStore = Depends(get_subscription_store)) -> dict[str, str]:  # noqa: B008
  """Create or replace the identity's push subscription."""
  # StorageError propagates to the 500 handler.
  await store.upsert(payload.identity, payload.subscription.to_descriptor())
  return {"message": "Subscription successful"}


@router.delete("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
async def unsubscribe(payload: UnsubscribeRequest, store: SubscriptionStore = Depends(get_subscription_store)) -> Response:  # noqa: B008
  """Remove the identity's push subscription; repeating the call is harmless."""
  await store.delete(payload.identity)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sendNotification", response_model=SendNotificationResponse)
async def send_notification(payload: SendNotificationRequest, dispatcher: PushDispatcher = Depends(get_push_dispatcher)) -> SendNotificationResponse:  # noqa: B008
  """Deliver a notification to every listed identity that holds a subscription."""
  outcome = await dispatcher.dispatch(payload.identities, payload.title, payload.body, url=payload.url)
  return SendNotificationResponse(succeeded=outcome.succeeded, failed=outcome.failed, message=f"Notifications sent: {outcome.succeeded}, Failed notifications: {outcome.failed}")
