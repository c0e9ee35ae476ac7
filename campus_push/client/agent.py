"""Background subscription agent.

Runs inside the platform's background context: owns the push registration,
learns the active identity from the foreground, keeps the server's record in
step with the platform subscription and renders incoming pushes.
"""

from __future__ import annotations

import enum
import json
import logging
from typing import Any

from campus_push.client.api_client import PushServerClient
from campus_push.client.messaging import Envelope, MessagePort, MessageType, request, serve
from campus_push.client.platform import DisplayedNotification, NotificationOptions, PlatformUnsupportedError, PushPlatform, PushRegistration
from campus_push.utils.keys import url_base64_to_bytes

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_URL = "/service-worker.js"
DEFAULT_CLICK_URL = "/"


class SubscriptionStatus(enum.StrEnum):
  UNKNOWN = "unknown"
  NOT_SUPPORTED = "not_supported"
  UNSUBSCRIBED = "unsubscribed"
  SUBSCRIBED = "subscribed"


class AgentError(RuntimeError):
  """Base class for subscription agent failures."""


class PushUnsupportedError(AgentError):
  """The platform offers no push registration."""


class IdentityUnavailableError(AgentError):
  """No identity is known, so the subscription cannot be tagged."""


class SubscriptionAgent:
  """Push subscription lifecycle for one client device."""

  def __init__(self, *, platform: PushPlatform, server: PushServerClient, port: MessagePort, script_url: str = DEFAULT_SCRIPT_URL, identity_timeout: float = 2.0, icon: str | None = None) -> None:
    self._platform = platform
    self._server = server
    self._port = port
    self._script_url = script_url
    self._identity_timeout = identity_timeout
    self._icon = icon
    self._registration: PushRegistration | None = None
    self._started = False
    # Lost whenever the context restarts; re-learned from the foreground.
    self._identity: str | None = None

  @property
  def identity(self) -> str | None:
    return self._identity

  @property
  def supported(self) -> bool:
    return self._registration is not None

  async def start(self) -> SubscriptionStatus:
    """Register the background context, degrading instead of raising when unsupported."""
    self._started = True
    try:
      self._registration = await self._platform.register(self._script_url)
      logger.info("Background context registered script=%s", self._script_url)
    except PlatformUnsupportedError as exc:
      logger.warning("Push is not supported on this platform: %s", exc)
      self._registration = None
    except Exception as exc:  # noqa: BLE001
      logger.error("Background context registration failed: %s", exc, exc_info=True)
      self._registration = None

    return await self.subscription_status()

  async def subscription_status(self) -> SubscriptionStatus:
    """Re-query the platform; the answer is never cached."""
    if not self._started:
      return SubscriptionStatus.UNKNOWN
    if self._registration is None:
      return SubscriptionStatus.NOT_SUPPORTED

    try:
      subscription = await self._registration.get_subscription()
    except Exception as exc:  # noqa: BLE001
      logger.error("Push subscription query failed: %s", exc, exc_info=True)
      return SubscriptionStatus.UNKNOWN

    return SubscriptionStatus.SUBSCRIBED if subscription else SubscriptionStatus.UNSUBSCRIBED

  async def handle_message(self, envelope: Envelope) -> None:
    """Handle messages posted by the foreground context."""
    if envelope.type != MessageType.STORE_IDENTITY:
      logger.debug("Ignoring foreground message type=%s", envelope.type)
      return

    identity = envelope.data.get("identity")
    self._identity = identity if isinstance(identity, str) and identity else None
    logger.info("Identity binding updated bound=%s", self._identity is not None)
    envelope.reply({"success": True})

  async def serve(self) -> None:
    await serve(self._port, self.handle_message)

  async def resolve_identity(self) -> str | None:
    """Return the bound identity, asking the foreground when none is bound yet."""
    if self._identity:
      return self._identity

    reply = await request(self._port, {"type": MessageType.GET_IDENTITY}, timeout=self._identity_timeout)
    identity = reply.get("identity") if reply else None
    if isinstance(identity, str) and identity:
      self._identity = identity
      return identity

    return None

  async def subscribe(self) -> dict[str, Any]:
    """Ensure a platform subscription exists and the server holds it.

    An existing subscription is re-submitted verbatim, which repairs a stale
    or lost server record without creating a duplicate registration.
    """
    registration = self._require_registration()
    identity = await self.resolve_identity()
    if identity is None:
      raise IdentityUnavailableError("No identity is bound to the background context.")

    existing = await registration.get_subscription()
    if existing:
      logger.info("Already subscribed; refreshing server record")
      await self._server.submit_subscription(identity, existing)
      return existing

    public_key = await self._server.fetch_vapid_public_key()
    subscription = await registration.subscribe(user_visible_only=True, application_server_key=url_base64_to_bytes(public_key))
    logger.info("New push subscription created")
    await self._server.submit_subscription(identity, subscription)
    return subscription

  async def unsubscribe(self) -> bool:
    """Drop the platform subscription and the server record."""
    registration = self._require_registration()
    identity = await self.resolve_identity()
    removed = await registration.unsubscribe()
    if identity is not None:
      await self._server.remove_subscription(identity)
    return removed

  async def handle_push(self, data: bytes | str | None) -> bool:
    """Render an incoming push payload; malformed payloads are logged and dropped."""
    if self._registration is None:
      logger.warning("Push received without a registration; dropping")
      return False
    if not data:
      logger.warning("Push event carried no payload")
      return False

    try:
      payload = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
      logger.warning("Push payload is not valid JSON: %s", exc)
      return False

    if not isinstance(payload, dict):
      logger.warning("Push payload is not an object")
      return False

    title = payload.get("title")
    body = payload.get("body") or payload.get("message")
    if not isinstance(title, str) or not title or not isinstance(body, str) or not body:
      logger.warning("Push payload missing title or body")
      return False

    url = payload.get("url")
    options = NotificationOptions(body=body, data={"url": url if isinstance(url, str) and url else None}, icon=self._icon, badge=self._icon)
    try:
      await self._registration.show_notification(title, options)
    except Exception as exc:  # noqa: BLE001
      logger.error("Showing notification failed: %s", exc, exc_info=True)
      return False

    return True

  async def handle_notification_click(self, notification: DisplayedNotification) -> None:
    """Close the notification and focus or open its deep link."""
    notification.close()
    url = (notification.data or {}).get("url") or DEFAULT_CLICK_URL

    for window in await self._platform.windows.match_all():
      if window.url == url:
        await window.focus()
        return

    await self._platform.windows.open_window(url)

  def _require_registration(self) -> PushRegistration:
    if self._registration is None:
      raise PushUnsupportedError("Push is not supported or the background context is not registered.")
    return self._registration
