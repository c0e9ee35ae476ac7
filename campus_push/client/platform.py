"""Contracts for the browser push platform hosting the background agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


class PlatformUnsupportedError(RuntimeError):
  """The host offers no background context or push manager."""


@dataclass(frozen=True)
class NotificationOptions:
  """Presentation options for a rendered notification."""

  body: str
  data: dict[str, Any] = field(default_factory=dict)
  icon: str | None = None
  badge: str | None = None
  vibrate: tuple[int, ...] = (200, 100, 200)


class DisplayedNotification(Protocol):
  """A notification the platform has rendered."""

  data: dict[str, Any]

  def close(self) -> None:
    """Dismiss the notification."""


class PushRegistration(Protocol):
  """The background context registration and its push manager."""

  async def get_subscription(self) -> dict[str, Any] | None:
    """Return the current subscription JSON, or None when not subscribed."""

  async def subscribe(self, *, user_visible_only: bool, application_server_key: bytes) -> dict[str, Any]:
    """Create a push subscription and return its JSON form."""

  async def unsubscribe(self) -> bool:
    """Drop the current subscription; False when there was none."""

  async def show_notification(self, title: str, options: NotificationOptions) -> None:
    """Render a user-visible notification."""


class WindowClient(Protocol):
  """A foreground window controlled by the background context."""

  url: str

  async def focus(self) -> None:
    """Bring the window to the front."""


class ClientWindows(Protocol):
  async def match_all(self) -> list[WindowClient]:
    """List open windows."""

  async def open_window(self, url: str) -> WindowClient | None:
    """Open a new window at `url`."""


class PushPlatform(Protocol):
  """Entry points the host exposes to the agent."""

  windows: ClientWindows

  async def register(self, script_url: str) -> PushRegistration:
    """Register the background context; raise `PlatformUnsupportedError` when unavailable."""
