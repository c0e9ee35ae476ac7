"""Foreground side of the identity propagation protocol."""

from __future__ import annotations

import logging

from campus_push.client.messaging import Envelope, MessagePort, MessageType, request, serve

logger = logging.getLogger(__name__)


class ForegroundContext:
  """Holds the authenticated identity and shares it with the background agent."""

  def __init__(self, port: MessagePort) -> None:
    self._port = port
    self._identity: str | None = None

  @property
  def identity(self) -> str | None:
    return self._identity

  def set_identity(self, identity: str | None) -> None:
    """Record a login/logout and push the new identity to the background.

    Logging out sends `identity: None` so the background drops its binding.
    """
    changed = identity != self._identity
    self._identity = identity
    if changed:
      self._port.post_message({"type": MessageType.STORE_IDENTITY, "identity": identity})

  async def confirm_identity(self, *, timeout: float = 2.0) -> bool:
    """Push the identity and wait for the background agent's acknowledgement."""
    if not self._identity:
      return False
    reply = await request(self._port, {"type": MessageType.STORE_IDENTITY, "identity": self._identity}, timeout=timeout)
    return bool(reply and reply.get("success"))

  async def handle_message(self, envelope: Envelope) -> None:
    """Answer identity requests on their private reply port."""
    if envelope.type == MessageType.GET_IDENTITY:
      if not envelope.reply({"identity": self._identity}):
        logger.warning("GET_IDENTITY arrived without a reply port")
      return

    logger.debug("Ignoring background message type=%s", envelope.type)

  async def serve(self) -> None:
    await serve(self._port, self.handle_message)
