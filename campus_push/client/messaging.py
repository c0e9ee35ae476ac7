"""In-process message passing between the foreground and background contexts.

Each side owns one end of an entangled `MessageChannel`. Requests that need an
answer carry a private reply port; the reply arriving on that port is the
correlation, so concurrent requests never see each other's answers.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class MessageType(enum.StrEnum):
  STORE_IDENTITY = "STORE_IDENTITY"
  GET_IDENTITY = "GET_IDENTITY"


@dataclass(frozen=True)
class Envelope:
  """A delivered message plus any ports transferred with it."""

  data: dict[str, Any]
  ports: tuple[MessagePort, ...] = field(default=())

  @property
  def type(self) -> str | None:
    value = self.data.get("type")
    return value if isinstance(value, str) else None

  def reply(self, data: dict[str, Any]) -> bool:
    """Answer on the first transferred port; False when none was sent."""
    if not self.ports:
      return False
    self.ports[0].post_message(data)
    return True


class MessagePort:
  """One end of a channel; messages posted here arrive at the peer."""

  def __init__(self) -> None:
    self._inbox: asyncio.Queue[Envelope] = asyncio.Queue()
    self._peer: MessagePort | None = None
    self._closed = False

  def post_message(self, data: dict[str, Any], ports: Sequence[MessagePort] = ()) -> None:
    """Queue a message for the peer; posting to a closed channel is a no-op."""
    if self._closed or self._peer is None or self._peer._closed:
      logger.debug("Dropping message on closed port type=%s", data.get("type"))
      return
    self._peer._inbox.put_nowait(Envelope(data=dict(data), ports=tuple(ports)))

  async def receive(self) -> Envelope:
    return await self._inbox.get()

  def close(self) -> None:
    self._closed = True


class MessageChannel:
  """Two entangled ports."""

  def __init__(self) -> None:
    self.port1 = MessagePort()
    self.port2 = MessagePort()
    self.port1._peer = self.port2
    self.port2._peer = self.port1


async def request(port: MessagePort, data: dict[str, Any], *, timeout: float) -> dict[str, Any] | None:
  """Post `data` with a private reply port and wait for the answer.

  Returns None when no answer arrives within `timeout`; an absent peer is a
  normal transient state, not a failure.
  """
  channel = MessageChannel()
  port.post_message(data, [channel.port2])
  try:
    envelope = await asyncio.wait_for(channel.port1.receive(), timeout=timeout)
  except TimeoutError:
    logger.debug("No reply within %.2fs type=%s", timeout, data.get("type"))
    return None
  finally:
    channel.port1.close()

  return envelope.data


async def serve(port: MessagePort, handler: Callable[[Envelope], Awaitable[None]]) -> None:
  """Dispatch every incoming message to `handler` until cancelled."""
  while True:
    envelope = await port.receive()
    try:
      await handler(envelope)
    except Exception as exc:  # noqa: BLE001
      # A bad message must not stop the context from handling the next one.
      logger.error("Message handler failed type=%s error=%s", envelope.type, exc, exc_info=True)
