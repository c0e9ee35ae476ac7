"""Targeted push delivery with per-recipient isolation and subscription pruning."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from starlette.concurrency import run_in_threadpool

from campus_push.notifications.contracts import Delivered, DeliveryOutcome, DeliveryResult, Gone, InvalidRequestError, NoSubscribersError, PushMessage, PushSender, SubscriptionRecord, SubscriptionStore, TransientError

logger = logging.getLogger(__name__)


class _Tally:
  """Counters shared by concurrently completing deliveries."""

  def __init__(self) -> None:
    self.succeeded = 0
    self.failed = 0
    self.pruned: list[str] = []
    self.lock = asyncio.Lock()


class PushDispatcher:
  """Resolve identities to subscriptions and deliver one message to each."""

  def __init__(self, *, store: SubscriptionStore, sender: PushSender, max_concurrency: int = 8) -> None:
    if max_concurrency <= 0:
      raise ValueError("max_concurrency must be positive.")
    self._store = store
    self._sender = sender
    self._max_concurrency = max_concurrency

  async def dispatch(self, targets: Iterable[str], title: str, body: str, *, url: str | None = None) -> DeliveryOutcome:
    """Deliver `title`/`body` to every target holding a subscription.

    Raises `InvalidRequestError` before any I/O when the input is unusable and
    `NoSubscribersError` when no target resolves to a record. Per-recipient
    failures never propagate; they are counted in the returned outcome.
    """
    identities = _normalize_targets(targets)
    if not title or not title.strip():
      raise InvalidRequestError("title is required.")
    if not body or not body.strip():
      raise InvalidRequestError("body is required.")

    records = await self._store.find_many(identities)
    if not records:
      raise NoSubscribersError("No subscriptions found for the provided identities.")

    # Every recipient receives the same bytes.
    payload = PushMessage(title=title, body=body, url=url).to_payload()
    tally = _Tally()
    semaphore = asyncio.Semaphore(self._max_concurrency)

    async def _bounded(record: SubscriptionRecord) -> None:
      async with semaphore:
        await self._deliver(record=record, payload=payload, tally=tally)

    await asyncio.gather(*(_bounded(record) for record in records))

    logger.info("Push dispatch complete targets=%d resolved=%d succeeded=%d failed=%d pruned=%d", len(identities), len(records), tally.succeeded, tally.failed, len(tally.pruned))
    return DeliveryOutcome(succeeded=tally.succeeded, failed=tally.failed, pruned=tuple(sorted(tally.pruned)))

  async def _deliver(self, *, record: SubscriptionRecord, payload: bytes, tally: _Tally) -> None:
    """Attempt one delivery and fold its result into the tally."""
    try:
      result: DeliveryResult = await run_in_threadpool(self._sender.send, record.descriptor, payload)
    except Exception as exc:  # noqa: BLE001
      # A misbehaving sender must not abort the rest of the batch.
      logger.error("Push delivery raised identity=%s error=%s", record.identity, exc, exc_info=True)
      result = TransientError(detail=f"sender raised {type(exc).__name__}")

    if isinstance(result, Delivered):
      async with tally.lock:
        tally.succeeded += 1
      logger.info("Notification sent identity=%s", record.identity)
      return

    async with tally.lock:
      tally.failed += 1

    if isinstance(result, Gone):
      logger.warning("Push subscription gone identity=%s status=%s; pruning", record.identity, result.status_code)
      await self._prune(record.identity, tally)
      return

    logger.error("Push delivery failed identity=%s status=%s detail=%s", record.identity, result.status_code, result.detail)

  async def _prune(self, identity: str, tally: _Tally) -> None:
    # Cleanup is best-effort; the batch outcome does not depend on it.
    try:
      await self._store.delete(identity)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed deleting expired push subscription identity=%s error=%s", identity, exc, exc_info=True)
      return

    async with tally.lock:
      tally.pruned.append(identity)
    logger.info("Expired subscription removed identity=%s", identity)


def _normalize_targets(targets: Iterable[str]) -> list[str]:
  """Strip and de-duplicate identities, rejecting empty or blank input."""
  if targets is None or isinstance(targets, str):
    raise InvalidRequestError("targets must be a non-empty collection of identities.")

  identities: list[str] = []
  for target in targets:
    if not isinstance(target, str) or not target.strip():
      raise InvalidRequestError("targets must not contain blank identities.")
    identities.append(target.strip())

  if not identities:
    raise InvalidRequestError("targets must not be empty.")

  return list(dict.fromkeys(identities))
