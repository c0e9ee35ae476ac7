"""Repository helpers for Web Push subscription persistence."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from campus_push.notifications.contracts import PushSubscriptionDescriptor, StorageError, SubscriptionRecord
from campus_push.schema.push_subscriptions import PushSubscription

logger = logging.getLogger(__name__)


class PushSubscriptionRepository:
  """Persist one push subscription per identity in Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def upsert(self, identity: str, descriptor: PushSubscriptionDescriptor) -> None:
    """Insert or replace the subscription row keyed by identity."""
    try:
      async with self._session_factory() as session:
        await self._upsert_with_session(session=session, identity=identity, descriptor=descriptor)
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to save push subscription: {type(exc).__name__}") from exc

  async def _upsert_with_session(self, *, session: AsyncSession, identity: str, descriptor: PushSubscriptionDescriptor) -> None:
    # A single statement keeps concurrent writers for one identity from tearing the row.
    payload = descriptor.to_dict()
    stmt = insert(PushSubscription).values(identity=identity, endpoint=descriptor.endpoint, descriptor=payload)
    stmt = stmt.on_conflict_do_update(index_elements=["identity"], set_={"endpoint": descriptor.endpoint, "descriptor": payload, "updated_at": func.now()})
    await session.execute(stmt)
    await session.commit()

  async def get(self, identity: str) -> SubscriptionRecord | None:
    """Fetch the subscription for a single identity."""
    records = await self.find_many([identity])
    return records[0] if records else None

  async def find_many(self, identities: Iterable[str]) -> list[SubscriptionRecord]:
    """Return existing subscriptions; identities without one are skipped."""
    wanted = list(dict.fromkeys(identities))
    if not wanted:
      return []

    try:
      async with self._session_factory() as session:
        return await self._find_many_with_session(session=session, identities=wanted)
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to read push subscriptions: {type(exc).__name__}") from exc

  async def _find_many_with_session(self, *, session: AsyncSession, identities: list[str]) -> list[SubscriptionRecord]:
    stmt = select(PushSubscription).where(PushSubscription.identity.in_(identities))
    result = await session.execute(stmt)
    rows = result.scalars().all()
    return [SubscriptionRecord(identity=row.identity, descriptor=PushSubscriptionDescriptor.from_dict(row.descriptor)) for row in rows]

  async def delete(self, identity: str) -> None:
    """Delete the subscription for an identity; absent rows are not an error."""
    try:
      async with self._session_factory() as session:
        await self._delete_with_session(session=session, identity=identity)
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to delete push subscription: {type(exc).__name__}") from exc

  async def _delete_with_session(self, *, session: AsyncSession, identity: str) -> None:
    stmt = delete(PushSubscription).where(PushSubscription.identity == identity)
    await session.execute(stmt)
    await session.commit()


class InMemoryPushSubscriptionRepository:
  """Process-local store used when Postgres is not configured."""

  def __init__(self) -> None:
    self._records: dict[str, dict] = {}
    self._lock = asyncio.Lock()

  async def upsert(self, identity: str, descriptor: PushSubscriptionDescriptor) -> None:
    async with self._lock:
      self._records[identity] = descriptor.to_dict()

  async def get(self, identity: str) -> SubscriptionRecord | None:
    records = await self.find_many([identity])
    return records[0] if records else None

  async def find_many(self, identities: Iterable[str]) -> list[SubscriptionRecord]:
    async with self._lock:
      snapshot = {identity: self._records[identity] for identity in dict.fromkeys(identities) if identity in self._records}
    return [SubscriptionRecord(identity=identity, descriptor=PushSubscriptionDescriptor.from_dict(raw)) for identity, raw in snapshot.items()]

  async def delete(self, identity: str) -> None:
    async with self._lock:
      removed = self._records.pop(identity, None)
    if removed is None:
      logger.debug("No push subscription to delete identity=%s", identity)
