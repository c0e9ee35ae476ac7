from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from campus_push.notifications.contracts import StorageError
from campus_push.notifications.push_subscription_repo import PushSubscriptionRepository
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError


def _session_factory(session: AsyncMock) -> MagicMock:
  factory = MagicMock()
  factory.return_value.__aenter__.return_value = session
  factory.return_value.__aexit__.return_value = False
  return factory


@pytest.mark.anyio
async def test_in_memory_upsert_replaces_existing_record(subscription_store, make_descriptor):
  await subscription_store.upsert("s-1", make_descriptor("https://fcm.googleapis.com/fcm/send/old"))
  await subscription_store.upsert("s-1", make_descriptor("https://fcm.googleapis.com/fcm/send/new"))

  records = await subscription_store.find_many(["s-1"])

  assert len(records) == 1
  assert records[0].descriptor.endpoint == "https://fcm.googleapis.com/fcm/send/new"


@pytest.mark.anyio
async def test_in_memory_upsert_is_idempotent(subscription_store, make_descriptor):
  descriptor = make_descriptor()
  await subscription_store.upsert("s-1", descriptor)
  await subscription_store.upsert("s-1", descriptor)

  record = await subscription_store.get("s-1")

  assert record is not None
  assert record.descriptor == descriptor


@pytest.mark.anyio
async def test_in_memory_find_many_skips_missing_identities(subscription_store, make_descriptor):
  await subscription_store.upsert("s-1", make_descriptor())

  records = await subscription_store.find_many(["s-1", "s-2", "s-1"])

  assert [record.identity for record in records] == ["s-1"]
  assert await subscription_store.find_many([]) == []


@pytest.mark.anyio
async def test_in_memory_delete_is_idempotent(subscription_store, make_descriptor):
  await subscription_store.upsert("s-1", make_descriptor())

  await subscription_store.delete("s-1")
  await subscription_store.delete("s-1")

  assert await subscription_store.get("s-1") is None


@pytest.mark.anyio
async def test_repository_upsert_uses_single_conflict_statement(make_descriptor):
  session = AsyncMock()
  repo = PushSubscriptionRepository(_session_factory(session))

  await repo.upsert("s-1", make_descriptor())

  session.execute.assert_awaited_once()
  session.commit.assert_awaited_once()
  statement = session.execute.await_args.args[0]
  compiled = str(statement.compile(dialect=postgresql.dialect()))
  assert "ON CONFLICT (identity) DO UPDATE" in compiled
  assert "updated_at = now()" in compiled


@pytest.mark.anyio
async def test_repository_find_many_maps_rows_to_records(make_descriptor):
  descriptor = make_descriptor()
  session = AsyncMock()
  result = MagicMock()
  result.scalars.return_value.all.return_value = [SimpleNamespace(identity="s-1", descriptor=descriptor.to_dict())]
  session.execute.return_value = result
  repo = PushSubscriptionRepository(_session_factory(session))

  records = await repo.find_many(["s-1", "s-2"])

  assert len(records) == 1
  assert records[0].identity == "s-1"
  assert records[0].descriptor == descriptor


@pytest.mark.anyio
async def test_repository_find_many_skips_query_for_empty_input():
  session = AsyncMock()
  factory = _session_factory(session)
  repo = PushSubscriptionRepository(factory)

  assert await repo.find_many([]) == []
  factory.assert_not_called()


@pytest.mark.anyio
async def test_repository_wraps_database_errors(make_descriptor):
  session = AsyncMock()
  session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
  repo = PushSubscriptionRepository(_session_factory(session))

  with pytest.raises(StorageError):
    await repo.upsert("s-1", make_descriptor())
  with pytest.raises(StorageError):
    await repo.find_many(["s-1"])
  with pytest.raises(StorageError):
    await repo.delete("s-1")


@pytest.mark.anyio
async def test_in_memory_concurrent_writes_for_one_identity_never_tear(subscription_store, make_descriptor):
  descriptors = [make_descriptor(f"https://fcm.googleapis.com/fcm/send/device-{index}") for index in range(20)]
  writes = [subscription_store.upsert("s-1", descriptor) for descriptor in descriptors]
  writes.insert(10, subscription_store.delete("s-1"))

  await asyncio.gather(*writes)

  records = await subscription_store.find_many(["s-1"])
  assert len(records) <= 1
  if records:
    assert records[0].identity == "s-1"
    assert records[0].descriptor in descriptors
