"""Factory helpers for the push delivery stack."""

from __future__ import annotations

import logging

from campus_push.config import Settings
from campus_push.core.database import get_session_factory
from campus_push.notifications.contracts import PushSender, SubscriptionStore
from campus_push.notifications.dispatcher import PushDispatcher
from campus_push.notifications.push_sender import VapidKeyPair, WebPushSender
from campus_push.notifications.push_subscription_repo import InMemoryPushSubscriptionRepository, PushSubscriptionRepository

logger = logging.getLogger(__name__)


def build_subscription_store(settings: Settings) -> SubscriptionStore:
  """Use Postgres when configured, otherwise a process-local store."""
  session_factory = get_session_factory() if settings.pg_dsn else None
  if session_factory is None:
    logger.warning("CAMPUS_PUSH_PG_DSN is not set; push subscriptions are kept in memory only.")
    return InMemoryPushSubscriptionRepository()

  return PushSubscriptionRepository(session_factory)


def build_push_sender(settings: Settings, vapid_keys: VapidKeyPair) -> PushSender:
  return WebPushSender(vapid_keys=vapid_keys, timeout_seconds=settings.push_timeout_seconds, ttl_seconds=settings.push_ttl_seconds)


def build_push_dispatcher(settings: Settings, *, store: SubscriptionStore, vapid_keys: VapidKeyPair) -> PushDispatcher:
  """Construct the dispatcher with its signing sender and subscription store."""
  return PushDispatcher(store=store, sender=build_push_sender(settings, vapid_keys), max_concurrency=settings.push_max_concurrency)
