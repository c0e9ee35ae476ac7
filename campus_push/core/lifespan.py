import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from campus_push.core.database import dispose_engine, get_session_factory
from campus_push.core.env_contract import validate_runtime_env_or_raise
from campus_push.core.logging import initialize_logging
from campus_push.notifications.factory import build_push_dispatcher, build_subscription_store
from campus_push.notifications.push_sender import VapidKeyPair
from campus_push.services.students import build_student_store


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Build process-wide collaborators once and hang them off `app.state`."""
  from campus_push.config import get_settings

  # Missing VAPID keys or JWT secret raise here and stop the process.
  settings = get_settings()
  logger = logging.getLogger("campus_push.core.lifespan")

  initialize_logging(settings)
  validate_runtime_env_or_raise(logger=logger, target="service")

  vapid_keys = VapidKeyPair.from_settings(settings)
  subscription_store = build_subscription_store(settings)
  app.state.vapid_keys = vapid_keys
  app.state.subscription_store = subscription_store
  app.state.student_store = build_student_store(get_session_factory() if settings.pg_dsn else None)
  app.state.push_dispatcher = build_push_dispatcher(settings, store=subscription_store, vapid_keys=vapid_keys)
  logger.info("Startup complete environment=%s persistent_store=%s", settings.environment, bool(settings.pg_dsn))

  try:
    yield
  finally:
    await dispose_engine()
    logger.info("Shutdown complete.")
