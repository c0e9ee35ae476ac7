"""SQLAlchemy model for browser Web Push subscriptions."""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from campus_push.core.database import Base


class PushSubscription(Base):
  """Persist the single browser push subscription held by an identity."""

  __tablename__ = "push_subscriptions"

  identity: Mapped[str] = mapped_column(Text, primary_key=True)
  endpoint: Mapped[str] = mapped_column(Text, nullable=False)
  # Stored verbatim so the descriptor reads back exactly as the browser produced it.
  descriptor: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
