"""SQLAlchemy models for registered students."""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import DateTime, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from campus_push.core.database import Base


class Student(Base):
  """A client identity allowed to receive push notifications."""

  __tablename__ = "students"

  id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
  student_id: Mapped[str] = mapped_column(Text, unique=True, index=True, nullable=False)
  password_hash: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
