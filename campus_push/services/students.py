"""Student identity store.

Registration and login are collaborators of the push pipeline: they decide
which identities exist, while subscriptions and delivery never read
credentials.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.concurrency import run_in_threadpool

from campus_push.core.security import hash_credential, verify_credential
from campus_push.notifications.contracts import StorageError
from campus_push.schema.sql import Student

logger = logging.getLogger(__name__)


class StudentAlreadyExistsError(Exception):
  """Raised when registering an identity that is already taken."""


class InvalidCredentialsError(Exception):
  """Raised when an identity/credential pair does not match."""


class StudentRepository:
  """Persist student identities in Postgres."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
    self._session_factory = session_factory

  async def register(self, identity: str, credential: str) -> None:
    """Create a student with a hashed credential."""
    credential_hash = await run_in_threadpool(hash_credential, credential)
    try:
      async with self._session_factory() as session:
        session.add(Student(student_id=identity, password_hash=credential_hash))
        await session.commit()
    except IntegrityError as exc:
      raise StudentAlreadyExistsError(identity) from exc
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to register student: {type(exc).__name__}") from exc

  async def verify(self, identity: str, credential: str) -> None:
    """Raise `InvalidCredentialsError` unless the credential matches."""
    try:
      async with self._session_factory() as session:
        result = await session.execute(select(Student.password_hash).where(Student.student_id == identity))
        credential_hash = result.scalar_one_or_none()
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to load student: {type(exc).__name__}") from exc

    if credential_hash is None or not await run_in_threadpool(verify_credential, credential, credential_hash):
      raise InvalidCredentialsError(identity)

  async def list_identities(self) -> list[str]:
    """List registered identities in registration order."""
    try:
      async with self._session_factory() as session:
        result = await session.execute(select(Student.student_id).order_by(Student.created_at, Student.student_id))
        return list(result.scalars().all())
    except (SQLAlchemyError, OSError) as exc:
      raise StorageError(f"Failed to list students: {type(exc).__name__}") from exc


class InMemoryStudentRepository:
  """Process-local identity store used when Postgres is not configured."""

  def __init__(self) -> None:
    self._hashes: dict[str, str] = {}
    self._lock = asyncio.Lock()

  async def register(self, identity: str, credential: str) -> None:
    credential_hash = await run_in_threadpool(hash_credential, credential)
    async with self._lock:
      if identity in self._hashes:
        raise StudentAlreadyExistsError(identity)
      self._hashes[identity] = credential_hash

  async def verify(self, identity: str, credential: str) -> None:
    credential_hash = self._hashes.get(identity)
    if credential_hash is None or not await run_in_threadpool(verify_credential, credential, credential_hash):
      raise InvalidCredentialsError(identity)

  async def list_identities(self) -> list[str]:
    return list(self._hashes)


class StudentStore(Protocol):
  """Identity store contract shared by both backends."""

  async def register(self, identity: str, credential: str) -> None: ...

  async def verify(self, identity: str, credential: str) -> None: ...

  async def list_identities(self) -> list[str]: ...


def build_student_store(session_factory: async_sessionmaker[AsyncSession] | None) -> StudentStore:
  """Use Postgres when a session factory is available."""
  if session_factory is None:
    logger.warning("CAMPUS_PUSH_PG_DSN is not set; student identities are kept in memory only.")
    return InMemoryStudentRepository()

  return StudentRepository(session_factory)
