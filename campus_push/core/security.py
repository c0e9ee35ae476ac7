"""Credential hashing and login token helpers."""

from __future__ import annotations

import datetime
from typing import Any

import bcrypt
import jwt

_JWT_ALGORITHM = "HS256"


def hash_credential(credential: str) -> str:
  """Hash a credential with a fresh bcrypt salt."""
  return bcrypt.hashpw(credential.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_credential(credential: str, credential_hash: str) -> bool:
  """Check a credential against a stored bcrypt hash."""
  try:
    return bcrypt.checkpw(credential.encode("utf-8"), credential_hash.encode("utf-8"))
  except ValueError:
    # Malformed stored hashes never match.
    return False


def issue_token(identity: str, *, secret: str, ttl_seconds: int, now: datetime.datetime | None = None) -> str:
  """Sign a short-lived token naming the authenticated identity."""
  issued_at = now or datetime.datetime.now(datetime.UTC)
  claims = {"sub": identity, "iat": issued_at, "exp": issued_at + datetime.timedelta(seconds=ttl_seconds)}
  return jwt.encode(claims, secret, algorithm=_JWT_ALGORITHM)


def decode_token(token: str, *, secret: str) -> dict[str, Any]:
  """Verify a token signature and expiry, raising `jwt.PyJWTError` on failure."""
  return jwt.decode(token, secret, algorithms=[_JWT_ALGORITHM])
