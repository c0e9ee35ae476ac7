"""Routes for student registration, login and listing."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_core import PydanticCustomError

from campus_push.api.deps import get_student_store
from campus_push.config import Settings, get_settings
from campus_push.core.security import issue_token
from campus_push.services.students import StudentStore

logger = logging.getLogger(__name__)

_MAX_CREDENTIAL_BYTES = 72

router = APIRouter()


class CredentialsRequest(BaseModel):
  """Identity plus the credential proving it."""

  identity: str = Field(min_length=1, max_length=256, validation_alias=AliasChoices("identity", "studentId"))
  credential: str = Field(min_length=1, max_length=_MAX_CREDENTIAL_BYTES, validation_alias=AliasChoices("credential", "password"))

  @field_validator("credential")
  @classmethod
  def validate_credential_length(cls, value: str) -> str:
    """bcrypt only accepts 72 bytes of input."""
    if len(value.encode("utf-8")) > _MAX_CREDENTIAL_BYTES:
      raise PydanticCustomError("credential_too_long", "credential must be at most 72 bytes when UTF-8 encoded.")
    return value


class StudentSummary(BaseModel):
  identity: str


@router.get("/students", response_model=list[StudentSummary])
async def list_students(store: StudentStore = Depends(get_student_store)) -> list[StudentSummary]:  # noqa: B008
  """List registered identities; credentials are never included."""
  identities = await store.list_identities()
  return [StudentSummary(identity=identity) for identity in identities]


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: CredentialsRequest, store: StudentStore = Depends(get_student_store)) -> dict[str, str]:  # noqa: B008
  """Register a new student identity."""
  await store.register(payload.identity, payload.credential)
  logger.info("Student registered identity=%s", payload.identity)
  return {"message": "Student registered successfully"}


@router.post("/login")
async def login(payload: CredentialsRequest, store: StudentStore = Depends(get_student_store), settings: Settings = Depends(get_settings)) -> dict[str, str]:  # noqa: B008
  """Verify credentials and issue a signed session token."""
  await store.verify(payload.identity, payload.credential)
  token = issue_token(payload.identity, secret=settings.jwt_secret, ttl_seconds=settings.jwt_ttl_seconds)
  return {"message": "Login successful", "token": token}
