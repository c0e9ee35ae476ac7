"""Runtime environment contract checks for service and migrator processes.

How/Why:
- Keep runtime configuration explicit so deploy-time mistakes fail immediately.
- Never log secret values; report only whether they are present.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

EnvUseTarget = Literal["service", "migrator", "both"]
EnvValidator = Callable[[str], str | None]


@dataclass(frozen=True)
class EnvVarDefinition:
  """Describe how and where an environment variable must be validated."""

  name: str
  required: bool
  secret: bool
  used_by: EnvUseTarget
  validator: EnvValidator | None = None


class EnvContractError(RuntimeError):
  """Raised when required runtime environment keys are missing or invalid."""


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  if raw is None:
    return default

  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _validate_environment_name(value: str) -> str | None:
  if value.strip().lower() in {"dev", "development", "stage", "staging", "prod", "production", "test", "testing"}:
    return None

  return "must be one of: development, stage, production, test (or aliases)."


def _validate_vapid_sub(value: str) -> str | None:
  if value.startswith("mailto:") or value.startswith("https://"):
    return None

  return "must start with 'mailto:' or 'https://'."


def _validate_dsn(value: str) -> str | None:
  if value.startswith("postgresql://") or value.startswith("postgresql+asyncpg://"):
    return None

  return "must be a postgresql:// DSN."


REQUIRED_ENV_REGISTRY: tuple[EnvVarDefinition, ...] = (
  EnvVarDefinition(name="CAMPUS_PUSH_ENV", required=False, secret=False, used_by="service", validator=_validate_environment_name),
  EnvVarDefinition(name="CAMPUS_PUSH_PG_DSN", required=True, secret=True, used_by="migrator", validator=_validate_dsn),
  EnvVarDefinition(name="CAMPUS_PUSH_VAPID_PUBLIC_KEY", required=True, secret=False, used_by="service"),
  EnvVarDefinition(name="CAMPUS_PUSH_VAPID_PRIVATE_KEY", required=True, secret=True, used_by="service"),
  EnvVarDefinition(name="CAMPUS_PUSH_VAPID_SUB", required=False, secret=False, used_by="service", validator=_validate_vapid_sub),
  EnvVarDefinition(name="CAMPUS_PUSH_JWT_SECRET", required=True, secret=True, used_by="service"),
)


def _iter_applicable_definitions(*, target: Literal["service", "migrator"]) -> tuple[EnvVarDefinition, ...]:
  return tuple(definition for definition in REQUIRED_ENV_REGISTRY if definition.used_by in {"both", target})


def _resolve_value(definition: EnvVarDefinition) -> str:
  raw = os.getenv(definition.name)
  if raw is not None:
    return raw

  if definition.name == "CAMPUS_PUSH_PG_DSN":
    return os.getenv("DATABASE_URL", "")

  return ""


def validate_env_values(*, target: Literal["service", "migrator"], env_map: dict[str, str]) -> list[str]:
  """Validate a provided env map against contract rules for a target process."""
  errors: list[str] = []
  for definition in _iter_applicable_definitions(target=target):
    value = env_map.get(definition.name, "").strip()
    if definition.required and value == "":
      errors.append(f"{definition.name}: required variable is missing.")
      continue

    if definition.validator and value != "":
      validation_error = definition.validator(value)
      if validation_error:
        errors.append(f"{definition.name}: {validation_error}")

  return errors


def validate_runtime_env_or_raise(*, logger: logging.Logger, target: Literal["service", "migrator"]) -> None:
  """Log the resolved env contract and raise when enforcement is enabled."""
  enforce = _parse_bool(os.getenv("CAMPUS_PUSH_ENV_CONTRACT_ENFORCE"), default=False)
  resolved: dict[str, str] = {}
  definitions = _iter_applicable_definitions(target=target)
  for definition in definitions:
    value = _resolve_value(definition)
    resolved[definition.name] = value
    if definition.secret:
      logger.info("ENV_CHECK key=%s value=%s", definition.name, "<redacted>" if value else "<missing>")
    else:
      logger.info("ENV_CHECK key=%s value=%s", definition.name, value or "<missing>")

  errors = validate_env_values(target=target, env_map=resolved)
  if not errors:
    logger.info("ENV_CHECK status=ok target=%s checked=%d", target, len(definitions))
    return

  message = "ENV_CHECK status=failed target={target} violations:\n- {errors}".format(target=target, errors="\n- ".join(errors))
  if enforce:
    logger.error(message)
    raise EnvContractError(message)

  logger.warning("ENV_CHECK enforcement disabled (set CAMPUS_PUSH_ENV_CONTRACT_ENFORCE=1 to fail startup)")
  logger.warning(message)
