from __future__ import annotations

import logging

import pytest
from campus_push.core.env_contract import EnvContractError, validate_env_values, validate_runtime_env_or_raise
from campus_push.core.logging import _rotated_name


def _valid_env() -> dict[str, str]:
  return {
    "CAMPUS_PUSH_ENV": "production",
    "CAMPUS_PUSH_PG_DSN": "postgresql://user:pass@db/campus",
    "CAMPUS_PUSH_VAPID_PUBLIC_KEY": "public",
    "CAMPUS_PUSH_VAPID_PRIVATE_KEY": "private",
    "CAMPUS_PUSH_VAPID_SUB": "mailto:ops@example.edu",
    "CAMPUS_PUSH_JWT_SECRET": "secret",
  }


def test_validate_env_values_accepts_complete_service_env():
  assert validate_env_values(target="service", env_map=_valid_env()) == []


def test_validate_env_values_reports_missing_and_invalid_values():
  env = _valid_env()
  env.pop("CAMPUS_PUSH_VAPID_PRIVATE_KEY")
  env["CAMPUS_PUSH_VAPID_SUB"] = "ops@example.edu"

  errors = validate_env_values(target="service", env_map=env)

  assert any(error.startswith("CAMPUS_PUSH_VAPID_PRIVATE_KEY") for error in errors)
  assert any(error.startswith("CAMPUS_PUSH_VAPID_SUB") for error in errors)


def test_migrator_only_needs_database_dsn():
  assert validate_env_values(target="migrator", env_map={"CAMPUS_PUSH_PG_DSN": "postgresql://db/campus"}) == []


def test_runtime_check_raises_only_when_enforced(monkeypatch):
  monkeypatch.delenv("CAMPUS_PUSH_PG_DSN", raising=False)
  monkeypatch.delenv("DATABASE_URL", raising=False)
  logger = logging.getLogger("test.env_contract")

  monkeypatch.setenv("CAMPUS_PUSH_ENV_CONTRACT_ENFORCE", "0")
  validate_runtime_env_or_raise(logger=logger, target="migrator")

  monkeypatch.setenv("CAMPUS_PUSH_ENV_CONTRACT_ENFORCE", "1")
  with pytest.raises(EnvContractError):
    validate_runtime_env_or_raise(logger=logger, target="migrator")


def test_rotated_log_names_use_dash_suffix():
  assert _rotated_name("logs/campus_push.log.1") == "logs/campus_push.log-1"
  assert _rotated_name("logs/campus_push.log") == "logs/campus_push.log"


def test_service_starts_without_database_dsn_when_enforced(monkeypatch, caplog):
  caplog.set_level(logging.INFO)
  monkeypatch.delenv("CAMPUS_PUSH_PG_DSN", raising=False)
  monkeypatch.delenv("DATABASE_URL", raising=False)
  monkeypatch.setenv("CAMPUS_PUSH_ENV_CONTRACT_ENFORCE", "1")
  env = _valid_env()
  env.pop("CAMPUS_PUSH_PG_DSN")

  assert validate_env_values(target="service", env_map=env) == []
  validate_runtime_env_or_raise(logger=logging.getLogger("test.env_contract"), target="service")

  # Secret values are never logged.
  assert "test-private-key" not in caplog.text
  assert "CAMPUS_PUSH_VAPID_PRIVATE_KEY value=<redacted>" in caplog.text
