"""Minimal dotenv loading for local development."""

from __future__ import annotations

import os
import re
from pathlib import Path

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def default_env_path() -> Path:
  """Resolve the `.env` file at the repository root."""
  return Path(__file__).resolve().parents[2] / ".env"


def _strip_inline_comment(value: str) -> str:
  # Only treat `#` as a comment delimiter when it is preceded by whitespace.
  match = re.search(r"\s#", value)
  if not match:
    return value.strip()

  return value[: match.start()].rstrip()


def parse_env_line(raw: str, *, lineno: int, path: Path) -> tuple[str, str] | None:
  """Parse a single dotenv line, returning (key, value) or None when ignored."""
  line = raw.strip()
  if not line or line.startswith("#"):
    return None

  if line.startswith("export "):
    line = line[len("export ") :].lstrip()

  if "=" not in line:
    raise RuntimeError(f"{path}:{lineno}: invalid line (expected KEY=VALUE): {raw.rstrip()}")

  key, value = line.split("=", 1)
  key = key.strip()
  if not _ENV_KEY_RE.fullmatch(key):
    raise RuntimeError(f"{path}:{lineno}: invalid key {key!r}")

  value = value.strip()
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
    return key, value[1:-1]

  return key, _strip_inline_comment(value)


def load_env_file(path: Path, *, override: bool) -> None:
  """Load KEY=VALUE pairs into `os.environ` when the file exists."""
  if not path.exists():
    return

  for lineno, raw in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
    parsed = parse_env_line(raw, lineno=lineno, path=path)
    if not parsed:
      continue

    key, value = parsed
    if not override and key in os.environ:
      continue

    os.environ[key] = value
