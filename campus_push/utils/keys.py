"""Base64url helpers for VAPID and subscription key material."""

from __future__ import annotations

import base64
import binascii


def url_base64_to_bytes(value: str) -> bytes:
  """Decode an unpadded base64url string into raw bytes.

  Browsers expect the VAPID public key as the raw uncompressed EC point, while
  servers publish it as base64url text without padding.
  """
  if not value:
    raise ValueError("key must not be empty.")

  padded = value + "=" * (-len(value) % 4)
  try:
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
  except (binascii.Error, UnicodeEncodeError) as exc:
    raise ValueError("key is not valid base64url.") from exc


def bytes_to_url_base64(raw: bytes) -> str:
  """Encode raw bytes as unpadded base64url."""
  return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
