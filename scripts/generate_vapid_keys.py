"""Generate a VAPID key pair for Web Push signing.

Prints base64url values ready for CAMPUS_PUSH_VAPID_PUBLIC_KEY and
CAMPUS_PUSH_VAPID_PRIVATE_KEY. Keep the private key on the server only.
"""

from __future__ import annotations

import argparse
import os
import sys

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from campus_push.utils.keys import bytes_to_url_base64  # noqa: E402


def generate_vapid_keys() -> tuple[str, str]:
  """Return (public, private) keys as unpadded base64url strings."""
  private_key = ec.generate_private_key(ec.SECP256R1())
  # Browsers expect the uncompressed point: 0x04 || X || Y.
  public_bytes = private_key.public_key().public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
  private_bytes = private_key.private_numbers().private_value.to_bytes(32, "big")
  return bytes_to_url_base64(public_bytes), bytes_to_url_base64(private_bytes)


def main() -> None:
  parser = argparse.ArgumentParser(description="Generate VAPID keys for Web Push.")
  parser.add_argument("--sub", default="mailto:notifications@example.com", help="Contact claim for the push service.")
  args = parser.parse_args()

  public_key, private_key = generate_vapid_keys()
  print(f"CAMPUS_PUSH_VAPID_PUBLIC_KEY={public_key}")
  print(f"CAMPUS_PUSH_VAPID_PRIVATE_KEY={private_key}")
  print(f"CAMPUS_PUSH_VAPID_SUB={args.sub}")


if __name__ == "__main__":
  main()
