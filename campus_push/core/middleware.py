import json
import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from campus_push.config import get_settings

logger = logging.getLogger("campus_push.core.middleware")

# Credentials and subscription key material never reach the logs.
_SENSITIVE_KEYS = {"password", "credential", "token", "key", "keys", "p256dh", "auth", "authorization", "cookie", "secret", "privatekey"}


def redact_sensitive_keys(data: Any) -> Any:
  """Redact sensitive keys from a dictionary or list recursively."""
  if isinstance(data, dict):
    return {k: ("***" if k.lower() in _SENSITIVE_KEYS else redact_sensitive_keys(v)) for k, v in data.items()}
  if isinstance(data, list):
    return [redact_sensitive_keys(item) for item in data]
  return data


def _header(scope: Scope, name: bytes) -> str | None:
  for key, value in scope.get("headers", []):
    if key.lower() == name:
      return value.decode("latin-1")
  return None


def format_body_for_log(body: bytes, content_type: str | None, max_bytes: int) -> str:
  """Format a request/response body for logging with redaction."""
  if not body:
    return "<empty>"

  if not content_type or "json" not in content_type.lower():
    return f"<non-json body {len(body)} bytes>"

  # Avoid parsing truncated JSON to prevent misleading logs.
  if len(body) > max_bytes:
    return f"<json body {len(body)} bytes, over log limit>"

  try:
    parsed = json.loads(body.decode("utf-8"))
  except (UnicodeDecodeError, json.JSONDecodeError):
    return f"<unparsable json body {len(body)} bytes>"

  return json.dumps(redact_sensitive_keys(parsed), ensure_ascii=True)


class RequestLoggingMiddleware:
  """Log request/response metadata and tag every response with a request id."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    # Skip non-HTTP scopes to avoid interfering with websocket or lifespan events.
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    settings = get_settings()
    request_id = str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    path = scope.get("path", "")
    logger.info("Incoming request request_id=%s %s %s", request_id, method, path)

    receive_wrapper = receive
    if settings.log_http_bodies:
      # Drain the body once so it can be logged, then replay it downstream.
      chunks: list[bytes] = []
      more_body = True
      while more_body:
        message = await receive()
        if message.get("type") != "http.request":
          break
        chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)

      request_body = b"".join(chunks)
      replayed = False

      async def receive_wrapper() -> Message:
        nonlocal replayed
        if replayed:
          return {"type": "http.request", "body": b"", "more_body": False}
        replayed = True
        return {"type": "http.request", "body": request_body, "more_body": False}

      logger.info("Request body request_id=%s body=%s", request_id, format_body_for_log(request_body, _header(scope, b"content-type"), settings.log_http_body_bytes))

    status_code = 0
    response_content_type: str | None = None
    response_chunks: list[bytes] = []

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code, response_content_type
      if message.get("type") == "http.response.start":
        status_code = message.get("status", 0)
        headers = MutableHeaders(scope=message)
        response_content_type = headers.get("content-type")
        if "x-request-id" not in headers:
          headers["x-request-id"] = request_id
        # Strip implementation-revealing headers.
        for header in ("x-powered-by", "server"):
          if header in headers:
            del headers[header]
      elif settings.log_http_bodies and message.get("type") == "http.response.body":
        response_chunks.append(message.get("body", b""))

      await send(message)

    await self.app(scope, receive_wrapper, send_wrapper)

    if settings.log_http_bodies:
      logger.info("Response body request_id=%s body=%s", request_id, format_body_for_log(b"".join(response_chunks), response_content_type, settings.log_http_body_bytes))

    process_time = (time.time() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code, process_time)
