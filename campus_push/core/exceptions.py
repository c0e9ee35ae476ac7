import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from campus_push.notifications.contracts import InvalidRequestError, NoSubscribersError, StorageError
from campus_push.services.students import InvalidCredentialsError, StudentAlreadyExistsError

logger = logging.getLogger("campus_push.core.exceptions")


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  payload: dict[str, Any] = {"detail": detail}
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


def sanitize_validation_errors(errors: Any) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key not in {"input", "url"}}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Catch unhandled errors without leaking internals."""
  request_id = _request_id(request)
  logger.error("Unhandled exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=exc)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Missing or malformed fields are client errors."""
  request_id = _request_id(request)
  sanitized_errors = sanitize_validation_errors(exc.errors())
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle HTTPExceptions while never exposing 5xx details."""
  from campus_push.config import get_settings

  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  if get_settings().log_http_4xx:
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=exc.headers)


async def invalid_request_exception_handler(request: Request, exc: InvalidRequestError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_payload(str(exc) or "Invalid request", request_id=_request_id(request)))


async def no_subscribers_exception_handler(request: Request, exc: NoSubscribersError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_error_payload(str(exc) or "No subscriptions found", request_id=_request_id(request)))


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
  """The backing store is unreachable; report a server fault."""
  request_id = _request_id(request)
  logger.error("Storage failure request_id=%s path=%s error=%s", request_id, request.url.path, exc, exc_info=exc)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def invalid_credentials_exception_handler(request: Request, exc: InvalidCredentialsError) -> JSONResponse:
  # The same message covers unknown identities and wrong credentials.
  return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=_error_payload("Invalid credentials", request_id=_request_id(request)))


async def student_exists_exception_handler(request: Request, exc: StudentAlreadyExistsError) -> JSONResponse:
  return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=_error_payload("Student already registered", request_id=_request_id(request)))


def register_exception_handlers(app: FastAPI) -> None:
  """Attach every handler to the application."""
  app.add_exception_handler(Exception, global_exception_handler)
  app.add_exception_handler(HTTPException, http_exception_handler)
  app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
  app.add_exception_handler(InvalidRequestError, invalid_request_exception_handler)
  app.add_exception_handler(NoSubscribersError, no_subscribers_exception_handler)
  app.add_exception_handler(StorageError, storage_exception_handler)
  app.add_exception_handler(InvalidCredentialsError, invalid_credentials_exception_handler)
  app.add_exception_handler(StudentAlreadyExistsError, student_exists_exception_handler)
