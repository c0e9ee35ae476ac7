from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from campus_push.api.routes import push, students
from campus_push.config import get_settings
from campus_push.core.exceptions import register_exception_handlers
from campus_push.core.lifespan import lifespan
from campus_push.core.middleware import RequestLoggingMiddleware

settings = get_settings()

app = FastAPI(title="campus-push", lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"])
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(students.router, tags=["students"])
app.include_router(push.router, tags=["push"])
