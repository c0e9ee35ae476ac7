"""Shared FastAPI dependencies resolving process-wide collaborators."""

from __future__ import annotations

from fastapi import Request

from campus_push.notifications.contracts import SubscriptionStore
from campus_push.notifications.dispatcher import PushDispatcher
from campus_push.notifications.push_sender import VapidKeyPair
from campus_push.services.students import StudentStore


def get_vapid_keys(request: Request) -> VapidKeyPair:
  """Return the signing key pair built at startup."""
  return request.app.state.vapid_keys


def get_subscription_store(request: Request) -> SubscriptionStore:
  return request.app.state.subscription_store


def get_push_dispatcher(request: Request) -> PushDispatcher:
  return request.app.state.push_dispatcher


def get_student_store(request: Request) -> StudentStore:
  return request.app.state.student_store
