from __future__ import annotations

import json

import httpx
import pytest
from campus_push.api.deps import get_push_dispatcher, get_subscription_store, get_vapid_keys
from campus_push.client import MessageChannel, MessageType, PushServerClient, ServerRequestError, SubscriptionAgent, SubscriptionStatus
from campus_push.client.messaging import Envelope
from campus_push.main import app
from campus_push.notifications.contracts import Gone, NoSubscribersError
from campus_push.notifications.dispatcher import PushDispatcher
from campus_push.notifications.push_sender import VapidKeyPair
from fastapi.testclient import TestClient

_PUBLIC_KEY = "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM"


def _subscription(name: str) -> dict:
  return {"endpoint": f"https://fcm.googleapis.com/fcm/send/{name}", "expirationTime": None, "keys": {"p256dh": "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I", "auth": "gq8Yh5xA9l2mQ6pR"}}


class _BrowserRegistration:
  def __init__(self, name: str) -> None:
    self.name = name
    self.current: dict | None = None
    self.shown: list[tuple[str, object]] = []

  async def get_subscription(self):
    return self.current

  async def subscribe(self, *, user_visible_only, application_server_key):
    self.current = _subscription(self.name)
    return self.current

  async def unsubscribe(self):
    removed = self.current is not None
    self.current = None
    return removed

  async def show_notification(self, title, options):
    self.shown.append((title, options))


class _BrowserPlatform:
  def __init__(self, name: str) -> None:
    self.registration = _BrowserRegistration(name)
    self.windows = None

  async def register(self, script_url):
    return self.registration


@pytest.fixture
def wired_app(subscription_store, recording_sender):
  dispatcher = PushDispatcher(store=subscription_store, sender=recording_sender)
  app.dependency_overrides[get_subscription_store] = lambda: subscription_store
  app.dependency_overrides[get_push_dispatcher] = lambda: dispatcher
  app.dependency_overrides[get_vapid_keys] = lambda: VapidKeyPair(public_key=_PUBLIC_KEY, private_key="private-key", sub="mailto:test@example.com")
  try:
    yield app
  finally:
    app.dependency_overrides.clear()


def _agent(name: str) -> tuple[SubscriptionAgent, _BrowserPlatform]:
  platform = _BrowserPlatform(name)
  server = PushServerClient("http://testserver", transport=httpx.ASGITransport(app=app))
  agent = SubscriptionAgent(platform=platform, server=server, port=MessageChannel().port2, identity_timeout=0.05)
  return agent, platform


async def _subscribed_agent(identity: str) -> tuple[SubscriptionAgent, _BrowserPlatform]:
  agent, platform = _agent(identity)
  await agent.start()
  await agent.handle_message(Envelope(data={"type": MessageType.STORE_IDENTITY, "identity": identity}))
  await agent.subscribe()
  return agent, platform


@pytest.mark.anyio
async def test_agent_subscription_reaches_store_unchanged(wired_app, subscription_store):
  agent, platform = await _subscribed_agent("A")

  record = await subscription_store.get("A")

  assert await agent.subscription_status() == SubscriptionStatus.SUBSCRIBED
  assert record is not None
  assert record.descriptor.to_dict() == platform.registration.current


@pytest.mark.anyio
async def test_resubscribe_repairs_lost_server_record(wired_app, subscription_store):
  agent, platform = await _subscribed_agent("A")
  await subscription_store.delete("A")

  await agent.subscribe()

  record = await subscription_store.get("A")
  assert record is not None
  assert record.descriptor.to_dict() == platform.registration.current


@pytest.mark.anyio
async def test_send_notification_delivers_and_prunes_gone_subscriptions(wired_app, subscription_store, recording_sender):
  await _subscribed_agent("A")
  _, platform_b = await _subscribed_agent("B")
  recording_sender.results[platform_b.registration.current["endpoint"]] = Gone(status_code=410)

  async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
    response = await client.post("/sendNotification", json={"studentIds": ["A", "B", "C"], "title": "Grades", "message": "Posted", "url": "/grades"})

  assert response.status_code == 200
  assert response.json() == {"succeeded": 1, "failed": 1, "message": "Notifications sent: 1, Failed notifications: 1"}
  assert await subscription_store.get("A") is not None
  assert await subscription_store.get("B") is None
  assert await subscription_store.get("C") is None

  _, payload = recording_sender.calls[0]
  assert json.loads(payload) == {"title": "Grades", "body": "Posted", "url": "/grades"}


@pytest.mark.anyio
async def test_delivered_payload_renders_on_client(wired_app, recording_sender):
  agent, platform = await _subscribed_agent("A")

  async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
    await client.post("/sendNotification", json={"identities": ["A"], "title": "Grades", "body": "Posted"})

  _, payload = recording_sender.calls[0]
  assert await agent.handle_push(payload) is True
  title, options = platform.registration.shown[0]
  assert title == "Grades"
  assert options.body == "Posted"


@pytest.mark.anyio
async def test_unsubscribe_then_send_reports_no_subscribers(wired_app, subscription_store, recording_sender):
  agent, _ = await _subscribed_agent("A")

  assert await agent.unsubscribe() is True

  async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
    response = await client.post("/sendNotification", json={"identities": ["A"], "title": "t", "body": "b"})

  assert response.status_code == 404
  assert recording_sender.calls == []
  with pytest.raises(NoSubscribersError):
    await PushDispatcher(store=subscription_store, sender=recording_sender).dispatch(["A"], "t", "b")


@pytest.mark.anyio
async def test_server_rejection_surfaces_as_server_request_error(wired_app):
  server = PushServerClient("http://testserver", transport=httpx.ASGITransport(app=app))

  with pytest.raises(ServerRequestError) as exc_info:
    await server.submit_subscription("A", {"endpoint": "http://insecure.example/push"})

  assert exc_info.value.status_code == 400


def test_lifespan_wires_in_memory_stack(monkeypatch):
  monkeypatch.setattr("campus_push.core.lifespan.initialize_logging", lambda settings: None)

  with TestClient(app) as client:
    assert client.get("/vapidPublicKey").json()["publicKey"] == app.state.vapid_keys.public_key
    response = client.post("/subscribe", json={"identity": "s-1", "subscription": _subscription("s-1")})
    assert response.status_code == 200

    response = client.post("/sendNotification", json={"identities": ["nobody"], "title": "t", "body": "b"})
    assert response.status_code == 404


@pytest.mark.anyio
async def test_subscription_without_expiration_reads_back_unchanged(wired_app, subscription_store):
  submitted = _subscription("no-expiry")
  submitted.pop("expirationTime")

  async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
    response = await client.post("/subscribe", json={"identity": "A", "subscription": submitted})

  assert response.status_code == 200
  records = await subscription_store.find_many(["A"])
  assert json.dumps(records[0].descriptor.to_dict()) == json.dumps(submitted)
