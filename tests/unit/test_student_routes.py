from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from campus_push.api.deps import get_student_store
from campus_push.config import get_settings
from campus_push.core.security import decode_token
from campus_push.main import app
from campus_push.notifications.contracts import StorageError
from campus_push.services.students import InMemoryStudentRepository
from fastapi.testclient import TestClient


@pytest.fixture
def client():
  store = InMemoryStudentRepository()
  app.dependency_overrides[get_student_store] = lambda: store
  try:
    yield TestClient(app)
  finally:
    app.dependency_overrides.clear()


def test_register_then_login_issues_token(client):
  response = client.post("/register", json={"studentId": "s-1", "password": "hunter22"})
  assert response.status_code == 201
  assert response.json() == {"message": "Student registered successfully"}

  response = client.post("/login", json={"studentId": "s-1", "password": "hunter22"})
  assert response.status_code == 200
  body = response.json()
  assert body["message"] == "Login successful"
  claims = decode_token(body["token"], secret=get_settings().jwt_secret)
  assert claims["sub"] == "s-1"


def test_register_duplicate_identity_conflicts(client):
  assert client.post("/register", json={"identity": "s-1", "credential": "pw"}).status_code == 201

  response = client.post("/register", json={"identity": "s-1", "credential": "other"})

  assert response.status_code == 409


def test_register_requires_both_fields(client):
  assert client.post("/register", json={"studentId": "s-1"}).status_code == 400
  assert client.post("/register", json={"password": "pw"}).status_code == 400
  assert client.post("/register", json={"studentId": "", "password": "pw"}).status_code == 400


def test_login_rejects_wrong_credential_and_unknown_identity_alike(client):
  client.post("/register", json={"studentId": "s-1", "password": "right"})

  wrong = client.post("/login", json={"studentId": "s-1", "password": "wrong"})
  unknown = client.post("/login", json={"studentId": "nobody", "password": "right"})

  assert wrong.status_code == 401
  assert unknown.status_code == 401
  assert wrong.json()["detail"] == unknown.json()["detail"] == "Invalid credentials"


def test_list_students_omits_credentials(client):
  client.post("/register", json={"studentId": "s-1", "password": "pw-one"})
  client.post("/register", json={"studentId": "s-2", "password": "pw-two"})

  response = client.get("/students")

  assert response.status_code == 200
  assert response.json() == [{"identity": "s-1"}, {"identity": "s-2"}]
  assert "pw-one" not in response.text


def test_register_reports_storage_failure_as_500():
  store = AsyncMock()
  store.register.side_effect = StorageError("database unavailable")
  app.dependency_overrides[get_student_store] = lambda: store
  client = TestClient(app)

  try:
    response = client.post("/register", json={"studentId": "s-1", "password": "pw"})
    assert response.status_code == 500
  finally:
    app.dependency_overrides.clear()


def test_register_rejects_credentials_longer_than_bcrypt_accepts(client):
  response = client.post("/register", json={"identity": "s-long", "credential": "x" * 100})

  assert response.status_code == 400
  assert "x" * 100 not in response.text
  assert client.post("/login", json={"identity": "s-long", "credential": "x" * 100}).status_code == 400


def test_credential_limit_counts_utf8_bytes(client):
  # Two bytes per character once encoded.
  assert client.post("/register", json={"identity": "s-wide", "credential": "é" * 37}).status_code == 400
  assert client.post("/register", json={"identity": "s-wide", "credential": "é" * 36}).status_code == 201
  assert client.post("/login", json={"identity": "s-wide", "credential": "é" * 36}).status_code == 200
