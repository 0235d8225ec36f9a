from __future__ import annotations

import json
from functools import partial

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import routes
from app.clients.user_ms import UserMsClient

ACCOUNT = {"id": "u1", "username": "alice", "email": "alice@example.com"}


class FakeUserService:
    """In-memory user service keyed by ``(method, path)``."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def reply(self, method: str, path: str, status_code: int = 200, body=None) -> None:
        if body is None:
            self.routes[(method, path)] = httpx.Response(status_code)
        else:
            self.routes[(method, path)] = httpx.Response(status_code, json=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"message": "route not stubbed"})
        return response


@pytest.fixture
def api_client():
    """Provide a FastAPI test client wired to a fake user service."""
    user_service = FakeUserService()

    app = FastAPI()
    app.include_router(routes.router)
    app.state.user_ms_client_factory = partial(
        UserMsClient, "http://user-ms", transport=httpx.MockTransport(user_service)
    )

    with TestClient(app) as client:
        yield client, user_service


def test_sign_up_returns_created_account(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/auth/sign-up", 201, ACCOUNT)

    response = client.post(
        "/v1/auth/sign-up",
        json={"username": "alice", "email": "alice@example.com", "password": "pw"},
    )

    assert response.status_code == 201
    assert response.json() == ACCOUNT
    assert json.loads(user_service.requests[0].content)["username"] == "alice"


def test_sign_up_conflict_is_forwarded(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/auth/sign-up", 409, {"message": "exists"})

    response = client.post(
        "/v1/auth/sign-up",
        json={"username": "alice", "email": "alice@example.com", "password": "pw"},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "exists"


def test_sign_up_forwards_email_for_upstream_validation(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/auth/sign-up", 400, {"message": ["email must be an email"]})

    response = client.post(
        "/v1/auth/sign-up",
        json={"username": "alice", "email": "Not-An-Email", "password": "pw"},
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "email must be an email"
    assert json.loads(user_service.requests[0].content)["email"] == "Not-An-Email"


def test_who_am_i_returns_upstream_email_unchanged(api_client):
    client, user_service = api_client
    user_service.reply(
        "GET", "/auth/who-am-i", 200, {"id": "u1", "username": "bob", "email": "Bob@Dev.local"}
    )

    response = client.get("/v1/auth/who-am-i", headers={"Authorization": "Bearer abc123"})

    assert response.status_code == 200
    assert response.json()["email"] == "Bob@Dev.local"


def test_login_returns_token(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/auth/login", 200, {"token": "session-token"})

    response = client.post("/v1/auth/login", json={"username": "alice", "password": "pw"})

    assert response.status_code == 200
    assert response.json()["token"] == "session-token"


def test_who_am_i_forwards_bearer_token(api_client):
    client, user_service = api_client
    user_service.reply("GET", "/auth/who-am-i", 200, ACCOUNT)

    response = client.get("/v1/auth/who-am-i", headers={"Authorization": "Bearer abc123"})

    assert response.status_code == 200
    assert response.json() == ACCOUNT
    assert user_service.requests[0].headers["Authorization"] == "Bearer abc123"


def test_who_am_i_without_authorization_is_rejected(api_client):
    client, user_service = api_client
    user_service.reply("GET", "/auth/who-am-i", 200, ACCOUNT)

    response = client.get("/v1/auth/who-am-i")

    assert response.status_code == 401
    assert response.json()["detail"] == "No authorization header was provided"
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert user_service.requests == []


def test_profile_maps_account_to_security_profile(api_client):
    client, user_service = api_client
    user_service.reply("GET", "/auth/who-am-i", 200, ACCOUNT)

    response = client.get("/v1/auth/profile", headers={"Authorization": "Bearer abc123"})

    assert response.status_code == 200
    assert response.json() == {
        "security_id": "u1",
        "username": "alice",
        "email": "alice@example.com",
    }


def test_email_verification_flow(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/account/request-email-verification", 200, ACCOUNT)
    user_service.reply("PATCH", "/account/verify-email", 200, ACCOUNT)
    headers = {"Authorization": "Bearer verify-token"}

    requested = client.post("/v1/account/request-email-verification", headers=headers)
    verified = client.patch("/v1/account/verify-email", headers=headers)

    assert requested.status_code == 200
    assert verified.status_code == 200
    assert [r.headers["Authorization"] for r in user_service.requests] == [
        "Bearer verify-token",
        "Bearer verify-token",
    ]


def test_password_recovery_returns_no_content(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/credentials/request-password-recovery", 200, {"sent": True})

    response = client.post(
        "/v1/credentials/request-password-recovery", json={"email": "alice@example.com"}
    )

    assert response.status_code == 204
    assert response.content == b""
    assert "Authorization" not in user_service.requests[0].headers


def test_update_password_requires_token(api_client):
    client, user_service = api_client
    user_service.reply("PATCH", "/credentials/update-password", 204)

    rejected = client.patch("/v1/credentials/update-password", json={"password": "new-pw"})
    accepted = client.patch(
        "/v1/credentials/update-password",
        json={"password": "new-pw"},
        headers={"Authorization": "Bearer abc123"},
    )

    assert rejected.status_code == 401
    assert accepted.status_code == 204
    assert len(user_service.requests) == 1


def test_clients_are_not_shared_between_requests(api_client):
    client, user_service = api_client
    user_service.reply("POST", "/auth/login", 200, {"token": "session-token"})
    user_service.reply("GET", "/auth/who-am-i", 200, ACCOUNT)

    client.get("/v1/auth/who-am-i", headers={"Authorization": "Bearer first"})
    client.post("/v1/auth/login", json={"username": "alice", "password": "pw"})

    assert user_service.requests[0].headers["Authorization"] == "Bearer first"
    assert "Authorization" not in user_service.requests[1].headers
