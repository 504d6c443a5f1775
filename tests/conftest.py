"""
Shared fixtures.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Tuple

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from src.core.config import reset_settings
from src.models.schemas.session import UserSession
from src.services.github.github_client import GitHubClient


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    monkeypatch.setenv("GITHUB_APP_ID", "12345")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("FRONTEND_URL", "https://app.example.com")
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="session")
def rsa_key_pair() -> Tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def session() -> UserSession:
    now = datetime.now(timezone.utc)
    return UserSession(
        installation_id="42",
        user_login="octocat",
        user_id=1,
        avatar_url="https://avatars.example.com/octocat",
        repo_name="FaaSr-workflow",
        created_at=now,
        expires_at=now + timedelta(days=7),
    )


class RecordingTransport:
    """
    Routes requests to canned responses keyed by (method, path) and records them.
    """

    def __init__(self, routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]]):
        self.routes = routes
        self.requests: List[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return handler(request)

    def bodies(self, method: str, path: str) -> List[dict]:
        return [
            json.loads(r.content)
            for r in self.requests
            if r.method == method and r.url.path == path and r.content
        ]


def respond(status_code: int = 200, payload=None) -> Callable[[httpx.Request], httpx.Response]:
    def _handler(request: httpx.Request) -> httpx.Response:
        if payload is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=payload)
    return _handler


@pytest.fixture
def make_client():
    def _make(routes) -> Tuple[GitHubClient, RecordingTransport]:
        recorder = RecordingTransport(routes)
        return GitHubClient("installation-token", transport=recorder.transport), recorder
    return _make


@pytest.fixture(name="respond")
def respond_fixture():
    return respond


@pytest.fixture
def recording_transport():
    return RecordingTransport
