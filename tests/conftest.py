"""
Shared pytest fixtures for the chat backend test suite.

- ``FakeGenerationClient``: scripted stand-in for the text-generation service
- Settings with memory-only storage and a known token secret
- ``AppState`` / ``ChatService`` built on the fake client
- FastAPI ``TestClient`` and helpers for signed-in / guest headers
"""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from backend.core.config import Settings
from backend.core.errors import GenerationError
from backend.core.state import AppState, build_state
from backend.main import create_app
from backend.models.models import CommunicationStyle, Identity

TEST_SECRET = "test-secret"


# ============================================================================
# GENERATION SERVICE FAKE
# ============================================================================


class FakeGenerationClient:
    """
    Records every (instruction, text) call and answers from a script.

    Attributes:
        calls: list of (system_instruction, input_text) in call order
        reply: callable producing the rewrite, default "[rewritten] <text>"
        fail_on: substring of the instruction that makes the call fail
        delay: seconds to sleep before answering (exercises concurrency)
    """

    def __init__(
        self,
        reply: Optional[Callable[[str, str], str]] = None,
        fail_on: Optional[str] = None,
        delay: float = 0.0,
    ) -> None:
        self.calls: List[Tuple[str, str]] = []
        self.reply = reply or (lambda instruction, text: f"[rewritten] {text}")
        self.fail_on = fail_on
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, system_instruction: str, input_text: str) -> str:
        self.calls.append((system_instruction, input_text))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_on is not None and self.fail_on in system_instruction:
                raise GenerationError("upstream unavailable", status_code=503)
            return self.reply(system_instruction, input_text)
        finally:
            self.in_flight -= 1


# ============================================================================
# SETTINGS / STATE FIXTURES
# ============================================================================


def make_settings(**overrides) -> Settings:
    settings = Settings()
    settings.GEMINI_API_KEY = ""
    settings.DATA_DIR = ""
    settings.PUB_SUB_SERVICE = "memory"
    settings.AUTH_JWT_SECRET = TEST_SECRET
    settings.AUTH_JWT_ALGORITHM = "HS256"
    settings.AUTH_JWT_AUDIENCE = ""
    settings.CLIENT_DIST_DIR = ""
    settings.GUEST_MESSAGE_LIMIT = 5
    for key, value in overrides.items():
        setattr(settings, key, value)
    return settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_generation() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def state(settings: Settings, fake_generation: FakeGenerationClient) -> AppState:
    return build_state(settings, fake_generation)


@pytest.fixture
def chat_service(state: AppState):
    return state.chat_service


def identity(user_id: str, name: Optional[str] = None) -> Identity:
    return Identity(id=user_id, display_name=name or user_id.title())


def guest(guest_id: str = "guest-session-1") -> Identity:
    return Identity(id=guest_id, display_name="Guest", is_guest=True)


async def register(state: AppState, user_id: str, style: CommunicationStyle) -> Identity:
    """Register a signed-in participant with the given style."""
    who = identity(user_id)
    await state.registry.ensure(who)
    await state.registry.set_style(user_id, style)
    return who


# ============================================================================
# HTTP FIXTURES
# ============================================================================


def make_token(user_id: str, name: Optional[str] = None, secret: str = TEST_SECRET, **claims) -> str:
    payload = {"sub": user_id, "name": name or user_id.title(), **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str, name: Optional[str] = None) -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, name)}"}


def guest_headers(guest_id: str = "session-1") -> Dict[str, str]:
    return {"X-Guest-Id": guest_id}


@pytest.fixture
def app(settings: Settings, fake_generation: FakeGenerationClient):
    return create_app(settings, fake_generation)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def app_state(app) -> AppState:
    return app.state.chat
