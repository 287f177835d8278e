# backend/core/state.py
from __future__ import annotations

import asyncio
from typing import Optional

from backend.core.config import Settings
from backend.services.auth_service import AuthService
from backend.services.chat_service import ChatMetrics, ChatService
from backend.services.connection_manager import ConnectionManager
from backend.services.delivery_gate import DeliveryGate
from backend.services.dispatcher import TranslationDispatcher
from backend.services.generation_client import GeminiGenerationClient, GenerationClient
from backend.services.message_store import MessageStore
from backend.services.participant_registry import ParticipantRegistry
from backend.services.redis_pub_sub import AsyncRedisPubSubService
from backend.services.room_manager import RoomManager
from backend.services.subscriptions import SubscriptionHub


class AppState:
    """
    Explicit handles for every service the app uses.

    Built once per application by ``build_state`` and stored on
    ``app.state.chat``; routes reach it through ``api.deps``. Tests build their
    own with a fake generation client.
    """

    def __init__(
        self,
        settings: Settings,
        generation_client: GenerationClient,
    ) -> None:
        self.settings = settings
        self.hub = SubscriptionHub()
        self.room_manager = RoomManager(data_dir=settings.DATA_DIR, hub=self.hub)
        self.message_store = MessageStore(data_dir=settings.DATA_DIR, hub=self.hub)
        self.registry = ParticipantRegistry(data_dir=settings.DATA_DIR)
        self.generation_client = generation_client
        self.metrics = ChatMetrics()

        self.gate = DeliveryGate(self.room_manager, self.message_store, guest_limit=settings.GUEST_MESSAGE_LIMIT)
        self.dispatcher = TranslationDispatcher(generation_client)
        self.chat_service = ChatService(
            self.room_manager,
            self.message_store,
            self.registry,
            self.gate,
            self.dispatcher,
            metrics=self.metrics,
        )
        self.auth_service = AuthService(
            self.registry,
            secret=settings.AUTH_JWT_SECRET,
            algorithm=settings.AUTH_JWT_ALGORITHM,
            audience=settings.AUTH_JWT_AUDIENCE,
        )
        self.connection_manager = ConnectionManager(self.chat_service)
        self.redis_service: Optional[AsyncRedisPubSubService] = None
        self.redis_listener: Optional[asyncio.Task] = None


def build_state(settings: Settings, generation_client: Optional[GenerationClient] = None) -> AppState:
    if generation_client is None:
        generation_client = GeminiGenerationClient(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GENERATION_MODEL,
            api_base=settings.GENERATION_API_BASE,
            timeout=settings.GENERATION_TIMEOUT_SECONDS,
        )
    return AppState(settings, generation_client)
