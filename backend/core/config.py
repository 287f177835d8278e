# backend/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - GEMINI_API_KEY / GENERATION_MODEL the text-generation service used for rewrites
        - GUEST_MESSAGE_LIMIT how many messages a guest may send per room
        - DATA_DIR where rooms, participants and messages are persisted (empty = memory only)
        - PUB_SUB_SERVICE the fan-out relay to use: "memory" (single instance) or "redis"
        - AUTH_JWT_SECRET the secret shared with the identity provider for ID tokens
    """

    # Load environment variables from the .env file
    load_dotenv()

    def __init__(self) -> None:
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        self.GENERATION_MODEL: str = os.getenv("GENERATION_MODEL", "gemini-2.5-flash")
        self.GENERATION_API_BASE: str = os.getenv(
            "GENERATION_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
        )
        self.GENERATION_TIMEOUT_SECONDS: float = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))

        self.GUEST_MESSAGE_LIMIT: int = int(os.getenv("GUEST_MESSAGE_LIMIT", "5"))

        self.DATA_DIR: str = os.getenv("DATA_DIR", "")

        self.PUB_SUB_SERVICE: Literal["memory", "redis"] = os.getenv("PUB_SUB_SERVICE", "memory")
        self.REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
        self.REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
        self.REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
        self.REDIS_SSL: bool = _as_bool(os.getenv("REDIS_SSL", "false"))

        self.AUTH_JWT_SECRET: str = os.getenv("AUTH_JWT_SECRET", "")
        self.AUTH_JWT_ALGORITHM: str = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
        self.AUTH_JWT_AUDIENCE: str = os.getenv("AUTH_JWT_AUDIENCE", "")

        self.CORS_ORIGINS: list[str] = [
            origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
        ]
        self.CLIENT_DIST_DIR: str = os.getenv("CLIENT_DIST_DIR", "")

    @property
    def redis_url(self) -> str:
        scheme = "rediss" if self.REDIS_SSL else "redis"
        return f"{scheme}://:{self.REDIS_ACCESS_KEY}@{self.REDIS_HOST}:{self.REDIS_PORT}"


settings = Settings()
