"""Environment-driven settings for the concierge service.

Values are read once into an immutable :class:`ConciergeSettings`. Callers
may pass an explicit ``env`` mapping (unit tests do) instead of relying on
``os.environ``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")

DEFAULT_PERSONALITY = (
    "You are Picasso, a friendly and knowledgeable art concierge. You are well versed in all "
    "types of art, and your job is to help customers find the best wall art for their home. "
    "Only recommend art that can be printed and framed. Only talk about art, styles of art, "
    "artists and home decor. When you recommend something, put it on its own numbered line and "
    "tag the recommended name as {name|artist} for an artist or {title|artwork} for a specific "
    "piece of art."
)

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class ConciergeSettings:
    api_key: Optional[str]
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    chat_max_tokens: int = 800
    topics_max_tokens: int = 200
    temperature: float = 0.7
    topics_temperature: float = 1.0
    connect_timeout: float = 3.0
    read_timeout: float = 60.0
    silent_upstream_errors: bool = False
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    personality: str = DEFAULT_PERSONALITY

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    @property
    def completions_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError("Missing env var OPENAI_API_KEY for the completion provider")
        return self.api_key


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return (env.get(name) or "").strip().lower() in _TRUTHY


def _env_list(env: Mapping[str, str], name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = env.get(name)
    if not raw:
        return default
    values = tuple(v.strip() for v in raw.split(",") if v.strip())
    return values or default


def load_settings(env: Optional[Mapping[str, str]] = None) -> ConciergeSettings:
    env = os.environ if env is None else env
    return ConciergeSettings(
        api_key=(env.get("OPENAI_API_KEY") or "").strip() or None,
        base_url=env.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
        model=env.get("OPENAI_MODEL") or DEFAULT_MODEL,
        chat_max_tokens=_env_int(env, "CONCIERGE_CHAT_MAX_TOKENS", 800),
        topics_max_tokens=_env_int(env, "CONCIERGE_TOPICS_MAX_TOKENS", 200),
        temperature=_env_float(env, "CONCIERGE_TEMPERATURE", 0.7),
        connect_timeout=_env_float(env, "CONCIERGE_CONNECT_TIMEOUT", 3.0),
        read_timeout=_env_float(env, "CONCIERGE_READ_TIMEOUT", 60.0),
        silent_upstream_errors=_env_flag(env, "CONCIERGE_SILENT_UPSTREAM_ERRORS"),
        cors_origins=_env_list(env, "CONCIERGE_CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        personality=env.get("CONCIERGE_PERSONALITY") or DEFAULT_PERSONALITY,
    )
