"""Runtime configuration and credential providers.

Settings are read from environment variables by Settings.from_env(); every
component receives its configuration and credentials explicitly so tests can
construct isolated instances.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Protocol

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TRANSCRIPTION_MODEL = "gpt-4o-transcribe"
DEFAULT_CHAT_MODEL = "gpt-4o"


class CredentialProvider(Protocol):
    """Source of the bearer token used for outbound API calls."""

    def get_api_key(self) -> str | None: ...


class EnvCredentialProvider:
    """Reads the API key from an environment variable on every call."""

    def __init__(self, env_var: str = "OPENAI_API_KEY") -> None:
        self.env_var = env_var

    def get_api_key(self) -> str | None:
        key = os.environ.get(self.env_var, "").strip()
        return key or None


class StaticCredentialProvider:
    """Holds a fixed API key (or None)."""

    def __init__(self, api_key: str | None) -> None:
        self._api_key = api_key or None

    def get_api_key(self) -> str | None:
        return self._api_key


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Configuration for the transcription pipeline and its collaborators."""

    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    transcription_model: str = DEFAULT_TRANSCRIPTION_MODEL
    chat_model: str = DEFAULT_CHAT_MODEL
    request_timeout_seconds: float = 120.0
    resource_timeout_seconds: float = 600.0
    chunk_threshold_seconds: float = 300.0
    chunk_window_seconds: float = 240.0
    max_chunk_size_bytes: int = 24 * 1024 * 1024
    chunk_overlap_seconds: float = 2.0
    speedup_enabled: bool = True
    speedup_factor: float = 1.5
    notify_webhook_url: str | None = None
    billing_url: str | None = None
    billing_api_key: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        """Build Settings from environment variables, falling back to defaults.

        Raises:
            ValueError: If a numeric variable cannot be parsed.
        """
        defaults = cls()
        return cls(
            openai_base_url=os.environ.get(
                "OPENAI_BASE_URL", defaults.openai_base_url
            ).rstrip("/"),
            transcription_model=os.environ.get(
                "TRANSCRIPTION_MODEL", defaults.transcription_model
            ),
            chat_model=os.environ.get("CHAT_MODEL", defaults.chat_model),
            request_timeout_seconds=_env_float(
                "REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds
            ),
            resource_timeout_seconds=_env_float(
                "RESOURCE_TIMEOUT_SECONDS", defaults.resource_timeout_seconds
            ),
            chunk_threshold_seconds=_env_float(
                "CHUNK_THRESHOLD_SECONDS", defaults.chunk_threshold_seconds
            ),
            chunk_window_seconds=_env_float(
                "CHUNK_WINDOW_SECONDS", defaults.chunk_window_seconds
            ),
            max_chunk_size_bytes=_env_int(
                "MAX_CHUNK_SIZE_BYTES", defaults.max_chunk_size_bytes
            ),
            chunk_overlap_seconds=_env_float(
                "CHUNK_OVERLAP_SECONDS", defaults.chunk_overlap_seconds
            ),
            speedup_enabled=_env_bool("SPEEDUP_ENABLED", defaults.speedup_enabled),
            speedup_factor=_env_float("SPEEDUP_FACTOR", defaults.speedup_factor),
            notify_webhook_url=os.environ.get("NOTIFY_WEBHOOK_URL") or None,
            billing_url=os.environ.get("BILLING_URL") or None,
            billing_api_key=os.environ.get("BILLING_API_KEY") or None,
        )
