"""
Runtime configuration for the text service client.
Values come from the environment (populated from backend/.env by main.py).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from pipeline.errors import ConfigurationError

logger = logging.getLogger(__name__)

_DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
_DEFAULT_MODEL = "gemini-2.0-flash"


@dataclass(frozen=True)
class NarrativeSettings:
    api_key: str
    model: str = _DEFAULT_MODEL
    api_base: str = _DEFAULT_API_BASE
    temperature: float = 0.4
    max_output_tokens: int = 1024
    timeout_seconds: float = 60.0
    structured_output: bool = True

    @property
    def generate_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/models/{self.model}:generateContent"


_SETTINGS: Optional[NarrativeSettings] = None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def load_settings(force_reload: bool = False) -> NarrativeSettings:
    global _SETTINGS
    if _SETTINGS is not None and not force_reload:
        return _SETTINGS

    api_key = os.getenv("GEMINI_API_KEY", "").strip()
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY is not set; the narrative service cannot be configured")

    _SETTINGS = NarrativeSettings(
        api_key=api_key,
        model=os.getenv("GEMINI_MODEL", _DEFAULT_MODEL).strip() or _DEFAULT_MODEL,
        api_base=os.getenv("GEMINI_API_BASE", _DEFAULT_API_BASE).strip() or _DEFAULT_API_BASE,
        temperature=_env_float("NARRATIVE_TEMPERATURE", 0.4),
        max_output_tokens=_env_int("NARRATIVE_MAX_OUTPUT_TOKENS", 1024),
        timeout_seconds=_env_float("NARRATIVE_TIMEOUT_SECONDS", 60.0),
        structured_output=os.getenv("NARRATIVE_STRUCTURED_OUTPUT", "true").lower() == "true",
    )
    logger.info(
        f"Narrative service configured (model={_SETTINGS.model}, "
        f"structured_output={_SETTINGS.structured_output})"
    )
    return _SETTINGS


def get_settings() -> NarrativeSettings:
    return load_settings()
