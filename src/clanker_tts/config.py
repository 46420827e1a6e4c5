"""Runtime TTS configuration for clanker-tts.

One ``ConfigService`` is built per process and handed to every component
that needs the api key, voice or model.  Resolution order:

  api key:  explicit argument → memory → settings file
            → ``$ELEVENLABS_API_KEY`` → interactive secret prompt
  voice:    explicit argument → memory → settings file
            → (select prompt when ``choose=True``) → default (Sarah)
  model:    same as voice, default ``eleven_turbo_v2_5``

Only the api key ever prompts by default; voice and model fall back to
the built-in defaults rather than blocking on a prompt.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from . import catalog
from .errors import ConfigurationError
from .logging import get_logger
from .prompts import NullPrompter, Prompter
from .settings import SettingsStore

_log = get_logger("clanker-tts.config")

API_KEY_ENV = "ELEVENLABS_API_KEY"

KEY_FROM_ARGUMENT = "explicit"
KEY_FROM_SETTINGS = "settings"
KEY_FROM_ENV = "env"
KEY_FROM_PROMPT = "prompt"


@dataclass
class TTSConfig:
    """Snapshot of the resolved configuration."""

    api_key: Optional[str] = None
    voice_id: str = catalog.DEFAULT_VOICE_ID
    model_id: str = catalog.DEFAULT_MODEL_ID
    enabled: bool = False
    auto_play: bool = True

    @property
    def voice_name(self) -> str:
        return catalog.voice_name(self.voice_id)

    @property
    def model_name(self) -> str:
        return catalog.model_name(self.model_id)

    def to_record(self) -> dict[str, Any]:
        """Persisted form (camelCase keys, shared with the host).

        ``apiKey`` is left out when there is no key to store, so saving
        never clears a key already in the file.
        """
        record: dict[str, Any] = {
            "voiceId": self.voice_id,
            "modelId": self.model_id,
            "enabled": self.enabled,
            "autoPlay": self.auto_play,
        }
        if self.api_key:
            record["apiKey"] = self.api_key
        return record


class ConfigService:
    """Owns the in-memory configuration cache for the process lifetime."""

    def __init__(self, store: Optional[SettingsStore] = None,
                 prompter: Optional[Prompter] = None):
        self.store = store or SettingsStore()
        self.prompter: Prompter = prompter or NullPrompter()
        self._api_key: Optional[str] = None
        # Where _api_key came from: explicit, settings, env or prompt.
        self._api_key_source: Optional[str] = None
        self._voice_id: Optional[str] = None
        self._model_id: Optional[str] = None

    # ─── Cached values ──────────────────────────────────────────────

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    @property
    def voice_id(self) -> str:
        return self._voice_id or catalog.DEFAULT_VOICE_ID

    @property
    def model_id(self) -> str:
        return self._model_id or catalog.DEFAULT_MODEL_ID

    def load(self) -> dict[str, Any]:
        """Warm the memory cache from the settings file. Returns the record."""
        record = self.store.load()
        if record.get("apiKey") and not self._api_key:
            self._api_key = record["apiKey"]
            self._api_key_source = KEY_FROM_SETTINGS
        if record.get("voiceId"):
            self._voice_id = record["voiceId"]
        if record.get("modelId"):
            self._model_id = record["modelId"]
        return record

    def snapshot(self) -> TTSConfig:
        record = self.store.load()
        return TTSConfig(
            api_key=self._api_key or record.get("apiKey"),
            voice_id=self._voice_id or record.get("voiceId") or catalog.DEFAULT_VOICE_ID,
            model_id=self._model_id or record.get("modelId") or catalog.DEFAULT_MODEL_ID,
            enabled=bool(record.get("enabled", False)),
            auto_play=record.get("autoPlay") is not False,
        )

    # ─── Resolution ─────────────────────────────────────────────────

    def resolve_api_key(self, explicit: Optional[str] = None,
                        prompt: bool = True) -> Optional[str]:
        """Find an api key, prompting as a last resort.

        A prompted key is persisted straight away so the next process
        doesn't ask again.  Returns ``None`` when nothing is available.
        """
        explicit = (explicit or "").strip()
        if explicit:
            return self._remember(explicit, KEY_FROM_ARGUMENT)
        if self._api_key:
            return self._api_key
        stored = self.store.get("apiKey")
        if stored:
            return self._remember(stored, KEY_FROM_SETTINGS)
        from_env = os.environ.get(API_KEY_ENV, "").strip()
        if from_env:
            return self._remember(from_env, KEY_FROM_ENV)
        if not prompt:
            return None
        entered = (self.prompter.secret("ElevenLabs API key") or "").strip()
        if not entered:
            _log.info("No ElevenLabs API key supplied")
            return None
        self.store.update(apiKey=entered)
        return self._remember(entered, KEY_FROM_PROMPT)

    def _remember(self, key: str, source: str) -> str:
        self._api_key = key
        self._api_key_source = source
        return key

    @property
    def api_key_source(self) -> Optional[str]:
        return self._api_key_source

    def persistable_api_key(self) -> Optional[str]:
        """The cached key, unless it only came from the environment."""
        if self._api_key_source == KEY_FROM_ENV:
            return None
        return self._api_key

    def require_api_key(self) -> str:
        """Api key for a network call; never prompts."""
        key = self.resolve_api_key(prompt=False)
        if not key:
            raise ConfigurationError(
                "API key not configured. Run with action=\"enable\" first "
                "(get one at https://elevenlabs.io)."
            )
        return key

    def resolve_voice_id(self, explicit: Optional[str] = None,
                         choose: bool = False) -> str:
        if explicit:
            self._voice_id = explicit
            return explicit
        if self._voice_id:
            return self._voice_id
        stored = self.store.get("voiceId")
        if stored:
            self._voice_id = stored
            return stored
        if choose:
            picked = self.prompter.select("Voice", [v.name for v in catalog.VOICES])
            entry = catalog.voice_by_name(picked) if picked else None
            if entry:
                self._voice_id = entry.id
                return entry.id
        self._voice_id = catalog.DEFAULT_VOICE_ID
        return self._voice_id

    def resolve_model_id(self, explicit: Optional[str] = None,
                         choose: bool = False) -> str:
        """Like resolve_voice_id, but the model must be in the catalog.

        Raises:
            ConfigurationError: for an unknown explicit model id.
        """
        if explicit:
            if not catalog.is_known_model(explicit):
                known = ", ".join(m.id for m in catalog.MODELS)
                raise ConfigurationError(f"Unknown model: {explicit} (expected one of {known})")
            self._model_id = explicit
            return explicit
        if self._model_id:
            return self._model_id
        stored = self.store.get("modelId")
        if stored and catalog.is_known_model(stored):
            self._model_id = stored
            return stored
        if choose:
            picked = self.prompter.select("Model", [m.name for m in catalog.MODELS])
            entry = catalog.model_by_name(picked) if picked else None
            if entry:
                self._model_id = entry.id
                return entry.id
        self._model_id = catalog.DEFAULT_MODEL_ID
        return self._model_id

    def resolve_auto_play(self, explicit: Optional[bool] = None) -> bool:
        if explicit is not None:
            return bool(explicit)
        return self.store.get("autoPlay") is not False

    # ─── Persistence ────────────────────────────────────────────────

    def save(self, config: TTSConfig) -> dict[str, Any]:
        """Persist *config* into the settings namespace."""
        return self.store.update(**config.to_record())

    def set_enabled(self, enabled: bool) -> dict[str, Any]:
        return self.store.update(enabled=enabled)
