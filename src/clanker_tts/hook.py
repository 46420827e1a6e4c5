"""Hook controller: the enable / disable / status state machine.

Enabling resolves credentials, persists them, and registers ``on_message``
with the host for assistant ``PostMessage`` events.  The returned handle
lives in host shared state (not on this object) because the host may
build a fresh controller for every tool invocation; re-enabling always
unregisters the recorded handle first so at most one hook is installed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .config import ConfigService, TTSConfig
from .errors import ConfigurationError, SettingsError, TTSError
from .host import POST_MESSAGE, HookMatcher, HostExtensionPoint, Message
from .logging import get_logger, log_context
from .sanitize import clean_text, preview
from .settings import NAMESPACE
from .tts import TTSEngine, describe_error

_log = get_logger("clanker-tts.hook")

HANDLE_KEY = "hookHandle"
TASKS_KEY = "speechTasks"
HOOK_PRIORITY = 100
ASSISTANT_MATCHER = HookMatcher(roles=("assistant",))

TEST_PHRASE = "Hello! This is a test of the ElevenLabs text-to-speech integration."


@dataclass
class ToolResult:
    """What every control operation hands back to the host."""

    success: bool
    output: str = ""
    error: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def fail(cls, error: str, **data: Any) -> "ToolResult":
        return cls(success=False, error=error, data=data)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.output:
            result["output"] = self.output
        if self.error:
            result["error"] = self.error
        if self.data:
            result["data"] = self.data
        return result


def message_text(message: Message) -> str:
    """Plain text of a host message (string content or text parts)."""
    content = message.get("content", message.get("text", ""))
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "\n".join(parts)
    return ""


class HookController:
    """Installs and removes the speech hook and reports its state."""

    def __init__(self, host: HostExtensionPoint, config: ConfigService,
                 engine: TTSEngine, namespace: str = NAMESPACE):
        self.host = host
        self.config = config
        self.engine = engine
        self.namespace = namespace

    # ─── Hook bookkeeping ───────────────────────────────────────────

    @property
    def handle(self) -> Optional[str]:
        return self.host.state_get(self.namespace, HANDLE_KEY)

    def _install(self) -> str:
        old = self.handle
        if old:
            self.host.unregister_hook(old)
            _log.debug("Removed previous hook %s", old)
        handle = self.host.register_hook(
            POST_MESSAGE, ASSISTANT_MATCHER, self.on_message, priority=HOOK_PRIORITY,
        )
        self.host.state_set(self.namespace, HANDLE_KEY, handle)
        return handle

    def _uninstall(self) -> bool:
        old = self.handle
        if not old:
            return False
        self.host.unregister_hook(old)
        self.host.state_delete(self.namespace, HANDLE_KEY)
        return True

    # ─── Control operations ─────────────────────────────────────────

    def enable(self, api_key: Optional[str] = None, voice_id: Optional[str] = None,
               model_id: Optional[str] = None, auto_play: Optional[bool] = None,
               choose: bool = False) -> ToolResult:
        try:
            key = self.config.resolve_api_key(api_key)
            if not key:
                raise ConfigurationError(
                    "API key is required to enable TTS. Get one at https://elevenlabs.io"
                )
            cfg = TTSConfig(
                api_key=self.config.persistable_api_key(),
                voice_id=self.config.resolve_voice_id(voice_id, choose=choose),
                model_id=self.config.resolve_model_id(model_id, choose=choose),
                enabled=True,
                auto_play=self.config.resolve_auto_play(auto_play),
            )
            self.config.save(cfg)
        except (ConfigurationError, SettingsError) as e:
            return ToolResult.fail(str(e))

        handle = self._install()
        _log.info("ElevenLabs TTS hook enabled",
                  extra={"context": log_context(
                      voice_id=cfg.voice_id, model_id=cfg.model_id, handle=handle)})
        return ToolResult(
            success=True,
            output=(
                "TTS hook enabled successfully!\n"
                f"Voice: {cfg.voice_name}\n"
                f"Model: {cfg.model_name}\n"
                f"Auto-play: {'enabled' if cfg.auto_play else 'disabled'}\n\n"
                "All Clanker messages will now be converted to speech."
            ),
            data={
                "enabled": True,
                "voiceId": cfg.voice_id,
                "voice": cfg.voice_name,
                "modelId": cfg.model_id,
                "model": cfg.model_name,
                "autoPlay": cfg.auto_play,
            },
        )

    def disable(self) -> ToolResult:
        removed = self._uninstall()
        try:
            self.config.set_enabled(False)
        except SettingsError as e:
            return ToolResult.fail(str(e), enabled=False)
        _log.info("ElevenLabs TTS hook disabled (hook removed: %s)", removed)
        return ToolResult(
            success=True,
            output="TTS hook disabled. Messages will no longer be converted to speech.",
            data={"enabled": False},
        )

    def status(self) -> ToolResult:
        snapshot = self.config.snapshot()
        record = self.config.store.load()
        has_api_key = bool(record.get("apiKey") or self.config.resolve_api_key(prompt=False))
        pending = self.engine.tasks.pending_count
        return ToolResult(
            success=True,
            output=(
                "ElevenLabs TTS Status:\n"
                f"Hook: {'enabled' if snapshot.enabled else 'disabled'}\n"
                f"API Key: {'configured' if has_api_key else 'not configured'}\n"
                f"Voice: {snapshot.voice_name}\n"
                f"Model: {snapshot.model_name}\n"
                f"Auto-play: {'enabled' if snapshot.auto_play else 'disabled'}\n"
                f"Audio output: {self.engine.cache_dir}\n"
                f"Active speech tasks: {pending}"
            ),
            data={
                "enabled": snapshot.enabled,
                "hasApiKey": has_api_key,
                "hookInstalled": self.handle is not None,
                "voiceId": snapshot.voice_id,
                "voice": snapshot.voice_name,
                "modelId": snapshot.model_id,
                "model": snapshot.model_name,
                "autoPlay": snapshot.auto_play,
                "pendingTasks": pending,
            },
        )

    def speak(self, text: str, auto_play: Optional[bool] = None) -> ToolResult:
        """Synthesize *text* now (and play it unless auto-play is off)."""
        play = self.config.resolve_auto_play(auto_play)
        cached = self.engine.is_cached(text)
        try:
            audio_file = self.engine.speak(text, play=play)
        except TTSError as e:
            return ToolResult.fail(f"TTS failed: {describe_error(e)}")
        return ToolResult(
            success=True,
            output=f"Speech generated successfully!\nAudio file: {audio_file}"
                   + (" (from cache)" if cached else ""),
            data={"audioFile": audio_file, "played": play, "cached": cached},
        )

    def test(self, auto_play: Optional[bool] = None) -> ToolResult:
        return self.speak(TEST_PHRASE, auto_play=auto_play)

    def initialize(self) -> bool:
        """Re-install the hook if the settings say it was left enabled.

        Never prompts: a missing api key just leaves the hook off.
        """
        record = self.config.load()
        if not record.get("enabled"):
            return False
        if not self.config.resolve_api_key(prompt=False):
            _log.warning("TTS marked enabled but no API key is stored; not enabling")
            return False
        self._install()
        _log.info("ElevenLabs TTS hook re-enabled from saved settings")
        return True

    # ─── The hook itself ────────────────────────────────────────────

    def on_message(self, message: Message) -> None:
        """Speak an assistant message without blocking the host."""
        try:
            if message.get("role") != "assistant":
                return
            clean = clean_text(message_text(message))
            if not clean:
                _log.debug("Nothing speakable in message, skipping")
                return
            if self.config.store.get("autoPlay") is False:
                self.engine.generate_async(clean)
            else:
                self.engine.speak_async(clean)
        except Exception:
            _log.error("TTS hook error", exc_info=True,
                       extra={"context": log_context(
                           text_preview=preview(str(message)))})
