"""The ``elevenlabs_tts`` tool as Clanker sees it.

Metadata (id, arguments, examples) plus ``execute(action, ...)``, which
dispatches to the hook controller.  One tool object lives for the whole
host process; the hook handle and the speech-task registry live in host
shared state so a second tool object in the same process sees them.
"""

from __future__ import annotations

from typing import Any, Optional

from .config import ConfigService
from .hook import TASKS_KEY, HookController, ToolResult
from .host import HostExtensionPoint
from .player import Player
from .prompts import NullPrompter, Prompter
from .settings import NAMESPACE, SettingsStore
from .tts import CACHE_DIR, SpeechTaskRegistry, TTSEngine

TOOL_ID = "elevenlabs_tts"
TOOL_NAME = "ElevenLabs TTS"
TOOL_DESCRIPTION = (
    "ElevenLabs text-to-speech integration that hooks into Clanker "
    "to play back all messages"
)
TOOL_TAGS = ("elevenlabs", "tts", "text-to-speech", "audio", "voice", "hook")

ACTIONS = ("enable", "disable", "status", "test", "speak")

ARGUMENTS: list[dict[str, Any]] = [
    {"name": "action", "type": "string", "required": True, "enum": list(ACTIONS),
     "description": "Action to perform: enable, disable, status, test or speak"},
    {"name": "api_key", "type": "string", "required": False,
     "description": "ElevenLabs API key (prompted for on enable if missing)"},
    {"name": "voice_id", "type": "string", "required": False,
     "description": "ElevenLabs voice ID to use (default: Sarah)"},
    {"name": "model_id", "type": "string", "required": False,
     "description": "ElevenLabs model to use (default: eleven_turbo_v2_5)"},
    {"name": "auto_play", "type": "boolean", "required": False, "default": True,
     "description": "Automatically play audio after generation"},
    {"name": "text", "type": "string", "required": False,
     "description": "Text to speak (speak action only)"},
]

EXAMPLES: list[dict[str, Any]] = [
    {"description": "Enable TTS with your API key",
     "arguments": {"action": "enable", "api_key": "your-api-key-here"},
     "result": "TTS hook enabled successfully"},
    {"description": "Test TTS functionality",
     "arguments": {"action": "test"},
     "result": "Plays test message"},
    {"description": "Speak some text once",
     "arguments": {"action": "speak", "text": "Build finished"},
     "result": "Plays the text"},
    {"description": "Disable TTS hook",
     "arguments": {"action": "disable"},
     "result": "TTS hook disabled"},
    {"description": "Check TTS status",
     "arguments": {"action": "status"},
     "result": "Shows current TTS configuration"},
]


class ElevenLabsTTSTool:
    """Entry point the host loads."""

    id = TOOL_ID
    name = TOOL_NAME
    description = TOOL_DESCRIPTION

    def __init__(self, host: HostExtensionPoint,
                 settings: Optional[SettingsStore] = None,
                 prompter: Optional[Prompter] = None,
                 player: Optional[Player] = None,
                 cache_dir: str = CACHE_DIR,
                 engine: Optional[TTSEngine] = None):
        self.host = host
        self.config = ConfigService(settings or SettingsStore(), prompter or NullPrompter())
        if engine is None:
            tasks = host.state_get(NAMESPACE, TASKS_KEY)
            if not isinstance(tasks, SpeechTaskRegistry):
                tasks = SpeechTaskRegistry()
                host.state_set(NAMESPACE, TASKS_KEY, tasks)
            engine = TTSEngine(self.config, player=player, cache_dir=cache_dir, tasks=tasks)
        self.engine = engine
        self.controller = HookController(host, self.config, engine)

    def initialize(self) -> bool:
        """Load saved settings; re-install the hook if it was enabled."""
        return self.controller.initialize()

    def execute(self, action: str, api_key: Optional[str] = None,
                voice_id: Optional[str] = None, model_id: Optional[str] = None,
                auto_play: Optional[bool] = None, text: Optional[str] = None,
                choose: bool = False) -> ToolResult:
        if action == "enable":
            return self.controller.enable(api_key, voice_id, model_id, auto_play,
                                          choose=choose)
        if action == "disable":
            return self.controller.disable()
        if action == "status":
            return self.controller.status()
        if action == "test":
            return self.controller.test(auto_play)
        if action == "speak":
            if not text:
                return ToolResult.fail("The speak action needs text")
            return self.controller.speak(text, auto_play)
        return ToolResult.fail(f"Unknown action: {action}")
