"""Error hierarchy for clanker-tts.

Direct tool invocations turn these into failed results; hook-triggered
speech only logs them.  Nothing is retried.
"""

from __future__ import annotations

from typing import Optional


class TTSError(Exception):
    """Base for every failure raised by the plugin."""


class ConfigurationError(TTSError):
    """Missing api key, or an unresolvable voice/model."""


class NothingToSpeakError(TTSError):
    """The text was empty once markdown was stripped."""


class ProviderError(TTSError):
    """The TTS provider answered with an error status (or not at all)."""

    def __init__(self, status: Optional[int], body: str = ""):
        self.status = status
        self.body = body
        if status is None:
            message = f"ElevenLabs API unreachable: {body}"
        else:
            message = f"ElevenLabs API error: {status} - {body}"
        super().__init__(message)


class UnsupportedPlatformError(TTSError):
    """No player command is known for the running platform."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class PlaybackError(TTSError):
    """The audio player could not be started, fed, or exited nonzero."""


class SettingsError(TTSError):
    """The settings file could not be written."""
