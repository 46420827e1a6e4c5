"""clanker-tts: speak Clanker's assistant messages via ElevenLabs."""

__version__ = "0.1.0"
