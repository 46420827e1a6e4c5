"""Static catalog of ElevenLabs voices and models.

Ordered (id, display name) pairs.  Ids are what the API wants; names are
what status output and selection prompts show.
"""

from __future__ import annotations

from typing import NamedTuple, Optional


class CatalogEntry(NamedTuple):
    id: str
    name: str


DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"
DEFAULT_MODEL_ID = "eleven_turbo_v2_5"

VOICES: tuple[CatalogEntry, ...] = (
    CatalogEntry("EXAVITQu4vr4xnSDxMaL", "Sarah"),
    CatalogEntry("21m00Tcm4TlvDq8ikWAM", "Rachel"),
    CatalogEntry("pNInz6obpgDQGcFmaJgB", "Adam"),
    CatalogEntry("ErXwobaYiN019PkySvjV", "Antoni"),
    CatalogEntry("AZnzlk1XvdvUeBnXmlld", "Domi"),
    CatalogEntry("MF3mGyEYCl7XYWbV9V6O", "Elli"),
    CatalogEntry("TxGEqnHWrfWFTfGW9XjX", "Josh"),
    CatalogEntry("VR6AewLTigWG4xSOukaG", "Arnold"),
    CatalogEntry("yoZ06aMxZJJ28mfd3POQ", "Sam"),
    CatalogEntry("XB0fDUnXU5powFXDhCwa", "Charlotte"),
    CatalogEntry("JBFqnCBsd6RMkjVDRZzb", "George"),
    CatalogEntry("onwK4e9ZLuTAKqWW03F9", "Daniel"),
    CatalogEntry("pFZP5JQG7iQjIQuC4Bku", "Lily"),
    CatalogEntry("nPczCjzI2devNBz1zQrb", "Brian"),
)

MODELS: tuple[CatalogEntry, ...] = (
    CatalogEntry("eleven_turbo_v2_5", "Eleven Turbo v2.5 (Latest, fastest)"),
    CatalogEntry("eleven_flash_v2_5", "Eleven Flash v2.5 (Lowest latency)"),
    CatalogEntry("eleven_multilingual_v2", "Eleven Multilingual v2 (Highest quality)"),
    CatalogEntry("eleven_turbo_v2", "Eleven Turbo v2 (English)"),
    CatalogEntry("eleven_multilingual_v1", "Eleven Multilingual v1 (Legacy)"),
    CatalogEntry("eleven_monolingual_v1", "Eleven English v1 (Legacy)"),
)


def _by_id(entries: tuple[CatalogEntry, ...], entry_id: str) -> Optional[CatalogEntry]:
    for entry in entries:
        if entry.id == entry_id:
            return entry
    return None


def _by_name(entries: tuple[CatalogEntry, ...], name: str) -> Optional[CatalogEntry]:
    wanted = name.strip().lower()
    for entry in entries:
        if entry.name.lower() == wanted:
            return entry
    return None


def voice_name(voice_id: str) -> str:
    """Display name for a voice id; custom voices show their raw id."""
    entry = _by_id(VOICES, voice_id)
    return entry.name if entry else voice_id


def model_name(model_id: str) -> str:
    entry = _by_id(MODELS, model_id)
    return entry.name if entry else model_id


def voice_by_name(name: str) -> Optional[CatalogEntry]:
    return _by_name(VOICES, name)


def model_by_name(name: str) -> Optional[CatalogEntry]:
    return _by_name(MODELS, name)


def is_known_model(model_id: str) -> bool:
    return _by_id(MODELS, model_id) is not None
