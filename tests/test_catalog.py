"""Tests for the static voice/model catalog."""

from __future__ import annotations

from clanker_tts import catalog


class TestCatalog:

    def test_defaults_are_in_catalog(self):
        assert catalog.voice_name(catalog.DEFAULT_VOICE_ID) == "Sarah"
        assert catalog.model_name(catalog.DEFAULT_MODEL_ID) == "Eleven Turbo v2.5 (Latest, fastest)"

    def test_ids_unique(self):
        assert len({v.id for v in catalog.VOICES}) == len(catalog.VOICES)
        assert len({m.id for m in catalog.MODELS}) == len(catalog.MODELS)

    def test_unknown_ids_show_raw_id(self):
        assert catalog.voice_name("custom123") == "custom123"
        assert catalog.model_name("future_model") == "future_model"

    def test_lookup_by_name_case_insensitive(self):
        assert catalog.voice_by_name("rachel").id == "21m00Tcm4TlvDq8ikWAM"
        assert catalog.model_by_name("Eleven Turbo v2.5 (Latest, fastest)").id == "eleven_turbo_v2_5"
        assert catalog.voice_by_name("Nobody") is None

    def test_is_known_model(self):
        assert catalog.is_known_model("eleven_monolingual_v1")
        assert not catalog.is_known_model("gpt-4o-mini-tts")
