"""Tests for the elevenlabs_tts tool surface.

Covers:
- Tool metadata (id, actions, argument schema, examples)
- execute() dispatch for every action, end to end through the HTTP client
- Unknown actions and speak without text
- Shared speech-task registry across tool objects on one host
- initialize() from saved settings
"""

from __future__ import annotations

import io
import json
import unittest.mock as mock

import pytest

from clanker_tts.config import API_KEY_ENV
from clanker_tts.hook import TASKS_KEY
from clanker_tts.host import POST_MESSAGE, InProcessHost
from clanker_tts.settings import NAMESPACE, SettingsStore
from clanker_tts.tool import ACTIONS, ARGUMENTS, EXAMPLES, TOOL_ID, ElevenLabsTTSTool


def _installed(host):
    """Hooks an assistant message reaches; empty text is never spoken."""
    return host.dispatch(POST_MESSAGE, {"role": "assistant", "content": ""})


class FakeResponse(io.BytesIO):
    status = 200


@pytest.fixture(autouse=True)
def _no_env_key(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)


@pytest.fixture()
def urlopen():
    with mock.patch("clanker_tts.client.urllib.request.urlopen") as m:
        m.side_effect = lambda req: FakeResponse(b"ID3audio")
        yield m


@pytest.fixture()
def host():
    return InProcessHost()


@pytest.fixture()
def settings(tmp_path):
    return SettingsStore(str(tmp_path / "settings.json"))


@pytest.fixture()
def make_tool(host, settings, tmp_path):
    def make():
        return ElevenLabsTTSTool(host, settings=settings, player=mock.MagicMock(),
                                 cache_dir=str(tmp_path / "cache"))
    return make


class TestMetadata:

    def test_identity(self):
        assert TOOL_ID == "elevenlabs_tts"
        assert ElevenLabsTTSTool.id == TOOL_ID

    def test_action_argument(self):
        action = next(a for a in ARGUMENTS if a["name"] == "action")
        assert action["required"] is True
        assert action["enum"] == list(ACTIONS)

    def test_optional_arguments(self):
        names = {a["name"] for a in ARGUMENTS if not a["required"]}
        assert names == {"api_key", "voice_id", "model_id", "auto_play", "text"}

    def test_examples_use_known_actions(self):
        for example in EXAMPLES:
            assert example["arguments"]["action"] in ACTIONS


class TestExecute:

    def test_enable_status_disable(self, make_tool, host):
        tool = make_tool()
        assert tool.execute("enable", api_key="sk-test").success
        status = tool.execute("status")
        assert status.data["enabled"] is True
        assert status.data["hookInstalled"] is True
        assert tool.execute("disable").success
        assert _installed(host) == 0

    def test_test_action_calls_api_and_plays(self, make_tool, urlopen):
        tool = make_tool()
        tool.execute("enable", api_key="sk-test")
        result = tool.execute("test")
        assert result.success
        req = urlopen.call_args[0][0]
        assert req.get_header("Xi-api-key") == "sk-test"
        assert json.loads(req.data)["text"].startswith("Hello! This is a test")
        tool.engine.player.play_file.assert_called_once_with(result.data["audioFile"])

    def test_test_without_key(self, make_tool, urlopen):
        result = make_tool().execute("test")
        assert not result.success
        assert "API key not configured" in result.error
        urlopen.assert_not_called()

    def test_speak_action(self, make_tool, urlopen):
        tool = make_tool()
        tool.execute("enable", api_key="sk-test")
        result = tool.execute("speak", text="Deploy done", auto_play=False)
        assert result.success
        assert result.data["played"] is False
        assert json.loads(urlopen.call_args[0][0].data)["text"] == "Deploy done"

    def test_speak_requires_text(self, make_tool):
        result = make_tool().execute("speak")
        assert not result.success
        assert result.error == "The speak action needs text"

    def test_unknown_action(self, make_tool):
        result = make_tool().execute("explode")
        assert not result.success
        assert result.error == "Unknown action: explode"

    def test_hook_streams_assistant_messages(self, make_tool, host, urlopen):
        tool = make_tool()
        tool.execute("enable", api_key="sk-test")
        host.dispatch(POST_MESSAGE, {"role": "assistant", "content": "All green"})
        tool.engine.tasks.wait_all(5)
        req = urlopen.call_args[0][0]
        assert req.full_url.endswith("/stream")
        tool.engine.player.play_stream.assert_called_once()


class TestSharedState:

    def test_registry_shared_between_tools(self, make_tool, host):
        first = make_tool()
        second = make_tool()
        assert first.engine.tasks is second.engine.tasks
        assert host.state_get(NAMESPACE, TASKS_KEY) is first.engine.tasks

    def test_second_tool_disables_first_tools_hook(self, make_tool, host):
        make_tool().execute("enable", api_key="k")
        make_tool().execute("disable")
        assert _installed(host) == 0

    def test_initialize_restores_hook(self, make_tool, host, settings):
        settings.update(apiKey="k", enabled=True)
        tool = make_tool()
        assert tool.initialize() is True
        assert _installed(host) == 1
