"""Tests for player selection and playback.

Covers:
- platform_family() mapping
- first_available() preference order and look_up=False entries
- File player per platform, including the aplay last resort
- Unsupported platforms
- Stream player selection (aplay never streams)
- play_stream() pumping chunks through a real stdin-reading process
- Buffered fallback when no streaming player is installed
- Nonzero exit / spawn failure → PlaybackError
"""

from __future__ import annotations

import os
import stat
import unittest.mock as mock

import pytest

from clanker_tts import player as player_mod
from clanker_tts.errors import PlaybackError, UnsupportedPlatformError
from clanker_tts.player import (
    AFPLAY,
    APLAY,
    FFPLAY,
    MPG123,
    POWERSHELL,
    SOX_PLAY,
    Player,
    first_available,
    platform_family,
)


def _finder(*installed: str):
    """find() that knows only *installed* binary names."""
    return lambda name: f"/usr/bin/{name}" if name in installed else None


def _script(tmp_path, name: str, body: str) -> str:
    path = tmp_path / name
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


def _fake_processes(returncode: int = 0, stderr: bytes = b""):
    """ProcessManager mock whose started process finishes immediately."""
    processes = mock.MagicMock()
    player = processes.play.return_value
    player.proc.communicate.return_value = (b"", stderr)
    player.proc.returncode = returncode
    return processes


posix_only = pytest.mark.skipif(os.name != "posix", reason="needs /bin/sh")


class TestPlatformFamily:

    @pytest.mark.parametrize("platform,family", [
        ("darwin", "darwin"),
        ("linux", "unix"),
        ("freebsd13", "unix"),
        ("openbsd7", "unix"),
        ("win32", "windows"),
        ("cygwin", "windows"),
        ("aix", None),
        ("emscripten", None),
    ])
    def test_mapping(self, platform, family):
        assert platform_family(platform) == family


class TestFirstAvailable:

    def test_preference_order(self):
        found = first_available([MPG123, SOX_PLAY, FFPLAY], _finder("play", "ffplay"))
        assert found == (SOX_PLAY, "/usr/bin/play")

    def test_none_found(self):
        assert first_available([MPG123, SOX_PLAY], _finder()) is None

    def test_candidate_without_lookup_taken_as_is(self):
        find = mock.Mock(return_value=None)
        assert first_available([AFPLAY], find) == (AFPLAY, "afplay")
        find.assert_not_called()


class TestCandidates:

    def test_file_command_substitutes_path(self):
        assert MPG123.file_command("/bin/mpg123", "/tmp/a.mp3") == ["/bin/mpg123", "-q", "/tmp/a.mp3"]

    def test_powershell_command(self):
        cmd = POWERSHELL.file_command("powershell", "C:\\a.mp3")
        assert cmd == ["powershell", "-c", "(New-Object Media.SoundPlayer 'C:\\a.mp3').PlaySync()"]

    def test_stream_commands_read_stdin(self):
        assert MPG123.stream_command("mpg123")[-1] == "-"
        assert SOX_PLAY.stream_command("play") == ["play", "-q", "-t", "mp3", "-"]
        assert FFPLAY.stream_command("ffplay")[-2:] == ["-i", "-"]

    def test_aplay_cannot_stream(self):
        assert not APLAY.supports_streaming


class TestFilePlayerSelection:

    def test_macos_uses_afplay(self):
        assert Player("darwin", find=_finder()).file_player() == (AFPLAY, "afplay")

    def test_windows_uses_powershell(self):
        assert Player("win32", find=_finder()).file_player()[0] is POWERSHELL

    def test_linux_prefers_mpg123(self):
        p = Player("linux", find=_finder("mpg123", "play", "aplay"))
        assert p.file_player() == (MPG123, "/usr/bin/mpg123")

    def test_linux_falls_back_to_sox(self):
        p = Player("linux", find=_finder("play", "aplay"))
        assert p.file_player()[0] is SOX_PLAY

    def test_linux_aplay_last_resort_even_if_missing(self):
        assert Player("linux", find=_finder()).file_player() == (APLAY, "aplay")

    def test_unsupported_platform(self):
        with pytest.raises(UnsupportedPlatformError, match="Unsupported platform: aix"):
            Player("aix", find=_finder()).file_player()


class TestStreamPlayerSelection:

    def test_linux_order(self):
        assert Player("linux", find=_finder("ffplay", "play")).stream_player()[0] is SOX_PLAY

    def test_aplay_alone_is_not_a_stream_player(self):
        assert Player("linux", find=_finder("aplay")).stream_player() is None

    def test_macos_skips_sox(self):
        assert Player("darwin", find=_finder("play")).stream_player() is None
        assert Player("darwin", find=_finder("play", "ffplay")).stream_player()[0] is FFPLAY

    def test_unsupported_platform_has_none(self):
        assert Player("aix", find=_finder("mpg123")).stream_player() is None


class TestPlayFile:

    def test_runs_selected_command(self):
        processes = _fake_processes()
        Player("linux", processes=processes, find=_finder("mpg123")).play_file("/tmp/x.mp3")
        processes.play.assert_called_once_with(
            ["/usr/bin/mpg123", "-q", "/tmp/x.mp3"], name="mpg123")

    def test_nonzero_exit_raises(self):
        processes = _fake_processes(returncode=2, stderr=b"bad header\n")
        p = Player("linux", processes=processes, find=_finder("mpg123"))
        with pytest.raises(PlaybackError, match="mpg123 exited with code 2: bad header"):
            p.play_file("/tmp/x.mp3")

    def test_spawn_failure_raises(self):
        processes = mock.MagicMock()
        processes.play.side_effect = FileNotFoundError("aplay")
        with pytest.raises(PlaybackError, match="Failed to start aplay"):
            Player("linux", processes=processes, find=_finder()).play_file("/tmp/x.mp3")

    def test_unsupported_platform_raises(self):
        with pytest.raises(UnsupportedPlatformError):
            Player("aix", processes=_fake_processes()).play_file("/tmp/x.mp3")


class TestPlayStream:

    @posix_only
    def test_pipes_all_chunks_to_player(self, tmp_path):
        out = tmp_path / "received.mp3"
        script = _script(tmp_path, "fake-mpg123", f'cat > "{out}"')
        p = Player("linux", find=lambda name: script if name == "mpg123" else None)
        p.play_stream(iter([b"ID3", b"\x00" * 5000, b"tail"]))
        assert out.read_bytes() == b"ID3" + b"\x00" * 5000 + b"tail"

    @posix_only
    def test_nonzero_exit_raises_with_stderr(self, tmp_path):
        script = _script(tmp_path, "fake-mpg123", "cat >/dev/null; echo boom >&2; exit 3")
        p = Player("linux", find=lambda name: script if name == "mpg123" else None)
        with pytest.raises(PlaybackError, match="exited with code 3: boom"):
            p.play_stream(iter([b"abc"]))

    @posix_only
    def test_source_failure_kills_player(self, tmp_path):
        script = _script(tmp_path, "fake-mpg123", "cat >/dev/null")
        processes = player_mod.ProcessManager()
        p = Player("linux", processes=processes,
                   find=lambda name: script if name == "mpg123" else None)

        def chunks():
            yield b"first"
            raise RuntimeError("connection reset")

        with pytest.raises(PlaybackError, match="Audio stream failed: connection reset"):
            p.play_stream(chunks())
        assert all(not p.running for p in processes._players)
        assert processes.stop_all() == 0

    def test_spawn_failure_raises(self):
        processes = mock.MagicMock()
        processes.pipe.side_effect = PermissionError("denied")
        p = Player("linux", processes=processes, find=_finder("mpg123"))
        with pytest.raises(PlaybackError, match="Failed to start mpg123"):
            p.play_stream(iter([b"x"]))


class TestBufferedFallback:

    def test_no_stream_player_buffers_then_plays_file(self):
        """Linux with nothing installed: buffer to a temp file, play it with aplay."""
        seen = {}
        processes = _fake_processes()

        def play(cmd, name):
            seen["cmd"] = cmd
            with open(cmd[-1], "rb") as f:
                seen["audio"] = f.read()
            return processes.play.return_value

        processes.play.side_effect = play
        Player("linux", processes=processes, find=_finder()).play_stream(iter([b"ab", b"cd"]))

        assert seen["cmd"][0] == "aplay"
        assert seen["cmd"][-1].endswith(".mp3")
        assert seen["audio"] == b"abcd"
        assert not os.path.exists(seen["cmd"][-1])

    @posix_only
    def test_aplay_script_receives_file(self, tmp_path):
        out = tmp_path / "played.mp3"
        script = _script(tmp_path, "fake-aplay", f'cp "$1" "{out}"')
        p = Player("linux", find=lambda name: script if name == "aplay" else None)
        p.play_stream(iter([b"mp3", b"data"]))
        assert out.read_bytes() == b"mp3data"

    def test_temp_file_removed_on_playback_error(self):
        seen = {}
        processes = _fake_processes(returncode=1)
        original = processes.play.return_value

        def play(cmd, name):
            seen["path"] = cmd[-1]
            return original

        processes.play.side_effect = play
        with pytest.raises(PlaybackError):
            Player("linux", processes=processes, find=_finder()).play_stream(iter([b"x"]))
        assert not os.path.exists(seen["path"])

    def test_source_error_while_buffering(self):
        def chunks():
            yield b"x"
            raise ValueError("truncated")

        processes = _fake_processes()
        with pytest.raises(PlaybackError, match="truncated"):
            Player("linux", processes=processes, find=_finder()).play_stream(chunks())
        processes.play.assert_not_called()
