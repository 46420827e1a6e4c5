"""Local audio playback for clanker-tts.

Players are described as ``PlayerCandidate`` entries listed per platform
family in preference order; ``first_available`` picks one for both file
and stream playback.

File playback:
  macOS      afplay
  Unix-like  mpg123 → play (sox) → aplay (used even if it can't be found)
  Windows    PowerShell Media.SoundPlayer.PlaySync()

Stream playback pipes MP3 bytes into a player reading stdin:
  Unix-like  mpg123 → play (sox) → ffplay
  macOS/Win  mpg123 → ffplay
If none is installed, the stream is buffered to a temp file and handed to
file playback.
"""

from __future__ import annotations

import os
import shutil
import sys
import tempfile
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .errors import PlaybackError, UnsupportedPlatformError
from .logging import get_logger, log_context
from .processes import ProcessManager

_log = get_logger("clanker-tts.player")

# Placeholder in file_args replaced by the audio path.
PATH = "{path}"


def _find_binary(name: str) -> Optional[str]:
    """Find a binary in PATH or common Nix/Homebrew locations."""
    found = shutil.which(name)
    if found:
        return found
    for path in [
        os.path.expanduser(f"~/.nix-profile/bin/{name}"),
        f"/nix/var/nix/profiles/default/bin/{name}",
        f"/opt/homebrew/bin/{name}",
    ]:
        if os.path.isfile(path):
            return path
    return None


@dataclass(frozen=True)
class PlayerCandidate:
    """One way of playing audio.

    ``binary`` is looked up on PATH; ``file_args`` / ``stream_args`` follow
    it on the command line.  ``stream_args`` is None for players that
    can't read audio from stdin.
    """

    name: str
    binary: str
    file_args: tuple[str, ...] = (PATH,)
    stream_args: Optional[tuple[str, ...]] = None
    look_up: bool = True

    @property
    def supports_streaming(self) -> bool:
        return self.stream_args is not None

    def file_command(self, binary_path: str, audio_path: str) -> list[str]:
        return [binary_path] + [a.replace(PATH, audio_path) for a in self.file_args]

    def stream_command(self, binary_path: str) -> list[str]:
        return [binary_path] + list(self.stream_args or ())


MPG123 = PlayerCandidate("mpg123", "mpg123", ("-q", PATH), ("-q", "-"))
SOX_PLAY = PlayerCandidate("play", "play", ("-q", PATH), ("-q", "-t", "mp3", "-"))
APLAY = PlayerCandidate("aplay", "aplay", (PATH,))
FFPLAY = PlayerCandidate(
    "ffplay", "ffplay",
    ("-nodisp", "-autoexit", "-loglevel", "quiet", PATH),
    ("-nodisp", "-autoexit", "-loglevel", "quiet", "-fflags", "nobuffer", "-i", "-"),
)
AFPLAY = PlayerCandidate("afplay", "afplay", (PATH,), look_up=False)
POWERSHELL = PlayerCandidate(
    "powershell", "powershell",
    ("-c", f"(New-Object Media.SoundPlayer '{PATH}').PlaySync()"),
    look_up=False,
)

FILE_PLAYERS: dict[str, tuple[PlayerCandidate, ...]] = {
    "darwin": (AFPLAY,),
    "unix": (MPG123, SOX_PLAY, APLAY),
    "windows": (POWERSHELL,),
}

STREAM_PLAYERS: dict[str, tuple[PlayerCandidate, ...]] = {
    "darwin": (MPG123, FFPLAY),
    "unix": (MPG123, SOX_PLAY, FFPLAY),
    "windows": (MPG123, FFPLAY),
}


def platform_family(platform: Optional[str] = None) -> Optional[str]:
    """Map ``sys.platform`` to "darwin", "unix", "windows" or None."""
    platform = platform or sys.platform
    if platform == "darwin":
        return "darwin"
    if platform.startswith(("linux", "freebsd", "openbsd", "netbsd")):
        return "unix"
    if platform in ("win32", "cygwin"):
        return "windows"
    return None


def first_available(
    candidates: Iterable[PlayerCandidate],
    find: Callable[[str], Optional[str]] = _find_binary,
) -> Optional[tuple[PlayerCandidate, str]]:
    """First candidate whose binary exists, with its resolved path.

    Candidates with ``look_up=False`` are taken as-is (they ship with the
    OS, or there is nothing useful to look up).
    """
    for candidate in candidates:
        if not candidate.look_up:
            return candidate, candidate.binary
        found = find(candidate.binary)
        if found:
            return candidate, found
    return None


class Player:
    """Plays MP3 files and streams through whatever player is installed."""

    def __init__(self, platform: Optional[str] = None,
                 processes: Optional[ProcessManager] = None,
                 find: Callable[[str], Optional[str]] = _find_binary):
        self.platform = platform or sys.platform
        self.family = platform_family(self.platform)
        self.processes = processes or ProcessManager()
        self._find = find

    # ─── Selection ──────────────────────────────────────────────────

    def file_player(self) -> tuple[PlayerCandidate, str]:
        """Choose the file player for this platform.

        Raises:
            UnsupportedPlatformError: no mapping for this platform.
        """
        candidates = FILE_PLAYERS.get(self.family or "")
        if not candidates:
            raise UnsupportedPlatformError(self.platform)
        chosen = first_available(candidates, self._find)
        if chosen is None:
            # Nothing confirmed present: last resort is the final entry.
            last = candidates[-1]
            chosen = (last, last.binary)
        return chosen

    def stream_player(self) -> Optional[tuple[PlayerCandidate, str]]:
        candidates = STREAM_PLAYERS.get(self.family or "", ())
        return first_available(
            (c for c in candidates if c.supports_streaming), self._find
        )

    # ─── Playback ───────────────────────────────────────────────────

    def play_file(self, path: str) -> None:
        """Play *path* and block until the player exits.

        Raises:
            UnsupportedPlatformError: unknown platform.
            PlaybackError: player missing, failed to start, or exited nonzero.
        """
        candidate, binary = self.file_player()
        cmd = candidate.file_command(binary, path)
        _log.debug("Playing audio with: %s", " ".join(cmd))
        try:
            player = self.processes.play(cmd, name=candidate.name)
        except OSError as e:
            raise PlaybackError(f"Failed to start {candidate.name}: {e}") from e
        try:
            _, stderr = player.proc.communicate()
        except OSError as e:
            raise PlaybackError(f"{candidate.name} failed: {e}") from e
        retcode = player.proc.returncode
        if retcode != 0:
            stderr_out = (stderr or b"").decode("utf-8", errors="replace").strip()
            raise PlaybackError(
                f"{candidate.name} exited with code {retcode}: {stderr_out or 'no stderr'}"
            )

    def play_stream(self, chunks: Iterable[bytes]) -> None:
        """Pipe *chunks* into a stdin-reading player as they arrive.

        Playback starts with the first chunk.  stdin is closed when the
        source runs dry; the player's exit code decides success.  Its
        stderr is logged but never treated as failure by itself.

        Raises:
            PlaybackError: spawn, write, source or exit failure.
            UnsupportedPlatformError: via the file fallback.
        """
        chosen = self.stream_player()
        if chosen is None:
            _log.info("No streaming-capable player found, buffering to file")
            self._play_buffered(chunks)
            return

        candidate, binary = chosen
        cmd = candidate.stream_command(binary)
        _log.debug("Streaming audio with: %s", " ".join(cmd))
        try:
            player = self.processes.pipe(cmd, name=candidate.name)
        except OSError as e:
            raise PlaybackError(f"Failed to start {candidate.name}: {e}") from e
        proc = player.proc

        stderr_lines: list[bytes] = []

        def _drain_stderr():
            try:
                for line in proc.stderr:
                    stderr_lines.append(line)
            except (OSError, ValueError):
                pass

        drain = threading.Thread(target=_drain_stderr, daemon=True)
        drain.start()

        written = 0
        try:
            for chunk in chunks:
                proc.stdin.write(chunk)
                proc.stdin.flush()
                written += len(chunk)
        except (BrokenPipeError, OSError) as e:
            player.stop()
            raise PlaybackError(f"{candidate.name} stopped accepting audio: {e}") from e
        except Exception as e:
            player.stop()
            raise PlaybackError(f"Audio stream failed: {e}") from e
        finally:
            try:
                proc.stdin.close()
            except (BrokenPipeError, OSError):
                pass

        try:
            retcode = proc.wait()
        except OSError as e:
            raise PlaybackError(f"{candidate.name} failed: {e}") from e
        drain.join(timeout=1)

        stderr_out = b"".join(stderr_lines).decode("utf-8", errors="replace").strip()
        if stderr_out:
            _log.debug("%s stderr: %s", candidate.name, stderr_out[:500])
        if retcode != 0:
            raise PlaybackError(
                f"{candidate.name} exited with code {retcode}: {stderr_out or 'no stderr'}"
            )
        _log.debug("Streamed %d bytes through %s", written, candidate.name,
                   extra={"context": log_context(player=candidate.name, bytes=written)})

    def _play_buffered(self, chunks: Iterable[bytes]) -> None:
        fd, tmp_path = tempfile.mkstemp(prefix="clanker-tts-", suffix=".mp3")
        try:
            try:
                with os.fdopen(fd, "wb") as f:
                    for chunk in chunks:
                        f.write(chunk)
            except OSError as e:
                raise PlaybackError(f"Could not buffer audio stream: {e}") from e
            except Exception as e:
                raise PlaybackError(f"Audio stream failed: {e}") from e
            self.play_file(tmp_path)
        finally:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
