"""Player subprocesses for clanker-tts.

Players are spawned in one of two shapes: ``play`` for a player that
reads a file argument, ``pipe`` for one that reads MP3 bytes on stdin.
Either way stdout is discarded and stderr is captured for error text.

On POSIX each player gets its own session, so ``stop()`` can take down
the whole process group (ffplay and sox fork helpers).  The manager
keeps only running players; ``stop_all`` runs at process exit.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading

_NEW_SESSION = os.name == "posix"


class PlayerProcess:
    """One running player."""

    def __init__(self, proc: subprocess.Popen, name: str):
        self.proc = proc
        self.name = name

    @property
    def running(self) -> bool:
        return self.proc.poll() is None

    def stop(self) -> None:
        """Kill the player (and its group) and reap it. Safe to call twice."""
        if self.running:
            try:
                if _NEW_SESSION:
                    os.killpg(self.proc.pid, signal.SIGKILL)
                else:
                    self.proc.kill()
            except OSError:
                # Group already gone, or killpg refused: fall back to the pid.
                try:
                    self.proc.kill()
                except OSError:
                    pass
        self.proc.wait()


class ProcessManager:
    """Spawns players and remembers the ones still running."""

    def __init__(self) -> None:
        self._players: list[PlayerProcess] = []
        self._lock = threading.Lock()

    def _spawn(self, cmd: list[str], name: str, stdin) -> PlayerProcess:
        proc = subprocess.Popen(
            cmd, stdin=stdin, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE,
            start_new_session=_NEW_SESSION,
        )
        player = PlayerProcess(proc, name)
        with self._lock:
            self._players = [p for p in self._players if p.running]
            self._players.append(player)
        return player

    def play(self, cmd: list[str], name: str) -> PlayerProcess:
        """Start a file player.

        Raises:
            OSError: the binary could not be started.
        """
        return self._spawn(cmd, name, subprocess.DEVNULL)

    def pipe(self, cmd: list[str], name: str) -> PlayerProcess:
        """Start a player whose stdin the caller feeds.

        Raises:
            OSError: the binary could not be started.
        """
        return self._spawn(cmd, name, subprocess.PIPE)

    def stop_all(self) -> int:
        """Kill every player still running. Returns how many were stopped."""
        with self._lock:
            players, self._players = self._players, []
        stopped = 0
        for player in players:
            if player.running:
                stopped += 1
            player.stop()
        return stopped
