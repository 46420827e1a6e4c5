"""Speech engine: sanitize → synthesize → play.

Two paths:

- ``generate`` / ``speak``: buffered synthesis into a content-addressed
  MP3 cache (md5 of the cleaned text), then optional file playback.
  Identical text never hits the API twice; the cache is never evicted.
- ``speak_streaming``: streamed synthesis piped straight into a player
  so audio starts before the provider has finished.

``speak_async`` / ``generate_async`` run either path on a daemon thread
for the hook handler, which must return immediately.  Background
failures are logged, never raised.

Playback is serialized in arrival order: each utterance takes a ticket
from ``PlaybackTurns`` when it is queued and plays only when every
earlier ticket is done, so rapid messages are heard in sequence.
"""

from __future__ import annotations

import contextlib
import hashlib
import os
import tempfile
import threading
import time
from typing import Callable, Optional

from .client import ElevenLabsClient
from .config import ConfigService
from .errors import NothingToSpeakError, ProviderError, TTSError
from .logging import get_logger, log_context
from .player import Player
from .sanitize import clean_text, preview

_log = get_logger("clanker-tts.tts")

CACHE_DIR = os.environ.get(
    "CLANKER_TTS_CACHE_DIR", os.path.join(tempfile.gettempdir(), "clanker-tts")
)

# Live background tasks allowed at once; further utterances are dropped.
MAX_PENDING_TASKS = 8


class SpeechTask:
    """One fire-and-forget synthesis (+ playback) running on a daemon thread."""

    def __init__(self, label: str, target: Callable[[], object]):
        self.label = label
        self.error: Optional[BaseException] = None
        self.started_at = time.time()
        self.finished_at: Optional[float] = None
        self._target = target
        self._thread = threading.Thread(target=self._run, daemon=True,
                                        name=f"clanker-tts:{label[:20]}")

    def _run(self) -> None:
        try:
            self._target()
        except TTSError as e:
            self.error = e
            _log.warning("Speech task failed: %s", e,
                         extra={"context": log_context(text_preview=self.label)})
        except Exception as e:
            self.error = e
            _log.error("Speech task crashed", exc_info=True,
                       extra={"context": log_context(text_preview=self.label)})
        finally:
            self.finished_at = time.time()

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    @property
    def done(self) -> bool:
        return self.finished_at is not None


class SpeechTaskRegistry:
    """Bounded set of in-flight speech tasks, pruned as they finish."""

    def __init__(self, max_pending: int = MAX_PENDING_TASKS):
        self.max_pending = max_pending
        self._tasks: list[SpeechTask] = []
        self._lock = threading.Lock()

    def _prune(self) -> None:
        self._tasks[:] = [t for t in self._tasks if not t.done]

    def spawn(self, label: str, target: Callable[[], object]) -> Optional[SpeechTask]:
        """Start *target* in the background. None when the registry is full."""
        with self._lock:
            self._prune()
            if len(self._tasks) >= self.max_pending:
                _log.warning("Dropping utterance, %d speech tasks already pending",
                             len(self._tasks),
                             extra={"context": log_context(text_preview=label)})
                return None
            task = SpeechTask(label, target)
            self._tasks.append(task)
        task.start()
        return task

    @property
    def pending(self) -> list[SpeechTask]:
        with self._lock:
            self._prune()
            return list(self._tasks)

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    def wait_all(self, timeout: Optional[float] = None) -> None:
        """Join every pending task (tests and shutdown)."""
        deadline = None if timeout is None else time.time() + timeout
        for task in self.pending:
            remaining = None if deadline is None else max(0.0, deadline - time.time())
            task.join(remaining)


class PlaybackTurns:
    """First-come, first-served playback slots.

    ``take`` hands out increasing tickets; ``turn`` blocks until every
    earlier ticket has been released.  A ticket must be released exactly
    once, which ``turn`` does on exit.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._issued = 0
        self._serving = 0
        self._finished: set[int] = set()

    def take(self) -> int:
        with self._cond:
            ticket = self._issued
            self._issued += 1
            return ticket

    def release(self, ticket: int) -> None:
        with self._cond:
            self._finished.add(ticket)
            while self._serving in self._finished:
                self._finished.discard(self._serving)
                self._serving += 1
            self._cond.notify_all()

    @contextlib.contextmanager
    def turn(self, ticket: Optional[int] = None):
        if ticket is None:
            ticket = self.take()
        try:
            with self._cond:
                self._cond.wait_for(lambda: self._serving == ticket)
            yield
        finally:
            self.release(ticket)


class TTSEngine:
    """Synthesis and playback for one ``ConfigService``."""

    def __init__(self, config: ConfigService,
                 player: Optional[Player] = None,
                 cache_dir: str = CACHE_DIR,
                 tasks: Optional[SpeechTaskRegistry] = None,
                 client_factory: Callable[[str], ElevenLabsClient] = ElevenLabsClient):
        self.config = config
        self.player = player or Player()
        self.cache_dir = cache_dir
        self.tasks = tasks or SpeechTaskRegistry()
        self._client_factory = client_factory
        self._turns = PlaybackTurns()
        os.makedirs(self.cache_dir, exist_ok=True)

    def _client(self) -> ElevenLabsClient:
        return self._client_factory(self.config.require_api_key())

    def cache_path(self, clean: str) -> str:
        digest = hashlib.md5(clean.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, f"{digest}.mp3")

    def is_cached(self, text: str) -> bool:
        clean = clean_text(text)
        return bool(clean) and os.path.isfile(self.cache_path(clean))

    # ─── Buffered ───────────────────────────────────────────────────

    def generate(self, text: str) -> str:
        """Synthesize *text* to an MP3 file and return its path.

        Raises:
            NothingToSpeakError: nothing left after cleaning.
            ConfigurationError: no api key.
            ProviderError: the API call failed.
        """
        clean = clean_text(text)
        if not clean:
            raise NothingToSpeakError("No speakable text after cleaning")

        path = self.cache_path(clean)
        if os.path.isfile(path):
            _log.debug("Audio file already exists, using cached version",
                       extra={"context": log_context(text_preview=clean, path=path)})
            return path

        client = self._client()
        voice_id, model_id = self.config.voice_id, self.config.model_id
        _log.debug("Generating speech for: %s", preview(clean),
                   extra={"context": log_context(voice_id=voice_id, model_id=model_id)})
        t0 = time.time()
        audio = client.synthesize(clean, voice_id, model_id)

        os.makedirs(self.cache_dir, exist_ok=True)
        tmp_path = f"{path}.{os.getpid()}.{threading.get_ident()}.part"
        with open(tmp_path, "wb") as f:
            f.write(audio)
        os.replace(tmp_path, path)

        _log.info("Speech generated: %s", path,
                  extra={"context": log_context(
                      text_preview=clean, duration_ms=(time.time() - t0) * 1000,
                      bytes=len(audio))})
        return path

    def speak(self, text: str, play: bool = True) -> str:
        """Generate *text* and, if *play*, play it to completion."""
        path = self.generate(text)
        if play:
            with self._turns.turn():
                self.player.play_file(path)
        return path

    # ─── Streaming ──────────────────────────────────────────────────

    def speak_streaming(self, text: str, ticket: Optional[int] = None) -> bool:
        """Stream *text* straight into a player. False if nothing to say.

        *ticket* is a turn taken earlier with ``PlaybackTurns.take``; it is
        always given back, whether or not anything was spoken.

        Raises:
            ConfigurationError, ProviderError, PlaybackError,
            UnsupportedPlatformError.
        """
        clean = clean_text(text)
        with self._turns.turn(ticket):
            if not clean:
                return False
            client = self._client()
            voice_id, model_id = self.config.voice_id, self.config.model_id
            t0 = time.time()
            chunks = client.stream(clean, voice_id, model_id)
            try:
                self.player.play_stream(chunks)
            finally:
                close = getattr(chunks, "close", None)
                if close is not None:
                    close()
        _log.info("Spoke: %s", preview(clean),
                  extra={"context": log_context(
                      voice_id=voice_id, model_id=model_id,
                      duration_ms=(time.time() - t0) * 1000)})
        return True

    # ─── Fire-and-forget ────────────────────────────────────────────

    def speak_async(self, text: str) -> Optional[SpeechTask]:
        """Stream *text* in the background, after everything queued before it."""
        ticket = self._turns.take()
        task = self.tasks.spawn(preview(text),
                                lambda: self.speak_streaming(text, ticket=ticket))
        if task is None:
            self._turns.release(ticket)
        return task

    def generate_async(self, text: str) -> Optional[SpeechTask]:
        """Synthesize *text* into the cache in the background, no playback."""
        return self.tasks.spawn(preview(text), lambda: self.generate(text))

    def clear_cache(self) -> int:
        """Delete cached MP3 files. Returns how many were removed."""
        removed = 0
        try:
            names = os.listdir(self.cache_dir)
        except FileNotFoundError:
            return 0
        for name in names:
            if name.endswith(".mp3"):
                try:
                    os.unlink(os.path.join(self.cache_dir, name))
                    removed += 1
                except OSError:
                    pass
        return removed


def describe_error(exc: BaseException) -> str:
    """Short user-facing text for a failure."""
    if isinstance(exc, ProviderError) and exc.status is not None:
        return f"ElevenLabs API error {exc.status}: {exc.body[:200]}"
    return str(exc)
