"""Thin ElevenLabs text-to-speech HTTP client.

Two calls against the same voice endpoint: buffered (whole MP3 back) and
streamed (MP3 chunks yielded as the provider produces them).  No timeouts
and no retries; any failure is final for that utterance.
"""

from __future__ import annotations

import json
import os
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Iterator

from .errors import ProviderError
from .logging import get_logger

_log = get_logger("clanker-tts.client")

API_BASE_URL = os.environ.get("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io")

VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}

# 0 = default latency, 4 = max latency optimisations (text normaliser off).
STREAMING_LATENCY = 3

CHUNK_SIZE = 4096


class ElevenLabsClient:
    """POSTs text to ElevenLabs and returns MPEG audio."""

    def __init__(self, api_key: str, base_url: str = API_BASE_URL):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _endpoint(self, voice_id: str, stream: bool = False) -> str:
        path = f"/v1/text-to-speech/{urllib.parse.quote(voice_id, safe='')}"
        if stream:
            path += "/stream"
        return self.base_url + path

    def _request(self, url: str, body: dict[str, Any]) -> urllib.request.Request:
        return urllib.request.Request(
            url,
            data=json.dumps(body).encode(),
            headers={
                "Accept": "audio/mpeg",
                "Content-Type": "application/json",
                "xi-api-key": self.api_key,
            },
            method="POST",
        )

    @staticmethod
    def _body(text: str, model_id: str) -> dict[str, Any]:
        return {
            "text": text,
            "model_id": model_id,
            "voice_settings": dict(VOICE_SETTINGS),
        }

    def _open(self, req: urllib.request.Request):
        """Send *req*; map HTTP and transport failures to ProviderError."""
        try:
            resp = urllib.request.urlopen(req)
        except urllib.error.HTTPError as e:
            try:
                body_text = e.read().decode("utf-8", errors="replace")
            except OSError:
                body_text = ""
            raise ProviderError(e.code, body_text) from e
        except urllib.error.URLError as e:
            raise ProviderError(None, str(e.reason)) from e
        status = getattr(resp, "status", 200)
        if status >= 400:
            body_text = resp.read().decode("utf-8", errors="replace")
            resp.close()
            raise ProviderError(status, body_text)
        return resp

    def synthesize(self, text: str, voice_id: str, model_id: str) -> bytes:
        """Return the complete MP3 for *text*.

        Raises:
            ProviderError: non-2xx status or unreachable provider.
        """
        req = self._request(self._endpoint(voice_id), self._body(text, model_id))
        with self._open(req) as resp:
            audio = resp.read()
        _log.debug("Synthesized %d bytes", len(audio))
        return audio

    def stream(self, text: str, voice_id: str, model_id: str) -> Iterator[bytes]:
        """Open a streaming synthesis request and return its chunk iterator.

        The request is sent (and its status checked) before this returns,
        so provider errors surface here rather than mid-playback.

        Raises:
            ProviderError: non-2xx status or unreachable provider.
        """
        body = self._body(text, model_id)
        body["optimize_streaming_latency"] = STREAMING_LATENCY
        req = self._request(self._endpoint(voice_id, stream=True), body)
        resp = self._open(req)
        return _iter_response(resp)


def _iter_response(resp, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield *resp* body chunks as they arrive; always closes *resp*."""
    read = getattr(resp, "read1", None) or resp.read
    try:
        while True:
            chunk = read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        resp.close()
