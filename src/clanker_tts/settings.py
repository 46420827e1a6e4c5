"""Persisted plugin settings inside Clanker's shared settings file.

The host owns ``~/.clanker/settings.json`` (or ``$CLANKER_HOME``); this
plugin owns exactly one sub-object in it, keyed by the tool id.  Every
save re-reads the whole file and replaces only that sub-object, so
settings written by the host or other tools in between are kept.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Any

from .errors import SettingsError
from .logging import get_logger

_log = get_logger("clanker-tts.settings")

DEFAULT_CLANKER_HOME = os.environ.get(
    "CLANKER_HOME", os.path.join(os.path.expanduser("~"), ".clanker")
)
DEFAULT_SETTINGS_FILE = os.path.join(DEFAULT_CLANKER_HOME, "settings.json")
NAMESPACE = "elevenlabs_tts"


class SettingsStore:
    """Read-merge-write access to one namespace of a JSON settings file."""

    def __init__(self, path: str = DEFAULT_SETTINGS_FILE,
                 namespace: str = NAMESPACE):
        self.path = path
        self.namespace = namespace

    def _read_document(self) -> dict[str, Any]:
        """Load the whole settings document. Missing file → empty dict."""
        try:
            with open(self.path) as f:
                doc = json.load(f)
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            _log.warning("Settings file %s is not valid JSON, ignoring: %s",
                         self.path, e)
            return {}
        if not isinstance(doc, dict):
            _log.warning("Settings file %s does not hold an object, ignoring",
                         self.path)
            return {}
        return doc

    def load(self) -> dict[str, Any]:
        """Return this plugin's section (a copy; empty if never saved)."""
        section = self._read_document().get(self.namespace)
        return dict(section) if isinstance(section, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def update(self, **values: Any) -> dict[str, Any]:
        """Merge *values* into this plugin's section and persist.

        ``None`` values remove the key.  Returns the new section.

        Raises:
            SettingsError: if the file cannot be written.
        """
        doc = self._read_document()
        section = doc.get(self.namespace)
        section = dict(section) if isinstance(section, dict) else {}
        for key, value in values.items():
            if value is None:
                section.pop(key, None)
            else:
                section[key] = value
        doc[self.namespace] = section
        self._write_document(doc)
        return dict(section)

    def _write_document(self, doc: dict[str, Any]) -> None:
        directory = os.path.dirname(self.path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".settings-", suffix=".json",
                                            dir=directory)
            try:
                with os.fdopen(fd, "w") as f:
                    json.dump(doc, f, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise SettingsError(f"Could not write settings to {self.path}: {e}") from e
