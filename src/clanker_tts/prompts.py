"""Interactive input for clanker-tts: secret entry and single-select.

The config resolver only needs two questions answered, "what is your api
key?" and "which of these?", so a ``Prompter`` is anything that can do
those.  ``TextualPrompter`` runs a tiny inline Textual app per question;
``NullPrompter`` answers ``None`` for non-interactive processes (MCP
server, hook threads, piped stdin).
"""

from __future__ import annotations

import sys
from typing import Optional, Protocol

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Input, Label, OptionList


class Prompter(Protocol):
    """The interactive-input collaborator the config resolver relies on."""

    def secret(self, title: str) -> Optional[str]:
        """Ask for a secret value. ``None`` if unavailable or cancelled."""
        ...

    def select(self, title: str, options: list[str]) -> Optional[str]:
        """Ask to pick one of *options*. ``None`` if unavailable or cancelled."""
        ...


class NullPrompter:
    """Prompter for processes that must never block on input."""

    def secret(self, title: str) -> Optional[str]:
        return None

    def select(self, title: str, options: list[str]) -> Optional[str]:
        return None


class SecretPromptApp(App[Optional[str]]):
    """Single masked input line. Enter submits, Escape cancels."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    DEFAULT_CSS = """
    SecretPromptApp > Vertical {
        height: auto;
        padding: 0 1;
    }
    """

    def __init__(self, title: str):
        super().__init__()
        self._title = title

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(f"{self._title} (Enter to confirm, Esc to cancel)")
            yield Input(password=True, id="secret")

    def on_mount(self) -> None:
        self.query_one("#secret", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        self.exit(value or None)

    def action_cancel(self) -> None:
        self.exit(None)


class SelectPromptApp(App[Optional[str]]):
    """Pick one option from a list. Enter selects, Escape cancels."""

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    DEFAULT_CSS = """
    SelectPromptApp > Vertical {
        height: auto;
        padding: 0 1;
    }
    SelectPromptApp OptionList {
        max-height: 16;
    }
    """

    def __init__(self, title: str, options: list[str]):
        super().__init__()
        self._title = title
        self._options = list(options)

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label(self._title)
            yield OptionList(*self._options, id="options")

    def on_mount(self) -> None:
        option_list = self.query_one("#options", OptionList)
        option_list.focus()
        if self._options:
            option_list.highlighted = 0

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        self.exit(self._options[event.option_index])

    def action_cancel(self) -> None:
        self.exit(None)


class TextualPrompter:
    """Prompter backed by inline Textual apps.

    Falls back to ``None`` when stdin is not a terminal, so a hook
    firing inside a headless host never hangs waiting for input.
    """

    def __init__(self, inline: bool = True):
        self._inline = inline

    def _interactive(self) -> bool:
        try:
            return sys.stdin.isatty() and sys.stdout.isatty()
        except (AttributeError, ValueError):
            return False

    def secret(self, title: str) -> Optional[str]:
        if not self._interactive():
            return None
        return SecretPromptApp(title).run(inline=self._inline)

    def select(self, title: str, options: list[str]) -> Optional[str]:
        if not options or not self._interactive():
            return None
        return SelectPromptApp(title, options).run(inline=self._inline)
