"""The host extension points clanker-tts depends on.

``HostExtensionPoint`` is all the plugin assumes about Clanker: a hook
registry keyed by event + matcher + priority, and a namespaced key/value
store that outlives individual tool invocations within one host process.

``InProcessHost`` implements it for the CLI, the MCP server and tests.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .logging import get_logger

_log = get_logger("clanker-tts.host")

POST_MESSAGE = "PostMessage"

Message = dict[str, Any]
HookHandler = Callable[[Message], None]


@dataclass(frozen=True)
class HookMatcher:
    """Which messages a hook wants. Empty ``roles`` matches everything."""

    roles: tuple[str, ...] = ()

    def matches(self, message: Message) -> bool:
        if not self.roles:
            return True
        return message.get("role") in self.roles


class HostExtensionPoint(Protocol):
    """What the plugin needs from its host runtime."""

    def register_hook(self, event: str, matcher: HookMatcher,
                      handler: HookHandler, priority: int = 0) -> str:
        """Install *handler*; returns an opaque handle."""
        ...

    def unregister_hook(self, handle: str) -> bool:
        """Remove a hook. False if the handle is unknown."""
        ...

    def state_get(self, namespace: str, key: str, default: Any = None) -> Any:
        ...

    def state_set(self, namespace: str, key: str, value: Any) -> None:
        ...

    def state_delete(self, namespace: str, key: str) -> None:
        ...


@dataclass
class _Registration:
    handle: str
    event: str
    matcher: HookMatcher
    handler: HookHandler
    priority: int = 0
    order: int = field(default=0)


class InProcessHost:
    """A self-contained host: hook registry plus shared state, thread-safe."""

    def __init__(self) -> None:
        self._hooks: dict[str, _Registration] = {}
        self._state: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()
        self._counter = itertools.count(1)

    # ─── Hooks ──────────────────────────────────────────────────────

    def register_hook(self, event: str, matcher: HookMatcher,
                      handler: HookHandler, priority: int = 0) -> str:
        with self._lock:
            n = next(self._counter)
            handle = f"hook-{n}"
            self._hooks[handle] = _Registration(
                handle=handle, event=event, matcher=matcher,
                handler=handler, priority=priority, order=n,
            )
        _log.debug("Registered hook %s for %s", handle, event)
        return handle

    def unregister_hook(self, handle: str) -> bool:
        with self._lock:
            removed = self._hooks.pop(handle, None)
        return removed is not None

    def dispatch(self, event: str, message: Message) -> int:
        """Deliver *message* to every matching hook; returns how many ran.

        Higher priority first, then registration order.  A failing hook
        is logged and does not stop the others.
        """
        with self._lock:
            targets = sorted(
                (r for r in self._hooks.values()
                 if r.event == event and r.matcher.matches(message)),
                key=lambda r: (-r.priority, r.order),
            )
        for reg in targets:
            try:
                reg.handler(message)
            except Exception:
                _log.error("Hook %s raised", reg.handle, exc_info=True)
        return len(targets)

    # ─── Shared state ───────────────────────────────────────────────

    def state_get(self, namespace: str, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._state.get(namespace, {}).get(key, default)

    def state_set(self, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            self._state.setdefault(namespace, {})[key] = value

    def state_delete(self, namespace: str, key: str) -> None:
        with self._lock:
            self._state.get(namespace, {}).pop(key, None)
