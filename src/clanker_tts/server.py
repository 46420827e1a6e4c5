"""MCP server exposing the elevenlabs_tts tool.

Runs an ``InProcessHost`` so an MCP client can drive the whole pipeline:
``tts_enable`` installs the hook, ``post_message`` delivers a message the
way Clanker would, and the hook speaks it in the background.
"""

from __future__ import annotations

import asyncio
import functools
import json
import traceback
from typing import Optional

from mcp.server.fastmcp import FastMCP

from .host import POST_MESSAGE, InProcessHost
from .logging import TOOL_ERROR_LOG, get_logger
from .tool import TOOL_ID, ElevenLabsTTSTool

log = get_logger("clanker-tts.server")
_tool_log = get_logger("clanker-tts.tools", TOOL_ERROR_LOG)

DEFAULT_PORT = 8455


def create_mcp_server(
    tool: ElevenLabsTTSTool,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
) -> FastMCP:
    """Create the MCP server with one MCP tool per action.

    Args:
        tool: The plugin instance; its host must be an ``InProcessHost``
            for ``post_message`` to reach the hook.
        host: Bind address.
        port: Bind port.

    Returns:
        Configured FastMCP server ready to run.
    """
    server = FastMCP("clanker-tts", host=host, port=port)

    def _safe_tool(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                err_msg = f"{type(exc).__name__}: {str(exc)[:200]}"
                _tool_log.error("Tool %s failed: %s\n%s", fn.__name__, err_msg,
                                traceback.format_exc())
                return json.dumps({"error": err_msg, "tool": fn.__name__})
        return wrapper

    async def _run(action: str, **kwargs) -> str:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, functools.partial(tool.execute, action, **kwargs)
        )
        return json.dumps(result.to_dict())

    # ─── Tools ────────────────────────────────────────────────────────

    @server.tool()
    @_safe_tool
    async def tts_enable(
        api_key: str = "",
        voice_id: str = "",
        model_id: str = "",
        auto_play: Optional[bool] = None,
    ) -> str:
        """Enable speech for every assistant message.

        Parameters
        ----------
        api_key:
            ElevenLabs API key. Optional once saved.
        voice_id:
            Voice to use (default Sarah, EXAVITQu4vr4xnSDxMaL).
        model_id:
            Model to use (default eleven_turbo_v2_5).
        auto_play:
            When false, audio is generated into the cache but not played.
        """
        return await _run("enable", api_key=api_key or None,
                          voice_id=voice_id or None, model_id=model_id or None,
                          auto_play=auto_play)

    @server.tool()
    @_safe_tool
    async def tts_disable() -> str:
        """Stop speaking assistant messages."""
        return await _run("disable")

    @server.tool()
    @_safe_tool
    async def tts_status() -> str:
        """Report whether the hook is enabled and which voice/model it uses."""
        return await _run("status")

    @server.tool()
    @_safe_tool
    async def tts_test(auto_play: Optional[bool] = None) -> str:
        """Synthesize (and play) a fixed test sentence."""
        return await _run("test", auto_play=auto_play)

    @server.tool()
    @_safe_tool
    async def tts_speak(text: str, auto_play: Optional[bool] = None) -> str:
        """Synthesize (and play) *text* once, blocking until done."""
        return await _run("speak", text=text, auto_play=auto_play)

    @server.tool()
    @_safe_tool
    async def post_message(content: str, role: str = "assistant") -> str:
        """Deliver a chat message to the installed hooks, as the host would.

        Returns immediately; speech happens in the background.
        """
        if not isinstance(tool.host, InProcessHost):
            return json.dumps({"error": "Host does not accept posted messages",
                               "tool": "post_message"})
        delivered = tool.host.dispatch(POST_MESSAGE, {"role": role, "content": content})
        return json.dumps({"delivered": delivered, "role": role})

    log.info("MCP server for %s configured on %s:%d", TOOL_ID, host, port)
    return server
