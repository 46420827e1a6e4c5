"""Command line front end for clanker-tts.

Usage:
    clanker-tts enable --api-key sk-...          # save key, enable hook
    clanker-tts enable --choose                  # pick voice/model interactively
    clanker-tts disable
    clanker-tts status
    clanker-tts test [--no-play]                 # speak a test sentence
    clanker-tts say "build finished"             # stream one sentence
    clanker-tts say --buffered "build finished"  # via the file cache
    clanker-tts voices | models                  # list the catalog
    clanker-tts logs -n 20                       # tail the plugin log
    clanker-tts cache clear                      # delete cached audio
    clanker-tts serve --port 8455                # MCP server (streamable-http)
"""

from __future__ import annotations

import argparse
import atexit
import sys
from typing import Optional

from . import __version__, catalog
from .errors import TTSError
from .host import InProcessHost
from .logging import PLUGIN_LOG, format_log_entry, read_log_tail
from .prompts import TextualPrompter
from .tool import ElevenLabsTTSTool
from .tts import describe_error


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clanker-tts",
        description="Speak Clanker's assistant messages with ElevenLabs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    enable = sub.add_parser("enable", help="Enable speech for assistant messages")
    enable.add_argument("--api-key", default=None, help="ElevenLabs API key")
    enable.add_argument("--voice-id", default=None, help="Voice ID (default: Sarah)")
    enable.add_argument("--model-id", default=None,
                        choices=[m.id for m in catalog.MODELS],
                        help="Model ID (default: eleven_turbo_v2_5)")
    enable.add_argument("--no-auto-play", dest="auto_play", action="store_false",
                        default=None, help="Generate audio without playing it")
    enable.add_argument("--choose", action="store_true",
                        help="Pick voice and model from a list when not saved")

    sub.add_parser("disable", help="Disable speech")
    sub.add_parser("status", help="Show configuration and hook state")

    test = sub.add_parser("test", help="Speak a test sentence")
    test.add_argument("--no-play", dest="auto_play", action="store_false", default=None,
                      help="Only generate the audio file")

    say = sub.add_parser("say", help="Speak some text")
    say.add_argument("text", nargs="*", help="Text to speak (stdin if omitted)")
    say.add_argument("--buffered", action="store_true",
                     help="Generate a cached file first instead of streaming")

    sub.add_parser("voices", help="List known voices")
    sub.add_parser("models", help="List known models")

    cache = sub.add_parser("cache", help="Manage the audio cache")
    cache.add_argument("cache_action", choices=["clear"], help="clear: delete cached MP3s")

    logs = sub.add_parser("logs", help="Show the end of the plugin log")
    logs.add_argument("-n", "--lines", type=int, default=30)

    serve = sub.add_parser("serve", help="Run the MCP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=None)
    return parser


def _print_result(result) -> int:
    if result.success:
        print(result.output)
        return 0
    print(f"Error: {result.error}", file=sys.stderr)
    return 1


def _print_catalog(entries, current: str) -> None:
    for entry in entries:
        marker = "*" if entry.id == current else " "
        print(f" {marker} {entry.id:<24} {entry.name}")


def _say(tool: ElevenLabsTTSTool, text: str, buffered: bool) -> int:
    tool.config.load()
    if buffered:
        return _print_result(tool.execute("speak", text=text, auto_play=True))
    try:
        spoke = tool.engine.speak_streaming(text)
    except TTSError as e:
        print(f"Error: {describe_error(e)}", file=sys.stderr)
        return 1
    if not spoke:
        print("Error: No speakable text after cleaning", file=sys.stderr)
        return 1
    return 0


def _serve(tool: ElevenLabsTTSTool, host: str, port: Optional[int]) -> int:
    from .server import DEFAULT_PORT, create_mcp_server

    tool.initialize()
    atexit.register(tool.engine.player.processes.stop_all)
    server = create_mcp_server(tool, host=host, port=port or DEFAULT_PORT)
    print(f"clanker-tts MCP server on http://{host}:{port or DEFAULT_PORT}/mcp", flush=True)
    server.run(transport="streamable-http")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "voices":
        _print_catalog(catalog.VOICES, catalog.DEFAULT_VOICE_ID)
        return 0
    if args.command == "models":
        _print_catalog(catalog.MODELS, catalog.DEFAULT_MODEL_ID)
        return 0
    if args.command == "logs":
        lines = read_log_tail(PLUGIN_LOG, args.lines)
        if not lines:
            print(f"No log entries in {PLUGIN_LOG}")
        for line in lines:
            print(format_log_entry(line))
        return 0

    tool = ElevenLabsTTSTool(InProcessHost(), prompter=TextualPrompter())

    if args.command == "enable":
        return _print_result(tool.execute(
            "enable", api_key=args.api_key, voice_id=args.voice_id,
            model_id=args.model_id, auto_play=args.auto_play, choose=args.choose,
        ))
    if args.command == "disable":
        return _print_result(tool.execute("disable"))
    if args.command == "status":
        return _print_result(tool.execute("status"))
    if args.command == "test":
        tool.config.load()
        return _print_result(tool.execute("test", auto_play=args.auto_play))
    if args.command == "say":
        text = " ".join(args.text)
        if not text and not sys.stdin.isatty():
            text = sys.stdin.read().strip()
        if not text:
            print("Error: nothing to say", file=sys.stderr)
            return 1
        return _say(tool, text, args.buffered)
    if args.command == "cache":
        removed = tool.engine.clear_cache()
        print(f"Removed {removed} cached file" + ("" if removed == 1 else "s")
              + f" from {tool.engine.cache_dir}")
        return 0
    if args.command == "serve":
        return _serve(tool, args.host, args.port)
    return 1
