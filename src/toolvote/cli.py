"""Command-line interface."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
from typing import Any, Sequence

from toolvote.config import Settings
from toolvote.core.types import TurnOutput
from toolvote.factory import build_session
from toolvote.session import Session
from toolvote.util.logging import set_verbosity

EXIT_WORDS = {"exit", "quit"}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="toolvote CLI")
    parser.add_argument("--prompt", dest="prompt", help="Run one turn and exit")
    parser.add_argument("--base-url", dest="base_url")
    parser.add_argument("--api-key", dest="api_key")
    parser.add_argument("--model", dest="model")
    parser.add_argument("--max-iterations", type=int, dest="max_iterations")
    parser.add_argument("--tool-timeout", type=float, dest="tool_timeout")
    parser.add_argument("--no-interpret", action="store_true", dest="no_interpret")
    parser.add_argument("--trace-dir", dest="trace_dir")
    parser.add_argument("--debug", action="store_true", dest="debug")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    data: dict[str, Any] = settings.model_dump()
    if args.base_url:
        data["openai_base_url"] = args.base_url
    if args.api_key:
        data["openai_api_key"] = args.api_key
    if args.model:
        data["openai_model"] = args.model
    if args.max_iterations:
        data["max_iterations"] = args.max_iterations
    if args.tool_timeout:
        data["tool_timeout_seconds"] = args.tool_timeout
    if args.no_interpret:
        data["interpret_enabled"] = False
    if args.trace_dir:
        data["trace_dir"] = args.trace_dir
    return Settings(**data)


def render(output: TurnOutput) -> str:
    lines = [output.response]
    if output.state_summary and output.branch.value != "satisfied":
        lines.append(f"[{output.branch.value}] {output.state_summary}")
    return "\n".join(lines)


async def run_cancellable(session: Session, text: str) -> TurnOutput:
    """Run a turn with Ctrl-C mapped to the session's shutdown event."""
    loop = asyncio.get_running_loop()
    session.shutdown.clear()
    installed = False
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, session.shutdown.set)
        installed = True
    try:
        return await session.run(text)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def repl(session: Session) -> None:
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        text = line.strip()
        if not text:
            continue
        if text.lower() in EXIT_WORDS:
            break
        print(render(await run_cancellable(session, text)))


async def run(args: argparse.Namespace) -> None:
    settings = apply_overrides(Settings(), args)
    session = build_session(settings)
    try:
        if args.prompt:
            print(render(await run_cancellable(session, args.prompt)))
        else:
            await repl(session)
    finally:
        await session.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    set_verbosity(args.debug)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run(args))


if __name__ == "__main__":
    main()
