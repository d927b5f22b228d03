# =============================================================================
# src/cli/chat.py - Interactive Chat Against a Document Database
# =============================================================================
#
# Terminal front end for the chat pipeline. Each line typed at the prompt is
# one turn: the pipeline decides whether the database should be searched,
# streams the answer to stdout token by token and prints the citations.
#
# Ctrl+C while an answer is streaming cancels that turn only (the transcript
# is left as it was). Ctrl+C or Ctrl+D at the prompt exits.
#
# Logging goes to stderr so the streamed answer stays readable.
#
# Usage examples:
#   python -m src.cli.chat --db manuals
#   python -m src.cli.chat --db manuals --topic "printer maintenance"
#   python -m src.cli.chat            # no database: plain chat
# =============================================================================

"""Interactive chat loop.

Usage::

    python -m src.cli.chat --db N [--topic T]
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from typing import Any

from src.config.settings import Settings
from src.models.chat import DEFAULT_SYSTEM_MESSAGE, ChatMessage, ChatSettings, TurnResult
from src.utils.errors import RagDeskError
from src.utils.logging import configure_logging

_EXIT_COMMANDS = {"/quit", "/exit"}


def _print_token(fragment: str) -> None:
    sys.stdout.write(fragment)
    sys.stdout.flush()


def _print_citations(result: TurnResult) -> None:
    if not result.citations:
        return
    print("\nSources:")
    for index, citation in enumerate(result.citations, start=1):
        source = citation.metadata.get("source", "")
        page = citation.metadata.get("page_number")
        location = f"{source} (page {page})" if page else source
        print(f"  [{index}] {location}  score={citation.combined_score:.3f}")


async def _run_turn(
    pipeline: Any,
    chat: ChatSettings,
    messages: list[ChatMessage],
) -> list[ChatMessage]:
    """Run one turn; returns the transcript to keep.

    Ctrl+C cancels the runner's main task, which lands here as
    ``asyncio.CancelledError``; the turn is then cancelled through the
    pipeline and the transcript is kept as it was.
    """
    message_id = uuid.uuid4().hex
    task = asyncio.ensure_future(
        pipeline.run_turn(chat, messages, message_id, on_token=_print_token)
    )
    try:
        result = await asyncio.shield(task)
    except asyncio.CancelledError:
        pipeline.cancel(message_id)
        result = await task
    print()
    if result.status == "cancelled":
        print("[cancelled]")
        return messages
    _print_citations(result)
    return result.messages


def _chat_loop(args: argparse.Namespace, components: dict[str, Any], runner: asyncio.Runner) -> int:
    store = components["store"]
    if args.db and not store.exists(args.db):
        print(f"Database not found: {args.db}", file=sys.stderr)
        return 1

    chat = ChatSettings(
        system_message=args.system or DEFAULT_SYSTEM_MESSAGE,
        temperature=args.temperature,
        max_tokens=args.max_tokens,
        max_history_length=args.history,
        search_results_limit=args.k,
        topic=args.topic,
        db_name=args.db,
    )
    pipeline = components["pipeline"]
    messages: list[ChatMessage] = []

    target = f"database '{args.db}'" if args.db else "no database"
    print(f"Chatting with {target}. Type /quit to exit.")
    while True:
        try:
            line = input("\n> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not line:
            continue
        if line in _EXIT_COMMANDS:
            break
        pending = [*messages, ChatMessage(role="user", content=line)]
        try:
            messages = runner.run(_run_turn(pipeline, chat, pending))
        except RagDeskError as exc:
            print(f"\nError: {exc}", file=sys.stderr)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.chat",
        description="Chat with a ragdesk document database.",
    )
    parser.add_argument("--db", default=None, help="Database to search (omit for plain chat)")
    parser.add_argument("--topic", default="", help="Conversation topic hint")
    parser.add_argument("--system", default=None, help="System message template")
    parser.add_argument("--k", type=int, default=6, help="Search results per turn (default: 6)")
    parser.add_argument("--history", type=int, default=6, help="Messages of history sent (0 = all)")
    parser.add_argument("--temperature", type=float, default=0.5, help="Answer temperature")
    parser.add_argument("--max-tokens", type=int, default=1024, dest="max_tokens")
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the interactive chat."""
    args = _build_parser().parse_args(argv)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, stream=sys.stderr)

    from src.main import build_components

    components = build_components(app_settings)
    # One event loop for the whole session: the HTTP client is bound to it.
    with asyncio.Runner() as runner:
        try:
            code = _chat_loop(args, components, runner)
        finally:
            runner.run(components["http_client"].aclose())
    sys.exit(code)


if __name__ == "__main__":
    main()
