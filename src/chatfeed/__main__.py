"""CLI entrypoint: follow one chat's feed from the terminal."""

import argparse
import asyncio
from datetime import datetime

from chatfeed.client import ChatFeedClient
from chatfeed.config import config
from chatfeed.feed.pages import FeedView
from chatfeed.feed.reconcile import is_optimistic
from chatfeed.log import configure_logging
from chatfeed.models.chats import Chat


def format_view(view: FeedView, last: int = 10) -> str:
    lines = []
    for m in view.messages[-last:]:
        stamp = datetime.fromtimestamp(m.time / 1000).strftime("%H:%M")
        who = "me" if m.is_from_me else (m.contact_name or m.handle or "?")
        marker = " (sending)" if is_optimistic(m) else ""
        lines.append(f"[{stamp}] {who}: {m.text or ''}{marker}")
    lines.append(f"-- {view.count}/{view.total} loaded{', more above' if view.has_more else ''}")
    return "\n".join(lines)


async def watch(api_base: str, chat_id: int, last: int) -> None:
    async with ChatFeedClient(api_base) as client:
        client.add_view_listener(lambda _chat_id, view: print(format_view(view, last), flush=True))
        client.channel.on_state_change(lambda state: print(f"-- {state.value}", flush=True))
        await client.select_chat(Chat(id=chat_id))
        await asyncio.Event().wait()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatfeed", description="Message feed client")
    parser.add_argument(
        "--api-base",
        default=config.server.api_base,
        help="Backend base URL (env: CHATFEED_SERVER_API_BASE)",
    )
    parser.add_argument("--log-format", choices=["json", "text"], default=None)
    sub = parser.add_subparsers(dest="command", required=True)
    w = sub.add_parser("watch", help="Print a chat's messages as they change")
    w.add_argument("--chat-id", type=int, required=True)
    w.add_argument("--last", type=int, default=10, help="Number of messages to show")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(log_format=args.log_format)
    try:
        asyncio.run(watch(args.api_base, args.chat_id, args.last))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
