"""Command line entry point: run the server or manage bot webhooks."""

from typing import List, Optional
import argparse
import asyncio
import sys

from notion_relay.application.telegram.messaging_client import TelegramClient
from notion_relay.infrastructure.config.settings import Settings

BOT_PATHS = {"link": "/api/telegram", "todo": "/api/todo"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notion-relay", description="Telegram to Notion webhook relay")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the webhook server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    set_hook = sub.add_parser("set-webhook", help="Point a bot at this server")
    set_hook.add_argument("bot", choices=sorted(BOT_PATHS))
    set_hook.add_argument("base_url", help="Public base URL, e.g. https://relay.example.com")

    delete_hook = sub.add_parser("delete-webhook", help="Remove a bot's webhook")
    delete_hook.add_argument("bot", choices=sorted(BOT_PATHS))

    return parser


def _token(settings: Settings, bot: str) -> str:
    return settings.bot_token if bot == "link" else settings.bot_token_todo


async def _set_webhook(settings: Settings, bot: str, base_url: str) -> bool:
    client = TelegramClient(_token(settings, bot), timeout=settings.http_timeout_seconds)
    try:
        url = base_url.rstrip("/") + BOT_PATHS[bot]
        result = await client.set_webhook(url, secret_token=settings.telegram_webhook_secret)
    finally:
        await client.close()
    print(f"{bot}: {'webhook set to ' + url if result.ok else 'failed: ' + str(result.error)}")
    return result.ok


async def _delete_webhook(settings: Settings, bot: str) -> bool:
    client = TelegramClient(_token(settings, bot), timeout=settings.http_timeout_seconds)
    try:
        result = await client.delete_webhook()
    finally:
        await client.close()
    print(f"{bot}: {'webhook deleted' if result.ok else 'failed: ' + str(result.error)}")
    return result.ok


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()

    if args.command == "serve":
        import uvicorn
        uvicorn.run("notion_relay.application.api.api_server:app", host=args.host, port=args.port)
        return 0

    if args.command == "set-webhook":
        ok = asyncio.run(_set_webhook(settings, args.bot, args.base_url))
    else:
        ok = asyncio.run(_delete_webhook(settings, args.bot))
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
