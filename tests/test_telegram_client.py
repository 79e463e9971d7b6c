import asyncio
import json

import httpx

from notion_relay.application.telegram.messaging_client import TelegramClient
from notion_relay.domain.conversation import rendering


def run(coro):
    return asyncio.run(coro)


class BotApiStub:
    def __init__(self, reply=None, status=200):
        self.calls = []
        self.reply = reply if reply is not None else {"ok": True, "result": True}
        self.status = status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(self.status, json=self.reply)


def make_client(stub) -> TelegramClient:
    return TelegramClient("123:abc", http_client=httpx.AsyncClient(transport=httpx.MockTransport(stub)))


def test_send_message_payload() -> None:
    stub = BotApiStub()
    keyboard = rendering.duplicate_keyboard("https://example.com")

    ok = run(make_client(stub).send_message(5, "hello", keyboard=keyboard, parse_mode="Markdown", disable_preview=True))

    assert ok
    path, payload = stub.calls[0]
    assert path == "/bot123:abc/sendMessage"
    assert payload["chat_id"] == 5
    assert payload["text"] == "hello"
    assert payload["parse_mode"] == "Markdown"
    assert payload["disable_web_page_preview"] is True
    buttons = [button for row in payload["reply_markup"]["inline_keyboard"] for button in row]
    assert [button["callback_data"] for button in buttons] == ["force_save:https://example.com", "cancel"]


def test_plain_message_has_no_optional_fields() -> None:
    stub = BotApiStub()

    run(make_client(stub).send_message(5, "hello"))

    assert stub.calls[0][1] == {"chat_id": 5, "text": "hello"}


def test_answer_callback() -> None:
    stub = BotApiStub()

    run(make_client(stub).answer_callback("cb-9", "Saved successfully!"))

    assert stub.calls[0] == ("/bot123:abc/answerCallbackQuery", {"callback_query_id": "cb-9", "text": "Saved successfully!"})


def test_edit_message() -> None:
    stub = BotApiStub()

    run(make_client(stub).edit_message(5, 77, "done"))

    assert stub.calls[0] == ("/bot123:abc/editMessageText", {"chat_id": 5, "message_id": 77, "text": "done"})


def test_rejected_call_returns_false() -> None:
    stub = BotApiStub(reply={"ok": False, "description": "Bad Request: chat not found"}, status=400)

    assert run(make_client(stub).send_message(5, "hello")) is False


def test_rejection_description_is_the_error() -> None:
    stub = BotApiStub(reply={"ok": False, "description": "Unauthorized"}, status=401)

    result = run(make_client(stub).call("getMe", {}))

    assert not result.ok
    assert result.error == "Unauthorized"


def test_transport_error_returns_false() -> None:
    def explode(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = TelegramClient("123:abc", http_client=httpx.AsyncClient(transport=httpx.MockTransport(explode)))

    assert run(client.send_message(5, "hello")) is False


def test_set_webhook_with_secret() -> None:
    stub = BotApiStub()

    result = run(make_client(stub).set_webhook("https://relay.example/api/telegram", secret_token="s3"))

    assert result.ok
    path, payload = stub.calls[0]
    assert path == "/bot123:abc/setWebhook"
    assert payload == {
        "url": "https://relay.example/api/telegram",
        "allowed_updates": ["message", "callback_query"],
        "secret_token": "s3",
    }


def test_delete_webhook() -> None:
    stub = BotApiStub()

    result = run(make_client(stub).delete_webhook())

    assert result.ok
    assert stub.calls[0][0] == "/bot123:abc/deleteWebhook"
