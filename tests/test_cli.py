import pytest

from notion_relay import cli
from notion_relay.domain.models.results import ClientResult


class RecordingTelegramClient:
    instances = []

    def __init__(self, token, timeout=10.0):
        self.token = token
        self.calls = []
        self.closed = False
        RecordingTelegramClient.instances.append(self)

    async def set_webhook(self, url, secret_token=None):
        self.calls.append(("set_webhook", url, secret_token))
        return ClientResult.success(True)

    async def delete_webhook(self):
        self.calls.append(("delete_webhook",))
        return ClientResult.failure("Unauthorized")

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def fake_telegram(monkeypatch):
    RecordingTelegramClient.instances = []
    monkeypatch.setattr(cli, "TelegramClient", RecordingTelegramClient)
    monkeypatch.setenv("BOT_TOKEN", "link-token")
    monkeypatch.setenv("BOT_TOKEN_TODO", "todo-token")
    monkeypatch.setenv("TELEGRAM_WEBHOOK_SECRET", "s3cret")


def test_set_webhook_builds_bot_url(capsys) -> None:
    code = cli.main(["set-webhook", "todo", "https://relay.example/"])

    client = RecordingTelegramClient.instances[0]
    assert code == 0
    assert client.token == "todo-token"
    assert client.calls == [("set_webhook", "https://relay.example/api/todo", "s3cret")]
    assert client.closed
    assert "webhook set to https://relay.example/api/todo" in capsys.readouterr().out


def test_delete_webhook_failure_exit_code(capsys) -> None:
    code = cli.main(["delete-webhook", "link"])

    assert code == 1
    assert RecordingTelegramClient.instances[0].token == "link-token"
    assert "failed: Unauthorized" in capsys.readouterr().out


def test_unknown_bot_is_rejected() -> None:
    with pytest.raises(SystemExit):
        cli.main(["set-webhook", "other", "https://relay.example"])
