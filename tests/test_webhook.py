import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.storage.audit import AuditStore
from app.telegram.client import TelegramClient

SECRET = "s3cret"


@pytest.fixture
def bot(monkeypatch, tmp_path):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TELEGRAM_WEBHOOK_SECRET", SECRET)
    monkeypatch.setenv("TXT_GROUPS", "-100=Hotline;-200=Hotlines")
    monkeypatch.setenv("TELEGRAM_ALLOWED_USER_IDS", "2")
    monkeypatch.setenv("BOT_RATE_LIMIT_MAX", "2")
    monkeypatch.setenv("AUDIT_DB_PATH", str(tmp_path / "audit.db"))

    sent = []
    status = {"code": 200, "fail_chat": None, "hang_chat": None}

    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        sent.append(body)
        if body["chat_id"] == status["hang_chat"]:
            await asyncio.sleep(1)
        if body["chat_id"] == status["fail_chat"]:
            return httpx.Response(400, json={"ok": False, "description": "bad"})
        if status["code"] != 200:
            return httpx.Response(status["code"], json={"ok": False, "description": "bad"})
        return httpx.Response(200, json={"ok": True, "result": {}})

    with TestClient(app) as client:
        app.state.telegram = TelegramClient(
            bot_token="123:abc", http=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        yield client, sent, status, tmp_path / "audit.db"


def _update(update_id: int, text: str, user_id: int = 2) -> dict:
    return {
        "update_id": update_id,
        "message": {
            "message_id": 50,
            "chat": {"id": 1, "type": "private"},
            "from": {"id": user_id, "first_name": "Budi"},
            "text": text,
        },
    }


def _post(client, payload, secret=SECRET):
    return client.post("/webhook", json=payload, headers={"X-Telegram-Bot-Api-Secret-Token": secret})


def _audit_rows(path):
    return asyncio.run(AuditStore(str(path)).recent())


def test_healthz(bot):
    client, _, _, _ = bot
    assert client.get("/healthz").json() == {"ok": True}


def test_rejects_bad_secret(bot):
    client, sent, _, _ = bot
    resp = _post(client, _update(1, "txt hotline halo"), secret="wrong")
    assert resp.status_code == 401
    assert sent == []


def test_relays_and_confirms(bot):
    client, sent, _, db = bot
    resp = _post(client, _update(1, "txt hotlines tolong cek"))
    assert resp.json() == {"ok": True}
    assert sent[0]["chat_id"] == -200
    assert sent[0]["text"] == "[Budi] tolong cek"
    assert sent[1]["chat_id"] == 1
    assert sent[1]["reply_to_message_id"] == 50
    assert "Hotlines" in sent[1]["text"]

    rows = _audit_rows(db)
    assert rows[0].command == "txt"
    assert rows[0].group_id == -200
    assert rows[0].ok is True


def test_duplicate_update_is_ignored(bot):
    client, sent, _, _ = bot
    _post(client, _update(7, "txt hotline halo"))
    _post(client, _update(7, "txt hotline halo"))
    assert len(sent) == 2


def test_plain_text_is_ignored(bot):
    client, sent, _, db = bot
    _post(client, _update(1, "halo semua"))
    assert sent == []
    assert _audit_rows(db) == []


def test_not_allowed_user_is_denied(bot):
    client, sent, _, _ = bot
    _post(client, _update(1, "txt hotline halo", user_id=99))
    assert len(sent) == 1
    assert sent[0]["text"] == "Akses ditolak."


def test_rate_limited(bot):
    client, sent, _, _ = bot
    for i in range(3):
        _post(client, _update(i + 1, "/help"))
    assert len(sent) == 3
    assert "Rate limit" in sent[2]["text"]


def test_delivery_failure_notifies_and_audits(bot):
    client, sent, status, db = bot
    status["code"] = 400
    _post(client, _update(1, "txt hotline halo"))
    assert sent[0]["chat_id"] == -100
    assert sent[-1]["chat_id"] == 1
    assert sent[-1]["text"] == "Terjadi kesalahan internal."

    rows = _audit_rows(db)
    assert rows[0].ok is False
    assert rows[0].detail.startswith("error:")


def test_failed_confirmation_keeps_relay_ok(bot):
    client, sent, status, db = bot
    status["fail_chat"] = 1
    _post(client, _update(1, "txt hotline halo"))
    assert [(b["chat_id"], b["text"]) for b in sent] == [(-100, "[Budi] halo"), (1, "Terkirim ke Hotline.")]

    rows = _audit_rows(db)
    assert rows[0].ok is True
    assert rows[0].group_id == -100
    assert rows[0].detail.startswith("relayed, reply failed")


def test_relay_timeout_notifies_and_audits(bot, monkeypatch):
    client, sent, status, db = bot
    monkeypatch.setattr("app.main._SEND_TIMEOUT_SEC", 0.05)
    status["hang_chat"] = -100
    _post(client, _update(1, "txt hotline halo"))
    assert sent[0]["chat_id"] == -100
    assert sent[-1]["chat_id"] == 1
    assert sent[-1]["text"] == "Timeout saat mengirim pesan. Coba lagi."

    rows = _audit_rows(db)
    assert rows[0].ok is False
    assert rows[0].detail == "timeout"


def test_failed_help_reply_is_audited_as_failure(bot):
    client, sent, status, db = bot
    status["fail_chat"] = 1
    _post(client, _update(1, "/help"))
    assert len(sent) == 1

    rows = _audit_rows(db)
    assert rows[0].command == "help"
    assert rows[0].ok is False
