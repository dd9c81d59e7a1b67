from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

import httpx
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException

from app.commands.handlers import BotContext, handle_text
from app.security.rate_limit import RateLimiter
from app.settings import load_settings
from app.storage.audit import AuditStore, make_event
from app.storage.seen import SeenUpdates
from app.telegram.client import TelegramClient
from app.telegram.models import Message, Update
from app.util.retry import retry_telegram


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))


app = FastAPI(title="Telegram txt relay bot")
logger = logging.getLogger("txt_relay_bot")

_DENY_TEXT = "Akses ditolak."
_RATE_LIMIT_TEXT = "Rate limit. Coba lagi sebentar."
_TIMEOUT_TEXT = "Timeout saat mengirim pesan. Coba lagi."
_ERROR_TEXT = "Terjadi kesalahan internal."

_SEND_TIMEOUT_SEC = 9.0


def _is_allowed_user(settings, user_id: Optional[int]) -> bool:
    allowed = settings.allowed_user_ids()
    if not allowed:
        return True
    if user_id is None:
        return False
    return int(user_id) in allowed


@app.on_event("startup")
async def _startup() -> None:
    settings = load_settings()
    _setup_logging(settings.log_level)

    limits = httpx.Limits(max_keepalive_connections=20, max_connections=50)
    timeout = httpx.Timeout(connect=3.0, read=5.0, write=5.0, pool=3.0)
    http = httpx.AsyncClient(limits=limits, timeout=timeout)

    groups = settings.groups()
    if not groups:
        logger.warning("no txt groups configured, txt commands will not match")
    logger.info("loaded groups count=%s", len(groups))

    app.state.settings = settings
    app.state.groups = groups
    app.state.http = http
    app.state.telegram = TelegramClient(bot_token=settings.telegram_bot_token, http=http)
    app.state.seen = SeenUpdates()
    app.state.rate_limiter = RateLimiter.create(
        max_requests=settings.bot_rate_limit_max,
        window_sec=settings.bot_rate_limit_window_sec,
    )
    app.state.audit = AuditStore(settings.audit_db_path)
    await app.state.audit.init()


@app.on_event("shutdown")
async def _shutdown() -> None:
    http: httpx.AsyncClient = app.state.http
    await http.aclose()


@retry_telegram()
async def _send_telegram(chat_id: int | str, reply_to: Optional[int], text: str) -> None:
    telegram: TelegramClient = app.state.telegram
    await telegram.send_message(chat_id=chat_id, text=text, reply_to_message_id=reply_to)


async def _send_with_timeout(chat_id: int | str, reply_to: Optional[int], text: str) -> None:
    await asyncio.wait_for(_send_telegram(chat_id, reply_to, text), timeout=_SEND_TIMEOUT_SEC)


async def _notify_failure(msg: Message, text: str) -> None:
    try:
        await _send_with_timeout(msg.chat.id, msg.message_id, text)
    except Exception:
        logger.exception("failed to notify sender chat_id=%s", msg.chat.id)


@app.get("/healthz")
async def healthz() -> dict[str, bool]:
    return {"ok": True}


@app.post("/webhook")
async def webhook(
    update: Update,
    background: BackgroundTasks,
    x_telegram_bot_api_secret_token: Optional[str] = Header(
        default=None, alias="X-Telegram-Bot-Api-Secret-Token"
    ),
) -> dict[str, bool]:
    settings = app.state.settings
    if x_telegram_bot_api_secret_token != settings.telegram_webhook_secret:
        logger.warning("webhook rejected: invalid secret")
        raise HTTPException(status_code=401, detail="invalid secret")

    seen: SeenUpdates = app.state.seen
    if not seen.check_and_mark(update.update_id):
        logger.info("duplicate update_id=%s ignored", update.update_id)
        return {"ok": True}

    msg = update.message
    if not msg or not msg.text:
        return {"ok": True}

    user_id = msg.from_user.id if msg.from_user else None
    ctx = BotContext(
        groups=app.state.groups,
        sender_name=msg.from_user.display_name() if msg.from_user else "",
    )
    reply = handle_text(ctx, msg.text)
    if reply is None:
        return {"ok": True}

    if not _is_allowed_user(settings, user_id):
        background.add_task(_send_telegram, msg.chat.id, msg.message_id, _DENY_TEXT)
        return {"ok": True}

    key = f"{msg.chat.id}:{user_id}"
    limiter: RateLimiter = app.state.rate_limiter
    if not limiter.allow(key):
        logger.info("rate_limited chat_id=%s user_id=%s", msg.chat.id, user_id)
        background.add_task(_send_telegram, msg.chat.id, msg.message_id, _RATE_LIMIT_TEXT)
        return {"ok": True}

    start_ts = time.time()

    async def _process() -> None:
        logger.info(
            "command chat_id=%s user_id=%s name=%s group_id=%s relay=%s",
            msg.chat.id,
            user_id,
            reply.command,
            reply.group_id,
            reply.relay is not None,
        )
        ok = True
        detail = reply.text
        try:
            if reply.relay is not None:
                try:
                    await _send_with_timeout(reply.relay.chat_id, None, reply.relay.text)
                except asyncio.TimeoutError:
                    ok = False
                    detail = "timeout"
                    logger.warning("relay timeout chat_id=%s group_id=%s", msg.chat.id, reply.group_id)
                    await _notify_failure(msg, _TIMEOUT_TEXT)
                    return
                except Exception as e:
                    ok = False
                    detail = f"error: {e!r}"
                    logger.exception("relay failed chat_id=%s group_id=%s", msg.chat.id, reply.group_id)
                    await _notify_failure(msg, _ERROR_TEXT)
                    return

            # once relayed, a failed confirmation must not prompt the sender to resend
            try:
                await _send_with_timeout(msg.chat.id, msg.message_id, reply.text)
            except Exception as e:
                logger.exception("reply failed chat_id=%s name=%s", msg.chat.id, reply.command)
                if reply.relay is None:
                    ok = False
                    detail = f"error: {e!r}"
                else:
                    detail = f"relayed, reply failed: {e!r}"
        finally:
            audit: AuditStore = app.state.audit
            ev = make_event(
                chat_id=msg.chat.id,
                user_id=user_id,
                command=reply.command,
                group_id=reply.group_id,
                message=reply.relay.text if reply.relay else "",
                ok=ok,
                detail=detail,
                start_ts=start_ts,
            )
            await audit.write(ev)

    background.add_task(_process)
    return {"ok": True}
