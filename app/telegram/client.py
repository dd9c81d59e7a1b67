from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx


class TelegramError(RuntimeError):
    pass


@dataclass(frozen=True)
class TelegramClient:
    bot_token: str
    http: httpx.AsyncClient

    @property
    def _base_url(self) -> str:
        return f"https://api.telegram.org/bot{self.bot_token}"

    async def send_message(
        self,
        chat_id: int | str,
        text: str,
        *,
        reply_to_message_id: Optional[int] = None,
        disable_web_page_preview: bool = True,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": disable_web_page_preview,
        }
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = reply_to_message_id
            payload["allow_sending_without_reply"] = True

        resp = await self.http.post(f"{self._base_url}/sendMessage", json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not data.get("ok", False):
            raise TelegramError(str(data.get("description") or "sendMessage failed"))
        return data
