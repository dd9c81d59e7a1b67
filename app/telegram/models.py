from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: Optional[bool] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None

    def display_name(self) -> str:
        full = " ".join(p for p in (self.first_name, self.last_name) if p).strip()
        if full:
            return full
        if self.username:
            return f"@{self.username}"
        return str(self.id)


class Chat(BaseModel):
    id: int
    type: Optional[str] = None
    title: Optional[str] = None


class Message(BaseModel):
    message_id: int
    date: Optional[int] = None
    chat: Chat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None


class Update(BaseModel):
    update_id: int
    # edited_message is ignored so an edit is never relayed twice
    message: Optional[Message] = None
