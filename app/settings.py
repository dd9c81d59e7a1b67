from __future__ import annotations

import logging
import re

from pydantic_settings import BaseSettings, SettingsConfigDict

from app.commands.parser import Group, normalize_group_name

logger = logging.getLogger(__name__)

_GROUP_SEP_RE = re.compile(r"[;\n]")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    telegram_bot_token: str
    telegram_webhook_secret: str
    telegram_allowed_user_ids: str = ""

    # "<chat_id>=<group name>" entries separated by ";" or newlines
    txt_groups: str = ""

    bot_rate_limit_max: int = 5
    bot_rate_limit_window_sec: int = 10

    audit_db_path: str = "./audit.db"
    log_level: str = "INFO"

    def allowed_user_ids(self) -> set[int]:
        raw = (self.telegram_allowed_user_ids or "").strip()
        if not raw:
            return set()
        items = raw.replace("\n", ",").replace(" ", ",").split(",")
        out: set[int] = set()
        for item in items:
            v = item.strip()
            if not v or not v.isdigit():
                continue
            out.add(int(v))
        return out

    def groups(self) -> list[Group]:
        return parse_groups(self.txt_groups)


def parse_groups(raw: str) -> list[Group]:
    out: list[Group] = []
    seen: set[int] = set()
    for entry in _GROUP_SEP_RE.split(raw or ""):
        entry = entry.strip()
        if not entry:
            continue
        chat_part, sep, name = entry.partition("=")
        chat_part = chat_part.strip()
        name = name.strip()
        if not sep or not re.fullmatch(r"-?\d+", chat_part):
            logger.warning("txt_groups: skipping malformed entry %r", entry)
            continue
        if not normalize_group_name(name):
            logger.warning("txt_groups: skipping entry with empty name chat_id=%s", chat_part)
            continue
        chat_id = int(chat_part)
        if chat_id in seen:
            logger.warning("txt_groups: duplicate chat_id=%s, keeping first", chat_id)
            continue
        seen.add(chat_id)
        out.append(Group(id=chat_id, name=name))
    return out


def load_settings() -> Settings:
    return Settings()
