from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from app.commands.parser import Group, GroupId, parse_command, parse_txt_command
from app.security.validation import validate_outgoing_text


@dataclass(frozen=True)
class BotContext:
    groups: list[Group] = field(default_factory=list)
    sender_name: str = ""


@dataclass(frozen=True)
class Relay:
    # int chat id or "@channelusername"
    chat_id: GroupId
    text: str


@dataclass(frozen=True)
class BotReply:
    text: str
    command: str
    relay: Optional[Relay] = None
    group_id: Optional[GroupId] = None


def help_text() -> str:
    return (
        "Perintah tersedia:\n"
        "txt <nama grup> <pesan> - kirim pesan ke grup\n"
        "/groups - daftar grup\n"
        "/help - menu\n"
        "/start - menu\n\n"
        "Contoh: txt hotline tolong bantu cek"
    )


def groups_text(groups: list[Group]) -> str:
    if not groups:
        return "Belum ada grup yang dikonfigurasi."
    names = sorted((g.name for g in groups), key=str.lower)
    lines = ["Grup tersedia:"]
    lines.extend(f"- {name}" for name in names)
    return "\n".join(lines)


def _group_name(groups: list[Group], group_id: GroupId) -> str:
    for g in groups:
        if g.id == group_id:
            return g.name
    return str(group_id)


def _handle_slash(ctx: BotContext, name: str) -> Optional[BotReply]:
    if name in ("start", "help"):
        return BotReply(help_text(), command=name)
    if name == "groups":
        return BotReply(groups_text(ctx.groups), command=name)
    return BotReply("Perintah tidak dikenal. Ketik /help", command=name)


def handle_text(ctx: BotContext, text: str) -> Optional[BotReply]:
    parsed = parse_command(text)
    if parsed:
        return _handle_slash(ctx, parsed.name)

    cmd = parse_txt_command(text, ctx.groups)
    if cmd is None:
        parts = (text or "").split(maxsplit=1)
        if not parts or parts[0].lower() != "txt":
            return None
        if len(parts) == 1:
            return BotReply("Format: txt <nama grup> <pesan>", command="txt")
        return BotReply("Grup tidak ditemukan. Ketik /groups untuk melihat daftar grup.", command="txt")

    name = _group_name(ctx.groups, cmd.group_id)
    if not cmd.message:
        return BotReply(f"Pesan untuk {name} kosong.", command="txt", group_id=cmd.group_id)

    prefix = f"[{ctx.sender_name}] " if ctx.sender_name else ""
    try:
        outgoing = validate_outgoing_text(prefix + cmd.message)
    except ValueError as e:
        return BotReply(str(e), command="txt", group_id=cmd.group_id)

    return BotReply(
        f"Terkirim ke {name}.",
        command="txt",
        relay=Relay(chat_id=cmd.group_id, text=outgoing),
        group_id=cmd.group_id,
    )
