from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Union

GroupId = Union[int, str]

_WS_RE = re.compile(r"\s+")
_TXT = "txt"


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    args: list[str]


@dataclass(frozen=True)
class Group:
    id: GroupId
    name: str


@dataclass(frozen=True)
class TxtCommand:
    group_id: GroupId
    message: str


def parse_command(text: str) -> ParsedCommand | None:
    t = (text or "").strip()
    if not t.startswith("/"):
        return None

    parts = t.split()
    if not parts:
        return None

    cmd = parts[0][1:]
    if "@" in cmd:
        cmd = cmd.split("@", 1)[0]
    cmd = cmd.strip().lower()
    if not cmd:
        return None
    return ParsedCommand(name=cmd, args=parts[1:])


def normalize_group_name(name: str) -> str:
    return _WS_RE.sub("", name).lower()


def parse_txt_command(raw_input: str, groups: Iterable[Group]) -> TxtCommand | None:
    """Parse ``txt <group name> <message>``.

    The group name is matched case-insensitively and ignoring spaces. Longer
    names are tried first so ``hotlines`` is not swallowed by ``hotline``.
    Returns None when the text is not a txt command or no group matches.
    """
    t = (raw_input or "").strip()
    if not t.lower().startswith(_TXT):
        return None

    remainder = t[len(_TXT):].lstrip()
    if not remainder:
        return None

    ordered = sorted(groups, key=lambda g: len(normalize_group_name(g.name)), reverse=True)
    for group in ordered:
        end = match_group_name(remainder, group.name)
        if end is not None:
            return TxtCommand(group_id=group.id, message=remainder[end:].strip())
    return None


def match_group_name(text: str, group_name: str) -> int | None:
    """Return the index in ``text`` right after ``group_name``, or None.

    Spaces in ``text`` are skipped. The match must end at a space or at the
    end of ``text``.
    """
    target = normalize_group_name(group_name)
    i = 0
    j = 0
    while i < len(text) and j < len(target):
        ch = text[i]
        if ch == " ":
            i += 1
            continue
        if ch.lower() != target[j]:
            return None
        i += 1
        j += 1

    if j != len(target):
        return None

    if i < len(text) and text[i] != " ":
        return None
    return i
