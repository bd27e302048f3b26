"""Parse operator text from the chat-ops tool into commands.

Supported forms:
    /join SESSION_ID
    /leave SESSION_ID
    /typing SESSION_ID
    [SESSION_ID] message text
    [SESSION_ID] ai: message text    (reply shown to the visitor as the AI)

The leading slash on keyword commands is optional.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

SESSION_ID = r"[A-Za-z0-9-]+"

_ADDRESSED = re.compile(rf"^\[({SESSION_ID})\]\s*(ai:)?\s*(.*)$", re.IGNORECASE | re.DOTALL)
_KEYWORD = re.compile(rf"^/?(join|leave|typing)\s+({SESSION_ID})\s*$", re.IGNORECASE)


class CommandKind(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    TYPING = "typing"
    MESSAGE = "message"


@dataclass(frozen=True)
class OperatorCommand:
    kind: CommandKind
    session_id: str
    text: str = ""
    ghost: bool = False


def parse_command_text(text: Optional[str]) -> Optional[OperatorCommand]:
    """Return the command in `text`, or None when it is not addressed to a session."""
    if not text:
        return None
    text = text.strip()

    keyword = _KEYWORD.match(text)
    if keyword:
        return OperatorCommand(kind=CommandKind(keyword.group(1).lower()), session_id=keyword.group(2))

    addressed = _ADDRESSED.match(text)
    if addressed:
        body = addressed.group(3).strip()
        if not body:
            return None
        return OperatorCommand(
            kind=CommandKind.MESSAGE,
            session_id=addressed.group(1),
            text=body,
            ghost=addressed.group(2) is not None,
        )
    return None


def parse_slash_command(command: Optional[str], text: Optional[str]) -> Optional[OperatorCommand]:
    """Parse a slash-command payload such as `command=/join`, `text=ABC123`."""
    name = (command or "").strip().lstrip("/")
    if not name:
        return None
    return parse_command_text(f"{name} {text or ''}".strip())
