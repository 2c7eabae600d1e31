"""
Plain-text transcript export.

One physical line per message:
    [<localized timestamp>] <You|Bot>: <text>

Backslashes, carriage returns and newlines inside a message are escaped
(\\\\, \\r, \\n) so a multi-line message still occupies exactly one line.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from simplebot.models import Message

logger = logging.getLogger("SIMPLEBOT.Export")


def escape_line(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\r", "\\r").replace("\n", "\\n")


def format_timestamp(timestamp_ms: int) -> str:
    """Local date and time in the active LC_TIME locale, or "" if unrepresentable."""
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%x, %X")
    except (OverflowError, OSError, ValueError):
        logger.debug(f"[Export] Timestamp out of range: {timestamp_ms}")
        return ""


def format_line(message: Message) -> str:
    who = "You" if message.is_user else "Bot"
    return f"[{format_timestamp(message.timestamp)}] {who}: {escape_line(message.text)}"


def format_transcript(messages: Iterable[Message]) -> str:
    return "\n".join(format_line(m) for m in messages)


def export_filename(now: Optional[datetime] = None) -> str:
    """chat_<YYYY-MM-DDTHH-MM-SS>.txt (colons replaced so the name is portable)."""
    now = now or datetime.now()
    return f"chat_{now.strftime('%Y-%m-%dT%H-%M-%S')}.txt"


def write_transcript(
    messages: Iterable[Message],
    directory: Union[str, Path],
    now: Optional[datetime] = None,
) -> Path:
    directory = Path(directory).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(now)
    path.write_text(format_transcript(messages), encoding="utf-8")
    logger.info(f"[Export] Wrote {path}")
    return path
