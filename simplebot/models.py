"""
Canonical data shapes shared by the session engine.

- Message: one immutable line of the conversation.
- Sender: who produced it.
- Settings: persisted user preferences (voice in/out, auto speak, dark mode).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from typing import Any, Mapping


# 3000-01-01T00:00:00Z, latest accepted persisted timestamp
MAX_TIMESTAMP_MS = 32_503_680_000_000


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


@dataclass(frozen=True)
class Message:
    """Single chat line. Timestamp is epoch milliseconds."""
    text: str
    sender: Sender
    timestamp: int

    @property
    def is_user(self) -> bool:
        return self.sender == Sender.USER

    def to_dict(self) -> dict:
        return {"text": self.text, "sender": self.sender.value, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        """
        Rebuild a message from its persisted form.

        Raises:
            ValueError / KeyError / TypeError: if the record is malformed
        """
        text = data["text"]
        timestamp = data["timestamp"]
        if not isinstance(text, str):
            raise TypeError("message text must be a string")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise TypeError("message timestamp must be a number")
        if isinstance(timestamp, float) and not math.isfinite(timestamp):
            raise ValueError(f"message timestamp is not finite: {timestamp!r}")
        if not 0 <= timestamp <= MAX_TIMESTAMP_MS:
            raise ValueError(f"message timestamp out of range: {timestamp!r}")
        return cls(text=text, sender=Sender(data["sender"]), timestamp=int(timestamp))


@dataclass(frozen=True)
class Settings:
    voiceInput: bool = True
    voiceOutput: bool = True
    autoSpeak: bool = True
    darkMode: bool = False

    @property
    def should_speak(self) -> bool:
        """Replies are spoken only when output and auto-speak are both on."""
        return self.voiceOutput and self.autoSpeak

    def to_dict(self) -> dict:
        return asdict(self)

    def toggled(self, key: str) -> "Settings":
        if key not in self.keys():
            raise KeyError(f"Unknown setting: {key}")
        return replace(self, **{key: not getattr(self, key)})

    @classmethod
    def keys(cls) -> list:
        return [f.name for f in fields(cls)]

    @classmethod
    def merged(cls, overrides: Mapping[str, Any]) -> "Settings":
        """
        Defaults overlaid with whatever boolean fields `overrides` carries.

        Unknown keys and non-boolean values are ignored so a partial or
        stale persisted record always loads.
        """
        known = {
            k: v for k, v in overrides.items()
            if k in cls.keys() and isinstance(v, bool)
        }
        return cls(**known)
