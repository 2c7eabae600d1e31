"""
Persisted client state.

Two independently keyed JSON slots, the way a browser keeps them in
localStorage:
- CHAT_STORAGE: the ordered message log
- SETTINGS_STORAGE: the settings record

Contract:
- load() never raises. Missing or corrupt data yields the default
  (empty message list / default Settings).
- save() writes synchronously and skips the write when the serialized value
  is unchanged, so saving the same value twice has no observable effect.
- Version suffix on the keys keeps older formats from colliding.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Generic, List, Optional, TypeVar, Union

from simplebot.models import Message, Settings

logger = logging.getLogger("SIMPLEBOT.Storage")

CHAT_STORAGE = "simplebot_chat_v2"
SETTINGS_STORAGE = "simplebot_settings_v2"

T = TypeVar("T")


class StorageError(Exception):
    """A persisted slot could not be written or removed."""


class LocalStorage:
    """
    Directory-backed key/value store. One JSON text file per key.

    Writes go through a temp file + os.replace so a crash never leaves a
    half-written slot behind.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"[Storage] Cannot read {key}: {e}")
            return None

    def set_item(self, key: str, value: str) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, self._path(key))
        except OSError as e:
            raise StorageError(f"Cannot write {key}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot remove {key}: {e}") from e


class JsonSlot(Generic[T]):
    """One persisted value under a fixed key."""

    def __init__(self, storage: LocalStorage, key: str):
        self.storage = storage
        self.key = key
        self._last_written: Optional[str] = None

    def default(self) -> T:
        raise NotImplementedError

    def decode(self, data) -> T:
        raise NotImplementedError

    def encode(self, value: T):
        raise NotImplementedError

    def load(self) -> T:
        raw = self.storage.get_item(self.key)
        if raw is None:
            return self.default()
        try:
            value = self.decode(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError, OverflowError, RecursionError) as e:
            logger.warning(f"[Storage] Discarding corrupt {self.key}: {e}")
            return self.default()
        self._last_written = raw
        return value

    def save(self, value: T) -> bool:
        """Persist value. Returns False when nothing had to be written."""
        raw = json.dumps(self.encode(value), ensure_ascii=False)
        if raw == self._last_written:
            return False
        self.storage.set_item(self.key, raw)
        self._last_written = raw
        return True

    def erase(self) -> None:
        self.storage.remove_item(self.key)
        self._last_written = None


class SessionStore(JsonSlot[List[Message]]):

    def __init__(self, storage: LocalStorage, key: str = CHAT_STORAGE):
        super().__init__(storage, key)

    def default(self) -> List[Message]:
        return []

    def decode(self, data) -> List[Message]:
        if not isinstance(data, list):
            raise TypeError("chat log must be a list")
        messages = [Message.from_dict(item) for item in data]
        for earlier, later in zip(messages, messages[1:]):
            if later.timestamp < earlier.timestamp:
                raise ValueError("chat log timestamps go backwards")
        return messages

    def encode(self, value: List[Message]):
        return [m.to_dict() for m in value]


class SettingsStore(JsonSlot[Settings]):

    def __init__(self, storage: LocalStorage, key: str = SETTINGS_STORAGE):
        super().__init__(storage, key)

    def default(self) -> Settings:
        return Settings()

    def decode(self, data) -> Settings:
        if not isinstance(data, dict):
            raise TypeError("settings must be an object")
        return Settings.merged(data)

    def encode(self, value: Settings):
        return value.to_dict()
