"""
CONVERSATION CONTROLLER

Client-side session state machine: send -> resolve -> typing delay ->
append reply -> optional speak.

States:
- IDLE: ready for input
- AWAITING_REPLY: reply computed, typing indicator shown, delivery scheduled

Allowed Transitions (ONLY THESE):
- IDLE -> AWAITING_REPLY    (send with non-blank text)
- AWAITING_REPLY -> IDLE    (scheduled reply delivered)

Core principles:
- All session/settings state lives on this object; nothing is global
- Every mutation of the message log or settings is persisted immediately
- At most one reply is pending. send() while AWAITING_REPLY is rejected
  and leaves the pending input buffer untouched
- Blank sends are silent no-ops
- Speech and storage failures are logged, never raised to the caller
"""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from simplebot.export import format_transcript, write_transcript
from simplebot.instrumentation import log_event
from simplebot.models import Message, Sender, Settings
from simplebot.scheduler import CancelToken, Scheduler
from simplebot.speech_input import ListenState, SpeechInput
from simplebot.speech_output import SpeechOutput
from simplebot.storage import SessionStore, SettingsStore, StorageError

logger = logging.getLogger("SIMPLEBOT.Controller")

TYPING_BASE_MS = 1000
TYPING_PER_CHAR_MS = 20
TYPING_MAX_MS = 2400


def typing_delay(reply_length: int) -> int:
    """Simulated typing latency in ms: 1000 + 20/char, capped at 2400."""
    return min(TYPING_BASE_MS + reply_length * TYPING_PER_CHAR_MS, TYPING_MAX_MS)


def now_ms() -> int:
    return int(time.time() * 1000)


class ControllerState(Enum):
    IDLE = "IDLE"
    AWAITING_REPLY = "AWAITING_REPLY"


_VALID_TRANSITIONS = {
    ControllerState.IDLE: {ControllerState.AWAITING_REPLY},
    ControllerState.AWAITING_REPLY: {ControllerState.IDLE},
}


class ConversationController:
    """
    Owns the message log, settings, input buffer and reply scheduling.

    Args:
        resolver: text -> reply (local rule-table profile)
        session_store: persisted message log
        settings_store: persisted settings record
        scheduler: schedule-and-cancel primitive for the typing delay
        speech_output: optional speech output adapter
        speech_input: optional speech input adapter
        export_dir: default directory for transcript exports
        clock: epoch-milliseconds source
        on_change: optional listener called with an event name
            ("messages", "state", "settings", "input", "transcript",
            "listening", "panel")
    """

    def __init__(
        self,
        resolver: Callable[[str], str],
        session_store: SessionStore,
        settings_store: SettingsStore,
        scheduler: Scheduler,
        speech_output: Optional[SpeechOutput] = None,
        speech_input: Optional[SpeechInput] = None,
        export_dir: Union[str, Path] = ".",
        clock: Callable[[], int] = now_ms,
        on_change: Optional[Callable[[str], None]] = None,
    ):
        self._resolver = resolver
        self._session_store = session_store
        self._settings_store = settings_store
        self._scheduler = scheduler
        self._speech_output = speech_output
        self._speech_input = speech_input
        self._export_dir = export_dir
        self._clock = clock
        self._on_change = on_change

        self._state = ControllerState.IDLE
        self._pending: Optional[CancelToken] = None
        self._messages: List[Message] = session_store.load()
        self._settings: Settings = settings_store.load()
        self.input_buffer = ""
        self.settings_open = False

        if speech_input is not None:
            speech_input.bind(self.append_transcript, self._on_listen_state)

        logger.info(
            f"Controller initialized: {len(self._messages)} messages restored, "
            f"state={self._state.value}"
        )

    # ========================================================================
    # STATE
    # ========================================================================

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_typing(self) -> bool:
        return self._state == ControllerState.AWAITING_REPLY

    @property
    def messages(self) -> List[Message]:
        return list(self._messages)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def mic_enabled(self) -> bool:
        """Mic control is live only with recognition available and voice input on."""
        return (
            self._speech_input is not None
            and self._speech_input.available
            and self._settings.voiceInput
        )

    @property
    def is_listening(self) -> bool:
        return self._speech_input is not None and self._speech_input.is_listening

    def _notify(self, event: str) -> None:
        if self._on_change:
            self._on_change(event)

    def _transition(self, new_state: ControllerState) -> None:
        if new_state not in _VALID_TRANSITIONS[self._state]:
            error_msg = f"Invalid transition: {self._state.value} -> {new_state.value}"
            logger.error(error_msg)
            raise RuntimeError(error_msg)
        old_state = self._state
        self._state = new_state
        log_event(f"STATE {old_state.value}->{new_state.value}", stage="controller")
        self._notify("state")

    # ========================================================================
    # PERSISTENCE
    # ========================================================================

    def _append(self, text: str, sender: Sender) -> Message:
        ts = self._clock()
        if self._messages:
            ts = max(ts, self._messages[-1].timestamp)
        message = Message(text=text, sender=sender, timestamp=ts)
        self._messages.append(message)
        self._persist_messages()
        self._notify("messages")
        return message

    def _persist_messages(self) -> None:
        try:
            self._session_store.save(self._messages)
        except StorageError as e:
            logger.error(f"[Storage] Chat log not saved: {e}")

    def _persist_settings(self) -> None:
        try:
            self._settings_store.save(self._settings)
        except StorageError as e:
            logger.error(f"[Storage] Settings not saved: {e}")

    # ========================================================================
    # SEND / REPLY CYCLE
    # ========================================================================

    def set_input(self, text: str) -> None:
        self.input_buffer = text
        self._notify("input")

    def send(self, text: Optional[str] = None) -> bool:
        """
        Send `text` (default: the pending input buffer).

        Returns True when a USER message was appended and a reply scheduled.
        """
        raw = self.input_buffer if text is None else text
        if not raw or not raw.strip():
            return False
        if self._state == ControllerState.AWAITING_REPLY:
            logger.debug("Send rejected: reply still pending")
            return False

        content = raw.strip()
        self._append(content, Sender.USER)
        self.set_input("")

        reply = self._resolver(content)
        delay = typing_delay(len(reply))
        self._transition(ControllerState.AWAITING_REPLY)
        self._pending = self._scheduler.schedule(delay, lambda: self._reply_ready(reply))
        log_event(f"REPLY_SCHEDULED delay={delay}ms len={len(reply)}", stage="controller")
        return True

    def _reply_ready(self, reply: str) -> None:
        self._pending = None
        self._append(reply, Sender.BOT)
        self._transition(ControllerState.IDLE)
        if self._settings.should_speak and self._speech_output is not None:
            self._speech_output.speak(reply, self._settings)

    def cancel_pending(self) -> bool:
        """Drop a scheduled reply without delivering it."""
        if self._pending is None:
            return False
        self._pending.cancel()
        self._pending = None
        self._transition(ControllerState.IDLE)
        return True

    # ========================================================================
    # SESSION ACTIONS
    # ========================================================================

    def clear(self) -> None:
        """Empty the message log and erase its persisted form."""
        self._messages = []
        try:
            self._session_store.erase()
        except StorageError as e:
            logger.error(f"[Storage] Chat log not erased: {e}")
        logger.info("[SESSION] Chat cleared")
        self._notify("messages")

    def export_text(self) -> str:
        return format_transcript(self._messages)

    def export(self, directory: Optional[Union[str, Path]] = None) -> Path:
        return write_transcript(self._messages, directory or self._export_dir)

    # ========================================================================
    # SETTINGS
    # ========================================================================

    def toggle_setting(self, key: str) -> Settings:
        """
        Flip one boolean setting and persist it.

        Raises:
            KeyError: unknown setting name
        """
        self._settings = self._settings.toggled(key)
        self._persist_settings()
        logger.info(f"[Settings] {key} -> {getattr(self._settings, key)}")
        if key == "voiceInput" and not self._settings.voiceInput and self.is_listening:
            self._speech_input.stop()
        self._notify("settings")
        return self._settings

    def toggle_settings_panel(self) -> bool:
        self.settings_open = not self.settings_open
        self._notify("panel")
        return self.settings_open

    # ========================================================================
    # SPEECH INPUT
    # ========================================================================

    def toggle_recognition(self) -> bool:
        """Start/stop listening. No-op (False) while the mic is disabled."""
        if not self.mic_enabled:
            return False
        self._speech_input.toggle()
        return True

    def append_transcript(self, text: str) -> None:
        """Recognized speech joins the pending input; it is never auto-sent."""
        self.set_input(f"{self.input_buffer} {text}" if self.input_buffer else text)
        self._notify("transcript")

    def _on_listen_state(self, state: ListenState) -> None:
        self._notify("listening")

    def close(self) -> None:
        self.cancel_pending()
        if self._speech_input is not None:
            self._speech_input.stop()
        if self._speech_output is not None:
            self._speech_output.shutdown()
