"""
SPEECH INPUT ADAPTER

Responsibility: capture one spoken utterance, hand back its transcript.
Nothing more.

Does NOT:
- Send the message (transcript is appended to the pending input buffer)
- Keep listening after the first result (one utterance per session)
- Crash the controller (errors return the adapter to IDLE and are logged)

States:
- IDLE -> LISTENING   (toggle start)
- LISTENING -> IDLE   (toggle stop, utterance recognized, or error)

Capture runs on a background thread. Results hop back onto the event loop
through `dispatch` so all session state is touched from one thread only.
Results from a session that was already stopped are dropped.

Engine:
- WhisperRecognizer: sounddevice microphone capture with end-of-utterance
  silence detection, transcribed by faster-whisper.
"""

import asyncio
import functools
import logging
import threading
from enum import Enum
from typing import Callable, Optional, Protocol

from simplebot.capability import Available, Capability, Unavailable
from simplebot.instrumentation import log_event

logger = logging.getLogger("SIMPLEBOT.SpeechInput")


class ListenState(Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"


class SpeechRecognizer(Protocol):
    def listen(self, language: str, cancel: threading.Event) -> str:
        """
        Block until one utterance has been captured and transcribed.

        Setting `cancel` ends capture early. Returns "" when nothing was said.
        """
        ...


# ============================================================================
# WHISPER ENGINE
# ============================================================================

class WhisperRecognizer:
    """
    faster-whisper transcription of a single microphone utterance.

    Capture stops at the first stretch of `silence_seconds` below
    `silence_threshold` RMS after speech was heard, or at `max_seconds`.
    """

    CHUNK_SECONDS = 0.1

    def __init__(
        self,
        model_size: str = "base.en",
        device: str = "cpu",
        sample_rate: int = 16000,
        max_seconds: float = 10.0,
        silence_seconds: float = 1.2,
        silence_threshold: float = 0.01,
    ):
        self.model_size = model_size
        self.device = device
        self.sample_rate = sample_rate
        self.max_seconds = max_seconds
        self.silence_seconds = silence_seconds
        self.silence_threshold = silence_threshold
        self._model = None

    def _get_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            logger.info(f"[STT] Loading faster-whisper (model={self.model_size}, device={self.device})")
            self._model = WhisperModel(self.model_size, device=self.device, compute_type="int8")
        return self._model

    def _record(self, cancel: threading.Event):
        import numpy as np
        import sounddevice as sd

        chunk = int(self.sample_rate * self.CHUNK_SECONDS)
        max_chunks = int(self.max_seconds / self.CHUNK_SECONDS)
        silence_chunks_needed = int(self.silence_seconds / self.CHUNK_SECONDS)

        chunks = []
        heard_speech = False
        silent_run = 0
        with sd.InputStream(samplerate=self.sample_rate, channels=1, dtype="float32") as stream:
            for _ in range(max_chunks):
                if cancel.is_set():
                    break
                data, _overflowed = stream.read(chunk)
                samples = data[:, 0].copy()
                chunks.append(samples)
                rms = float(np.sqrt(np.mean(samples ** 2))) if samples.size else 0.0
                if rms >= self.silence_threshold:
                    heard_speech = True
                    silent_run = 0
                elif heard_speech:
                    silent_run += 1
                    if silent_run >= silence_chunks_needed:
                        break

        if not chunks or not heard_speech:
            return None
        return np.concatenate(chunks)

    def listen(self, language: str, cancel: threading.Event) -> str:
        audio = self._record(cancel)
        if audio is None or cancel.is_set():
            return ""
        segments, _info = self._get_model().transcribe(
            audio,
            language=language.split("-")[0],
            beam_size=1,
        )
        return " ".join(seg.text.strip() for seg in segments).strip()


def probe_speech_input(
    model_size: str = "base.en",
    device: str = "cpu",
    sample_rate: int = 16000,
    max_seconds: float = 10.0,
    silence_seconds: float = 1.2,
    silence_threshold: float = 0.01,
) -> Capability:
    """
    Detect recognition support once at startup.

    Returns Available(WhisperRecognizer) when faster-whisper and sounddevice
    import and an input device exists; Unavailable(reason) otherwise. The
    Whisper model itself is loaded lazily on first use.
    """
    try:
        import faster_whisper  # noqa: F401
        import sounddevice as sd

        sd.query_devices(kind="input")
    except ImportError as e:
        logger.info(f"[STT] Speech input unavailable: {e}")
        return Unavailable(reason=f"missing dependency: {e.name}")
    except Exception as e:
        logger.info(f"[STT] Speech input unavailable: {e}")
        return Unavailable(reason=str(e))
    logger.info("[STT] Speech input available")
    return Available(
        WhisperRecognizer(
            model_size=model_size,
            device=device,
            sample_rate=sample_rate,
            max_seconds=max_seconds,
            silence_seconds=silence_seconds,
            silence_threshold=silence_threshold,
        )
    )


# ============================================================================
# ADAPTER
# ============================================================================

def _start_thread(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, name="stt-listen", daemon=True).start()


class SpeechInput:
    """
    Capability-gated, single-utterance speech recognition.

    Args:
        capability: Available(recognizer) or Unavailable
        on_transcript: called on the loop thread with each recognized text
        on_state_change: called with the new ListenState
        language: BCP-47 tag passed to the recognizer
        run_in_background: starts the blocking capture (default: daemon thread)
        dispatch: hops a callable back to the loop thread
            (default: call_soon_threadsafe on the loop running at start())
    """

    def __init__(
        self,
        capability: Capability,
        on_transcript: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[ListenState], None]] = None,
        language: str = "en-US",
        run_in_background: Callable[[Callable[[], None]], None] = _start_thread,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        self.capability = capability
        self.language = language
        self._on_transcript = on_transcript
        self._on_state_change = on_state_change
        self._run_in_background = run_in_background
        self._dispatch = dispatch
        self._state = ListenState.IDLE
        self._session = 0
        self._cancel: Optional[threading.Event] = None

    def bind(
        self,
        on_transcript: Callable[[str], None],
        on_state_change: Optional[Callable[[ListenState], None]] = None,
    ) -> None:
        self._on_transcript = on_transcript
        if on_state_change is not None:
            self._on_state_change = on_state_change

    @property
    def available(self) -> bool:
        return isinstance(self.capability, Available)

    @property
    def state(self) -> ListenState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state == ListenState.LISTENING

    def _set_state(self, state: ListenState) -> None:
        if state == self._state:
            return
        old = self._state
        self._state = state
        logger.debug(f"[STT] {old.value} -> {state.value}")
        if self._on_state_change:
            self._on_state_change(state)

    def _resolve_dispatch(self) -> Callable[[Callable[[], None]], None]:
        if self._dispatch is not None:
            return self._dispatch
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return lambda fn: fn()
        return loop.call_soon_threadsafe

    def toggle(self) -> bool:
        """Start listening if idle, stop if listening. Returns the new listening flag."""
        if self.is_listening:
            self.stop()
        else:
            self.start()
        return self.is_listening

    def start(self) -> bool:
        if isinstance(self.capability, Unavailable):
            return False
        if self.is_listening:
            return False

        recognizer = self.capability.adapter
        self._session += 1
        session = self._session
        cancel = threading.Event()
        self._cancel = cancel
        dispatch = self._resolve_dispatch()
        language = self.language

        def work():
            try:
                text = recognizer.listen(language, cancel)
            except Exception as e:
                dispatch(functools.partial(self._finish_error, session, e))
                return
            dispatch(functools.partial(self._finish_result, session, text))

        self._set_state(ListenState.LISTENING)
        log_event("STT_LISTEN_START", stage="stt")
        try:
            self._run_in_background(work)
        except RuntimeError as e:
            self._finish_error(session, e)
            return False
        return True

    def stop(self) -> None:
        if not self.is_listening:
            return
        if self._cancel is not None:
            self._cancel.set()
        self._cancel = None
        # Invalidate the session so a late result is ignored
        self._session += 1
        log_event("STT_LISTEN_STOP", stage="stt")
        self._set_state(ListenState.IDLE)

    def _finish_result(self, session: int, text: str) -> None:
        if session != self._session or not self.is_listening:
            logger.debug("[STT] Dropping result from stopped session")
            return
        self._cancel = None
        self._set_state(ListenState.IDLE)
        text = (text or "").strip()
        log_event(f"STT_RESULT len={len(text)}", stage="stt")
        if text and self._on_transcript:
            self._on_transcript(text)

    def _finish_error(self, session: int, error: Exception) -> None:
        if session != self._session:
            return
        logger.error(f"[STT] Speech recognition error: {type(error).__name__}: {error}")
        self._cancel = None
        self._set_state(ListenState.IDLE)
