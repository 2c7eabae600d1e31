"""
SPEECH OUTPUT ADAPTER

Speaks bot replies through the platform's synthesis capability.

Core semantics:
- speak(text, settings) -> speak only if voiceOutput and autoSpeak are both on
- any utterance still in progress is canceled before a new one starts
  (at most one utterance is ever audible)
- capability Unavailable -> silent no-op
- synthesis failures are logged and swallowed; they never reach the controller

Engine:
- EdgeTTSSynthesizer: Microsoft Edge neural voices via edge-tts, decoded with
  pydub, played with sounddevice. Blocking per utterance, stoppable.
"""

import asyncio
import logging
import os
import tempfile
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Optional, Protocol

from simplebot.capability import Available, Capability, Unavailable, adapter_of
from simplebot.instrumentation import log_event
from simplebot.models import Settings

logger = logging.getLogger("SIMPLEBOT.SpeechOutput")


class SpeechSynthesizer(Protocol):
    def speak(self, text: str, language: str, cancel: threading.Event) -> None:
        """Synthesize and play text, blocking until done or `cancel` is set."""
        ...

    def stop_playback(self) -> None:
        """Halt audio immediately. Idempotent, never raises."""
        ...


# ============================================================================
# EDGE-TTS ENGINE
# ============================================================================

class EdgeTTSSynthesizer:
    """
    Edge-TTS synthesis with blocking playback on the default output device.

    Args:
        voice: Microsoft neural voice name. None picks the default voice
            for the requested language.
    """

    DEFAULT_VOICES = {
        "en-US": "en-US-AriaNeural",
        "en-GB": "en-GB-SoniaNeural",
    }

    def __init__(self, voice: Optional[str] = None):
        self.voice = voice

    def voice_for(self, language: str) -> str:
        return self.voice or self.DEFAULT_VOICES.get(language, "en-US-AriaNeural")

    def _synthesize(self, text: str, voice: str, out_path: str) -> None:
        import edge_tts

        # edge-tts rejects rate/pitch/volume without units
        communicate = edge_tts.Communicate(
            text=text,
            voice=voice,
            rate="+0%",
            pitch="+0Hz",
            volume="+0%",
        )
        # Runs on the speech worker thread, never on the UI loop
        loop = asyncio.new_event_loop()
        try:
            loop.run_until_complete(communicate.save(out_path))
        finally:
            loop.close()

    def speak(self, text: str, language: str, cancel: threading.Event) -> None:
        import numpy as np
        import sounddevice as sd
        from pydub import AudioSegment

        if not text or not text.strip():
            return

        with tempfile.TemporaryDirectory() as tmpdir:
            out_path = os.path.join(tmpdir, "reply.mp3")
            self._synthesize(text, self.voice_for(language), out_path)
            if cancel.is_set():
                return

            audio = AudioSegment.from_file(out_path)
            samples = np.array(audio.get_array_of_samples())
            if audio.channels > 1:
                samples = samples.reshape((-1, audio.channels))
            samples = samples.astype(np.float32) / (1 << (8 * audio.sample_width - 1))

            peak = float(np.max(np.abs(samples))) if samples.size else 0.0
            if peak > 0:
                samples = samples * (0.8 / peak)

            sd.play(samples, samplerate=audio.frame_rate, blocking=False)
            while not cancel.wait(0.02):
                stream = sd.get_stream()
                if not stream or not stream.active:
                    break
            if cancel.is_set():
                self.stop_playback()

    def stop_playback(self) -> None:
        try:
            import sounddevice

            sounddevice.stop()
        except Exception:
            pass  # Already stopped or no device


def probe_speech_output(voice: Optional[str] = None) -> Capability:
    """
    Detect synthesis support once at startup.

    Returns Available(EdgeTTSSynthesizer) when edge-tts, pydub and sounddevice
    import and an output device exists; Unavailable(reason) otherwise.
    """
    try:
        import edge_tts  # noqa: F401
        import pydub  # noqa: F401
        import sounddevice as sd

        sd.query_devices(kind="output")
    except ImportError as e:
        logger.info(f"[TTS] Speech output unavailable: {e}")
        return Unavailable(reason=f"missing dependency: {e.name}")
    except Exception as e:
        logger.info(f"[TTS] Speech output unavailable: {e}")
        return Unavailable(reason=str(e))
    logger.info(f"[TTS] Speech output available (voice={voice})")
    return Available(EdgeTTSSynthesizer(voice=voice))


# ============================================================================
# ADAPTER
# ============================================================================

class SpeechOutput:
    """
    Capability-gated speech output.

    Utterances run on a single worker thread so a canceled utterance always
    finishes before the next one starts playing.
    """

    def __init__(
        self,
        capability: Capability,
        language: str = "en-US",
        executor: Optional[Executor] = None,
    ):
        self.capability = capability
        self.language = language
        self._executor = executor
        self._current: Optional[threading.Event] = None
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        return isinstance(self.capability, Available)

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tts")
        return self._executor

    def speak(self, text: str, settings: Settings) -> bool:
        """
        Speak text if allowed. Returns True when an utterance was started.
        """
        if not settings.should_speak:
            return False
        synth = adapter_of(self.capability)
        if synth is None:
            return False

        cancel = threading.Event()
        with self._lock:
            self._cancel_current_locked(synth)
            self._current = cancel

        try:
            self._get_executor().submit(self._run, synth, text, cancel)
        except RuntimeError as e:
            logger.error(f"[TTS] Cannot schedule utterance: {e}")
            return False
        log_event(f"TTS_START len={len(text)}", stage="tts")
        return True

    def cancel(self) -> None:
        """Cancel whatever is speaking. No-op when nothing is."""
        synth = adapter_of(self.capability)
        if synth is None:
            return
        with self._lock:
            self._cancel_current_locked(synth)

    def _cancel_current_locked(self, synth: SpeechSynthesizer) -> None:
        if self._current is not None and not self._current.is_set():
            self._current.set()
            synth.stop_playback()
            log_event("TTS_CANCEL", stage="tts")
        self._current = None

    def _run(self, synth: SpeechSynthesizer, text: str, cancel: threading.Event) -> None:
        if cancel.is_set():
            return
        try:
            synth.speak(text, self.language, cancel)
        except Exception as e:
            logger.error(f"[TTS] speak() failed: {type(e).__name__}: {e}")
        finally:
            with self._lock:
                if self._current is cancel:
                    self._current = None

    def shutdown(self) -> None:
        self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
