"""
Instrumentation module for SimpleBot.

Millisecond-precision event logging so connection and session ordering can
be verified from logs alone.
"""

import logging
import threading
import time

logger = logging.getLogger("SIMPLEBOT.Events")


def log_event(event: str, stage: str = "", connection_id: str = ""):
    """
    Log event with monotonic timeline metadata.

    Format: [EVT] t=<ms> id=<connection_id> stage=<stage> event=<event> thread=<thread>

    Args:
        event: Event label/message
        stage: Optional stage name (e.g., "gateway", "controller", "tts")
        connection_id: Optional connection id for correlation
    """
    ts = int(time.monotonic() * 1000)
    thread = threading.current_thread().name
    logger.info(
        f"[EVT] t={ts} id={connection_id} stage={stage} event={event} thread={thread}"
    )
