"""
Run deadline for docker-chaos.

A single timer started at process start. When it fires, log capture is
stopped; what happens to the orchestrator loop depends on the policy.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from colorama import Fore, Style


class DeadlinePolicy(Enum):
    """What the deadline does besides stopping log capture."""
    CONTINUE = "continue"  # leave the loop and any in-flight work alone
    DRAIN = "drain"        # stop the loop after the in-flight step
    ABORT = "abort"        # kill the in-flight process, then stop the loop

    @classmethod
    def choices(cls):
        return [policy.value for policy in cls]


class Deadline:
    """One-shot timer that can be used as a context manager."""

    def __init__(self, duration: float, callback: Callable[[], None], clock: Callable[[], float] = time.monotonic):
        """
        Initialize the deadline.

        Args:
            duration: Seconds from start() until the callback fires
            callback: Called once, on the timer thread
            clock: Monotonic time source
        """
        if duration < 0:
            raise ValueError("Deadline duration cannot be negative")
        self.duration = duration
        self.callback = callback
        self.clock = clock
        self.timer: Optional[threading.Timer] = None
        self.started_at: Optional[float] = None
        self._expired = threading.Event()

    @property
    def expired(self) -> bool:
        return self._expired.is_set()

    def _fire(self):
        self._expired.set()
        try:
            self.callback()
        except Exception as e:
            logging.error(f"Deadline handler failed: {e}", exc_info=True)

    def start(self):
        """Start the timer. Starting twice is an error."""
        if self.timer is not None:
            raise RuntimeError("Deadline already started")
        self.started_at = self.clock()
        self.timer = threading.Timer(self.duration, self._fire)
        # Must not keep the process alive on Ctrl+C
        self.timer.daemon = True
        self.timer.start()

    def cancel(self):
        """Cancel the timer if it has not fired yet."""
        if self.timer:
            self.timer.cancel()

    def remaining(self) -> float:
        """Seconds until the deadline (0 once passed, full duration before start)."""
        if self.started_at is None:
            return self.duration
        return max(0.0, self.duration - (self.clock() - self.started_at))

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()
        return False


def make_deadline_handler(policy: DeadlinePolicy, log_capture=None, orchestrator=None,
                          process_runner=None) -> Callable[[], None]:
    """
    Build the callback run when the deadline fires.

    Args:
        policy: Deadline policy
        log_capture: Object with stop(), always stopped
        orchestrator: Object with stop(), stopped for DRAIN and ABORT
        process_runner: Object with cancel(), used for ABORT

    Returns:
        Zero-argument callback
    """
    def on_deadline():
        print(f"\n{Fore.YELLOW}Stopping execution{Style.RESET_ALL}")
        logging.info(f"Deadline reached (policy: {policy.value}) - stopping execution")

        if log_capture is not None:
            log_capture.stop()

        if policy is DeadlinePolicy.CONTINUE:
            logging.info("In-flight work continues after the deadline; press Ctrl+C to exit")
            return

        if orchestrator is not None:
            orchestrator.stop()

        if policy is DeadlinePolicy.ABORT and process_runner is not None:
            if process_runner.cancel():
                logging.info("In-flight process killed at deadline")

    return on_deadline
