"""
Orchestrator loop for docker-chaos.

Runs the test command until it passes, then injects the next chaos scenario,
then starts over. The loop measures how many attempts and how long the system
under test needed to recover after each scenario.

State machine:

    RUNNING_TEST --fail--> RUNNING_TEST      (retry_count += 1)
    RUNNING_TEST --pass--> APPLYING_SCENARIO (retry_count = 0)
    APPLYING_SCENARIO ---> RUNNING_TEST      (even if the scenario failed)

The loop never ends on its own; stop() is called by the deadline handler or
by the caller. Each step runs to completion before the next one starts.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from colorama import Fore, Style

from utils.error_messages import format_retry_limit_error, truncate_output


class ChaosError(Exception):
    """Base class for errors raised by the orchestrator loop."""
    pass


class OrchestratorError(ChaosError):
    """Raised when the loop is used incorrectly (e.g. started twice)."""
    pass


class RetryLimitExceeded(ChaosError):
    """Raised when a retry cap is configured and the tests keep failing."""
    pass


class ScenarioApplicationError(ChaosError):
    """Raised for a failed scenario when halt_on_scenario_failure is set."""
    pass


class LoopState(Enum):
    """Phases of the orchestrator loop."""
    RUNNING_TEST = "running_test"
    APPLYING_SCENARIO = "applying_scenario"


@dataclass
class RunState:
    """Mutable loop state; only the control loop writes it."""

    retry_count: int = 0
    last_cycle_start: float = field(default_factory=time.monotonic)


@dataclass
class RetryPolicy:
    """
    Retry behaviour for failed test runs.

    The defaults retry immediately and forever.
    """

    max_retries: Optional[int] = None
    backoff_seconds: float = 0.0
    backoff_factor: float = 2.0
    max_backoff_seconds: float = 60.0

    def __post_init__(self):
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds cannot be negative")
        if self.backoff_factor < 1:
            raise ValueError("backoff_factor must be at least 1")
        if self.max_backoff_seconds < 0:
            raise ValueError("max_backoff_seconds cannot be negative")

    def exceeded(self, retry_count: int) -> bool:
        """True once retry_count is past the cap."""
        return self.max_retries is not None and retry_count > self.max_retries

    def delay_for(self, retry_count: int) -> float:
        """
        Seconds to wait before the next attempt.

        Args:
            retry_count: Consecutive failures so far (1 after the first failure)
        """
        if self.backoff_seconds <= 0 or retry_count <= 0:
            return 0.0
        delay = self.backoff_seconds * (self.backoff_factor ** (retry_count - 1))
        return min(delay, self.max_backoff_seconds)


class RunStats:
    """Thread-safe run statistics; the deadline thread may read them mid-run."""

    def __init__(self):
        self._lock = threading.Lock()
        self._stats = {
            'test_runs': 0,
            'test_failures': 0,
            'scenarios_applied': 0,
            'scenario_failures': 0,
            'recoveries': 0,
        }
        self._recovery_times: List[float] = []
        self._recovery_retries: List[int] = []

    def increment(self, key: str, value: int = 1):
        """Atomically increment a statistic."""
        with self._lock:
            if key in self._stats:
                self._stats[key] += value

    def __getitem__(self, key: str) -> int:
        with self._lock:
            return self._stats.get(key, 0)

    def record_recovery(self, retries: int, seconds: float):
        """Record one passing test run and what it took to get there."""
        with self._lock:
            self._stats['recoveries'] += 1
            self._recovery_retries.append(retries)
            self._recovery_times.append(seconds)

    @property
    def recovery_retries(self) -> List[int]:
        with self._lock:
            return list(self._recovery_retries)

    def get_snapshot(self) -> Dict[str, float]:
        """Counters plus mean/max recovery time."""
        with self._lock:
            snapshot: Dict[str, float] = dict(self._stats)
            times = list(self._recovery_times)
        snapshot['mean_recovery_seconds'] = sum(times) / len(times) if times else 0.0
        snapshot['max_recovery_seconds'] = max(times) if times else 0.0
        return snapshot


class ChaosOrchestrator:
    """Drives the retry-then-advance loop."""

    def __init__(self, test_runner, plan_executor, retry_policy: Optional[RetryPolicy] = None,
                 halt_on_scenario_failure: bool = False, stats: Optional[RunStats] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the orchestrator.

        Args:
            test_runner: Object with run() -> ProcessResult
            plan_executor: Object with run_next_scenario() -> ProcessResult
            retry_policy: Cap/backoff for failed test runs (default: none)
            halt_on_scenario_failure: Raise instead of carrying on when a scenario fails
            stats: Statistics collector (one is created if omitted)
            clock: Monotonic time source
        """
        self.test_runner = test_runner
        self.plan_executor = plan_executor
        self.retry_policy = retry_policy or RetryPolicy()
        self.halt_on_scenario_failure = halt_on_scenario_failure
        self.stats = stats or RunStats()
        self.clock = clock

        self.state = LoopState.RUNNING_TEST
        self.run_state = RunState(last_cycle_start=clock())
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()

    def stop(self):
        """Ask the loop to exit once the in-flight step completes. Safe from any thread."""
        self._stop_event.set()

    def run(self):
        """
        Run steps until stop() is called.

        Raises:
            OrchestratorError: If the loop is already running
            RetryLimitExceeded: If a retry cap is configured and exceeded
            ScenarioApplicationError: If halt_on_scenario_failure is set and a scenario fails
        """
        if not self._run_lock.acquire(blocking=False):
            raise OrchestratorError("Orchestrator loop is already running")

        try:
            logging.info("Orchestrator loop started")
            while not self._stop_event.is_set():
                self.step()
        finally:
            self._run_lock.release()

        logging.info("Orchestrator loop stopped")

    def step(self) -> LoopState:
        """
        Perform exactly one state transition.

        Returns:
            The state the loop is in afterwards
        """
        if self.state is LoopState.RUNNING_TEST:
            self._run_test()
        else:
            self._apply_scenario()
        return self.state

    def _run_test(self):
        self._report(f"Running tests... Attempt {self.run_state.retry_count + 1}", Fore.CYAN)

        result = self.test_runner.run()
        self.stats.increment('test_runs')

        if not result.success:
            self.run_state.retry_count += 1
            self.stats.increment('test_failures')
            reason = "cancelled" if result.cancelled else f"exit code {result.returncode}"
            self._report(f"Tests errored out! ({reason})", Fore.RED, logging.WARNING)
            output = truncate_output(result.output)
            if output:
                logging.info(f"Test output:\n{output}")

            # A run killed at the deadline says nothing about recovery
            if result.cancelled or self._stop_event.is_set():
                return

            if self.retry_policy.exceeded(self.run_state.retry_count):
                scenario = getattr(self.plan_executor, 'current_scenario', None)
                raise RetryLimitExceeded(format_retry_limit_error(
                    self.run_state.retry_count, scenario.name if scenario else None))

            self._backoff()
            return

        retries = self.run_state.retry_count
        elapsed = self.clock() - self.run_state.last_cycle_start
        self.stats.record_recovery(retries, elapsed)
        self._report(f"Test run succeeded! Number of retries: {retries}. "
                     f"Time until recovery: {elapsed:.3f} seconds", Fore.GREEN)

        self.run_state.retry_count = 0
        self.state = LoopState.APPLYING_SCENARIO

    def _apply_scenario(self):
        result = self.plan_executor.run_next_scenario()
        self.stats.increment('scenarios_applied')

        if not result.success:
            self.stats.increment('scenario_failures')
            self._report("Error setting up scenario", Fore.RED, logging.ERROR)
            if self.halt_on_scenario_failure:
                raise ScenarioApplicationError(
                    f"Scenario failed with code {result.returncode}: {truncate_output(result.output) or 'no output'}")

        self.run_state.last_cycle_start = self.clock()
        self.state = LoopState.RUNNING_TEST

    def _backoff(self):
        delay = self.retry_policy.delay_for(self.run_state.retry_count)
        if delay > 0:
            logging.info(f"Waiting {delay:.1f}s before the next attempt")
            # Returns early if stop() is called meanwhile
            self._stop_event.wait(delay)

    @staticmethod
    def _report(message: str, color: str, level: int = logging.INFO):
        print(f"{color}{message}{Style.RESET_ALL}")
        logging.log(level, message)
