"""
Tests for the orchestrator loop: retry-then-advance, recovery accounting and stop handling.
"""

import logging
import time

import pytest

from core.orchestrator import (ChaosOrchestrator, LoopState, OrchestratorError, RetryLimitExceeded,
                               RetryPolicy, RunStats, ScenarioApplicationError)
from core.plan_executor import ChaosPlanExecutor, ScenarioExecutor


def attempt_lines(caplog):
    return [r.getMessage() for r in caplog.records if r.getMessage().startswith("Running tests... Attempt")]


@pytest.fixture
def build(two_scenario_plan, fake_scaler):
    """Build an orchestrator over the two-scenario plan and the fake scaler."""
    def _build(runner, **kwargs):
        executor = ChaosPlanExecutor("/x/docker-compose.yml", two_scenario_plan,
                                     ScenarioExecutor("proj", fake_scaler))
        return ChaosOrchestrator(runner, executor, **kwargs), executor
    return _build


class TestStateMachine:
    """Single transitions via step()."""

    def test_initial_state(self, build, make_test_runner):
        orchestrator, _ = build(make_test_runner([]))
        assert orchestrator.state is LoopState.RUNNING_TEST
        assert orchestrator.run_state.retry_count == 0

    def test_failure_stays_in_running_test(self, build, make_test_runner, fake_scaler):
        orchestrator, _ = build(make_test_runner([False]))

        assert orchestrator.step() is LoopState.RUNNING_TEST
        assert orchestrator.run_state.retry_count == 1
        assert fake_scaler.calls == []

    def test_retry_counter_semantics(self, build, make_test_runner):
        failures = 4
        orchestrator, _ = build(make_test_runner([False] * failures + [True]))

        for expected in range(1, failures + 1):
            orchestrator.step()
            assert orchestrator.run_state.retry_count == expected

        assert orchestrator.step() is LoopState.APPLYING_SCENARIO
        assert orchestrator.stats.recovery_retries == [failures]
        assert orchestrator.run_state.retry_count == 0

    def test_success_then_scenario_then_test(self, build, make_test_runner, fake_scaler):
        orchestrator, executor = build(make_test_runner([True, True]))

        assert orchestrator.step() is LoopState.APPLYING_SCENARIO
        assert orchestrator.step() is LoopState.RUNNING_TEST
        assert fake_scaler.applied == [[{"api": 0}]]
        assert executor.cursor == 1

    def test_scenario_failure_does_not_block(self, build, make_test_runner, fake_scaler):
        fake_scaler.results = [False]
        runner = make_test_runner([True, True])
        orchestrator, _ = build(runner)

        orchestrator.step()
        assert orchestrator.step() is LoopState.RUNNING_TEST
        orchestrator.step()

        assert runner.calls == 2
        assert orchestrator.stats['scenario_failures'] == 1
        assert orchestrator.stats['scenarios_applied'] == 1

    def test_scenario_failure_is_reported(self, build, make_test_runner, fake_scaler, capsys):
        fake_scaler.results = [False]
        orchestrator, _ = build(make_test_runner([True]))

        orchestrator.step()
        orchestrator.step()

        assert "Error setting up scenario" in capsys.readouterr().out

    def test_halt_on_scenario_failure(self, build, make_test_runner, fake_scaler):
        fake_scaler.results = [False]
        orchestrator, _ = build(make_test_runner([True]), halt_on_scenario_failure=True)

        orchestrator.step()
        with pytest.raises(ScenarioApplicationError):
            orchestrator.step()

    def test_recovery_time_measured_from_cycle_start(self, build, make_test_runner):
        now = [100.0]
        orchestrator, _ = build(make_test_runner([False, True, True]), clock=lambda: now[0])

        orchestrator.step()
        now[0] = 107.5
        orchestrator.step()
        assert orchestrator.stats.get_snapshot()['max_recovery_seconds'] == pytest.approx(7.5)

        now[0] = 110.0
        orchestrator.step()
        assert orchestrator.run_state.last_cycle_start == 110.0

        now[0] = 111.0
        orchestrator.step()
        assert orchestrator.stats.get_snapshot()['mean_recovery_seconds'] == pytest.approx((7.5 + 1.0) / 2)

    def test_success_message(self, build, make_test_runner, capsys):
        orchestrator, _ = build(make_test_runner([False, False, True]))

        for _ in range(3):
            orchestrator.step()

        out = capsys.readouterr().out
        assert "Tests errored out! (exit code 1)" in out
        assert "Test run succeeded! Number of retries: 2." in out


class TestRunLoop:
    """run() until stop()."""

    def test_end_to_end_two_scenarios(self, build, make_test_runner, fake_scaler, caplog):
        caplog.set_level(logging.INFO)
        runner = make_test_runner([False, False, True, True])
        orchestrator, executor = build(runner)
        fake_scaler.after_call = lambda: orchestrator.stop() if len(fake_scaler.calls) == 2 else None

        orchestrator.run()

        assert attempt_lines(caplog) == [
            "Running tests... Attempt 1",
            "Running tests... Attempt 2",
            "Running tests... Attempt 3",
            "Running tests... Attempt 1",
        ]
        assert fake_scaler.applied == [[{"api": 0}], [{"api": 3}]]
        assert runner.calls == 4
        assert executor.cursor == 0
        assert orchestrator.run_state.retry_count == 0
        assert orchestrator.stats.recovery_retries == [2, 0]

    def test_stop_before_run(self, build, make_test_runner):
        runner = make_test_runner([])
        orchestrator, _ = build(runner)
        orchestrator.stop()

        orchestrator.run()

        assert runner.calls == 0

    def test_stop_finishes_in_flight_step(self, build, make_test_runner, fake_scaler):
        runner = make_test_runner([True])
        orchestrator, _ = build(runner)
        runner.on_exhausted = orchestrator.stop

        orchestrator.run()

        # the passing run completed, but no new chaos was injected after stop()
        assert runner.calls == 1
        assert orchestrator.state is LoopState.APPLYING_SCENARIO
        assert fake_scaler.calls == []

    def test_reentrant_run_rejected(self, build, make_test_runner):
        runner = make_test_runner([])
        orchestrator, _ = build(runner)
        runner.on_exhausted = orchestrator.run

        with pytest.raises(OrchestratorError):
            orchestrator.run()

        assert not orchestrator._run_lock.locked()

    def test_retry_limit(self, build, make_test_runner):
        runner = make_test_runner([False] * 10)
        orchestrator, _ = build(runner, retry_policy=RetryPolicy(max_retries=2))

        with pytest.raises(RetryLimitExceeded, match="failed 3 times"):
            orchestrator.run()

        assert runner.calls == 3

    def test_retry_limit_names_last_scenario(self, build, make_test_runner):
        orchestrator, _ = build(make_test_runner([True, False, False]),
                                retry_policy=RetryPolicy(max_retries=1))

        with pytest.raises(RetryLimitExceeded, match="after scenario 'S1'"):
            orchestrator.run()

    def test_unlimited_retries_by_default(self, build, make_test_runner):
        runner = make_test_runner([False] * 50)
        orchestrator, _ = build(runner)

        for _ in range(50):
            orchestrator.step()

        assert orchestrator.run_state.retry_count == 50

    def test_backoff_wait_ends_on_stop(self, build, make_test_runner):
        orchestrator, _ = build(make_test_runner([False]),
                                retry_policy=RetryPolicy(backoff_seconds=30))
        orchestrator.stop()

        started = time.monotonic()
        orchestrator.step()

        assert time.monotonic() - started < 5


class TestRetryPolicy:

    def test_defaults_retry_immediately_forever(self):
        policy = RetryPolicy()
        assert not policy.exceeded(10_000)
        assert policy.delay_for(5) == 0.0

    def test_exponential_backoff_capped(self):
        policy = RetryPolicy(backoff_seconds=1, backoff_factor=2, max_backoff_seconds=3)
        assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1, 2, 3, 3]

    def test_cap_boundary(self):
        policy = RetryPolicy(max_retries=0)
        assert not policy.exceeded(0)
        assert policy.exceeded(1)

    @pytest.mark.parametrize("kwargs", [
        {"max_retries": -1},
        {"backoff_seconds": -0.5},
        {"backoff_factor": 0.5},
        {"max_backoff_seconds": -1},
    ])
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestRunStats:

    def test_snapshot(self):
        stats = RunStats()
        stats.increment('test_runs', 3)
        stats.increment('unknown')
        stats.record_recovery(2, 4.0)
        stats.record_recovery(0, 2.0)

        snapshot = stats.get_snapshot()
        assert snapshot['test_runs'] == 3
        assert 'unknown' not in snapshot
        assert snapshot['recoveries'] == 2
        assert snapshot['mean_recovery_seconds'] == 3.0
        assert snapshot['max_recovery_seconds'] == 4.0
        assert stats.recovery_retries == [2, 0]

    def test_empty_snapshot(self):
        snapshot = RunStats().get_snapshot()
        assert snapshot['mean_recovery_seconds'] == 0.0
        assert snapshot['max_recovery_seconds'] == 0.0
