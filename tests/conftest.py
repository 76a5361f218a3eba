"""
Pytest configuration and fixtures for docker-chaos tests.
"""

import logging
import sys
import time
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.plan import parse_plan
from utils.process import ProcessResult


class FakeTestRunner:
    """Returns scripted pass/fail outcomes; passes once the script runs out."""

    def __init__(self, outcomes, on_exhausted=None, delay: float = 0.0):
        self.outcomes = list(outcomes)
        self.on_exhausted = on_exhausted
        self.delay = delay
        self.calls = 0

    def run(self) -> ProcessResult:
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        success = self.outcomes.pop(0) if self.outcomes else True
        if not self.outcomes and self.on_exhausted:
            self.on_exhausted()
        if success:
            return ProcessResult(success=True, stdout="ok", returncode=0)
        return ProcessResult(success=False, stdout="1 failed", stderr="AssertionError", returncode=1)


class FakeScaler:
    """Records scale calls instead of running docker-compose."""

    def __init__(self, results=None):
        self.results = list(results or [])
        self.calls = []
        self.after_call = None

    def modify(self, compose_file, modifications, project_name) -> ProcessResult:
        self.calls.append((compose_file, list(modifications), project_name))
        success = self.results.pop(0) if self.results else True
        if self.after_call:
            self.after_call()
        if success:
            return ProcessResult(success=True, returncode=0)
        return ProcessResult(success=False, stderr="ERROR: No such service: api", returncode=1)

    @property
    def applied(self):
        return [modifications for _, modifications, _ in self.calls]


@pytest.fixture
def make_test_runner():
    """Factory for scripted test runners."""
    return FakeTestRunner


@pytest.fixture
def fake_scaler():
    return FakeScaler()


@pytest.fixture
def make_scaler():
    """Factory for scalers with scripted results."""
    return FakeScaler


@pytest.fixture
def two_scenario_plan():
    """S1 takes the api down, S2 brings three replicas back."""
    return parse_plan([
        {"name": "S1", "services": [{"api": 0}]},
        {"name": "S2", "services": [{"api": 3}]},
    ])


@pytest.fixture
def three_scenario_plan():
    return parse_plan({"scenarios": [
        {"name": "web down", "services": [{"web": 0}]},
        {"name": "web up, db down", "services": [{"web": 2}, {"db": 0}]},
        {"name": "all up", "services": {"web": 2, "db": 1}},
    ]})


@pytest.fixture
def restore_root_logging():
    """Remove handlers that setup_logging() adds to the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
