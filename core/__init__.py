"""
docker-chaos Core Module
Chaos plan model, scenario scheduling, the orchestrator loop and its collaborators.
"""

from .config import Config
from .plan import ChaosPlan, Scenario, PlanError, load_plan
from .compose import ComposeScaler
from .plan_executor import ChaosPlanExecutor, ScenarioExecutor
from .command_runner import CommandRunner
from .orchestrator import ChaosOrchestrator, RetryPolicy, RunStats
from .deadline import Deadline, DeadlinePolicy
from .log_capture import ComposeLogCapture
from .logger import setup_logging

__all__ = [
    'Config',
    'ChaosPlan',
    'Scenario',
    'PlanError',
    'load_plan',
    'ComposeScaler',
    'ChaosPlanExecutor',
    'ScenarioExecutor',
    'CommandRunner',
    'ChaosOrchestrator',
    'RetryPolicy',
    'RunStats',
    'Deadline',
    'DeadlinePolicy',
    'ComposeLogCapture',
    'setup_logging'
]
