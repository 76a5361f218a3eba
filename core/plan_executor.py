"""
Scenario execution and cyclic scheduling for docker-chaos.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from colorama import Fore, Style

from core.compose import ComposeScaler
from core.plan import ChaosPlan, Scenario
from utils.defensive import ConfigurationError
from utils.error_messages import format_scale_error
from utils.process import ProcessResult


class ScenarioExecutor:
    """Applies one scenario through the scaling adapter."""

    def __init__(self, project_name: str, scaler: Optional[ComposeScaler] = None):
        self.project_name = project_name
        self.scaler = scaler or ComposeScaler()

    def execute(self, compose_file: Union[str, Path], scenario: Scenario) -> ProcessResult:
        """
        Scale every service in the scenario in a single compose call.

        Args:
            compose_file: Compose file of the target project
            scenario: Scenario to apply

        Returns:
            Result of the scaling command
        """
        result = self.scaler.modify(compose_file, scenario.modifications, self.project_name)
        if result.success:
            logging.info(f"Scenario applied: {scenario.describe()}")
        else:
            logging.error(format_scale_error(scenario.name, Path(compose_file), result.returncode, result.output))
        return result


class ChaosPlanExecutor:
    """
    Walks a chaos plan cyclically, applying one scenario per call.

    The cursor is only touched from run_next_scenario(), which the
    orchestrator calls from its single control loop.
    """

    def __init__(self, compose_file: Union[str, Path], chaos_plan: ChaosPlan,
                 scenario_executor: ScenarioExecutor):
        """
        Initialize the scheduler.

        Args:
            compose_file: Compose file of the target project
            chaos_plan: Plan to traverse
            scenario_executor: Executor that applies a single scenario

        Raises:
            ConfigurationError: If the plan has no scenarios
        """
        if chaos_plan is None or len(chaos_plan) == 0:
            raise ConfigurationError("Cannot schedule chaos from an empty plan")

        self.compose_file = compose_file
        self.chaos_plan = chaos_plan
        self.scenario_executor = scenario_executor
        self.cursor = 0
        self.current_scenario: Optional[Scenario] = None

    def run_next_scenario(self) -> ProcessResult:
        """
        Apply the scenario at the cursor and advance the cursor.

        The cursor advances whether or not the scenario applied cleanly, so a
        broken scenario never blocks the rest of the plan.

        Returns:
            Result of applying the scenario
        """
        scenarios = self.chaos_plan.get_scenarios()

        if self.cursor >= len(scenarios):
            self.cursor = 0

        scenario = scenarios[self.cursor]
        self.current_scenario = scenario
        print(f"{Fore.MAGENTA}Starting scenario {scenario.describe()}{Style.RESET_ALL}")
        logging.info(f"Starting scenario {self.cursor + 1}/{len(scenarios)}: {scenario.describe()}")

        try:
            return self.scenario_executor.execute(self.compose_file, scenario)
        finally:
            self.cursor = (self.cursor + 1) % len(scenarios)
