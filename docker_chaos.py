"""
docker-chaos: resilience testing for docker-compose projects

Runs a test command over and over while a chaos plan scales services up and
down. After every scenario the tests are retried until they pass again, and
the number of attempts and the time to recovery are reported.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

from colorama import init, Fore, Style

from core import Config, setup_logging
from core.command_runner import CommandRunner
from core.compose import ComposeScaler, build_scale_command
from core.deadline import Deadline, make_deadline_handler
from core.log_capture import ComposeLogCapture
from core.orchestrator import ChaosError, ChaosOrchestrator, RetryPolicy, RunStats
from core.plan import ChaosPlan, PlanError, load_plan
from core.plan_executor import ChaosPlanExecutor, ScenarioExecutor
from utils.cli_runtime import build_arg_parser, configure_windows_console_utf8, default_log_path
from utils.defensive import ConfigurationError, InputValidator
from utils.error_messages import format_plan_error
from utils.process import ProcessRunner
from utils.system_check import SystemCheck


class RunSettings:
    """Validated inputs for one run."""

    def __init__(self, compose_file: Path, plan_file: Path, project_name: str,
                 command: list, log_path: Optional[Path], duration_ms: int):
        self.compose_file = compose_file
        self.plan_file = plan_file
        self.project_name = project_name
        self.command = command
        self.log_path = log_path
        self.duration_ms = duration_ms

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000


def validate_args(args) -> RunSettings:
    """
    Turn parsed arguments into RunSettings.

    Checks run in order: compose file, plan, project name, command, log path.
    --show-plan skips the log path.

    Raises:
        ConfigurationError: On the first invalid input
    """
    compose_file = InputValidator.validate_compose_file(
        args.compose_file if args.compose_file else Path.cwd() / 'docker-compose.yml')
    plan_file = InputValidator.validate_plan_file(args.plan)
    project_name = InputValidator.validate_project_name(args.project_name)
    # --show-plan only prints, so it needs neither a test command nor a log path
    if args.command or not args.show_plan:
        command = InputValidator.resolve_command(args.command)
    else:
        command = []
    if args.show_plan:
        log_path = None
    else:
        log_path = InputValidator.validate_log_path(args.log_path if args.log_path else default_log_path())

    return RunSettings(compose_file, plan_file, project_name, command, log_path, args.duration)


def apply_cli_overrides(config: Config, args):
    """CLI flags win over the config file."""
    if args.max_retries is not None:
        config.set('max_retries', args.max_retries)
    if args.retry_backoff is not None:
        config.set('retry_backoff_seconds', args.retry_backoff)
    if args.on_deadline is not None:
        config.set('on_deadline', args.on_deadline)
    if args.halt_on_scenario_failure:
        config.set('halt_on_scenario_failure', True)


def print_header(settings: RunSettings, config: Config):
    """Show what is about to run."""
    print(Style.BRIGHT + Fore.WHITE + 'Test:' + Style.RESET_ALL, ' '.join(settings.command))
    print(Style.BRIGHT + Fore.WHITE + 'Chaos Plan:' + Style.RESET_ALL, settings.plan_file)
    print(Style.BRIGHT + Fore.WHITE + 'Docker-compose:' + Style.RESET_ALL, settings.compose_file)
    print(Style.BRIGHT + Fore.WHITE + 'Logs:' + Style.RESET_ALL, settings.log_path)
    print(f"{Style.DIM}Project: {settings.project_name} | Duration: {settings.duration_seconds:g}s | "
          f"On deadline: {config.on_deadline.value}{Style.RESET_ALL}")
    print()


def display_plan(plan: ChaosPlan, settings: RunSettings, config: Config):
    """Print every scenario with the exact scale command it will run."""
    print(f"{Fore.CYAN}{'=' * 80}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}CHAOS PLAN - {len(plan)} scenario(s), applied in order and repeated{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{'=' * 80}{Style.RESET_ALL}\n")
    for index, scenario in enumerate(plan, 1):
        command = build_scale_command(config.compose_tool, settings.compose_file,
                                      scenario.modifications, settings.project_name)
        print(f"  {Fore.YELLOW}{index}.{Style.RESET_ALL} {scenario.describe()}")
        print(f"     {Style.DIM}{' '.join(command)}{Style.RESET_ALL}")
    print()


def display_summary(stats: RunStats, elapsed_seconds: Optional[float] = None):
    """Display the end-of-run statistics."""
    snapshot = stats.get_snapshot()
    print(f"\n{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}SUMMARY{Style.RESET_ALL}")
    if elapsed_seconds is not None:
        print(f"  Run time:          {elapsed_seconds:.1f}s")
    print(f"  Test runs:         {snapshot['test_runs']} ({snapshot['test_failures']} failed)")
    print(f"  Scenarios applied: {snapshot['scenarios_applied']} ({snapshot['scenario_failures']} failed)")
    print(f"  Recoveries:        {snapshot['recoveries']}")
    if snapshot['recoveries']:
        print(f"  Recovery time:     mean {snapshot['mean_recovery_seconds']:.2f}s, "
              f"max {snapshot['max_recovery_seconds']:.2f}s")
    print(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    logging.info(f"Run summary: {snapshot}")


def build_orchestrator(settings: RunSettings, plan: ChaosPlan, config: Config,
                       process_runner: ProcessRunner, stats: RunStats) -> ChaosOrchestrator:
    """Wire the scheduler, the test runner and the loop around one shared process runner."""
    scaler = ComposeScaler(config.compose_tool, runner=process_runner, timeout=config.scale_timeout_seconds)
    plan_executor = ChaosPlanExecutor(settings.compose_file, plan,
                                      ScenarioExecutor(settings.project_name, scaler))
    test_runner = CommandRunner(settings.command, runner=process_runner, timeout=config.test_timeout_seconds)
    retry_policy = RetryPolicy(
        max_retries=config.max_retries,
        backoff_seconds=config.retry_backoff_seconds,
        backoff_factor=config.retry_backoff_factor,
        max_backoff_seconds=config.max_backoff_seconds,
    )
    return ChaosOrchestrator(test_runner, plan_executor, retry_policy=retry_policy,
                             halt_on_scenario_failure=config.halt_on_scenario_failure, stats=stats)


def main(argv=None):
    """Main entry point with defensive error handling."""
    init()  # Initialize colorama
    configure_windows_console_utf8()

    parser = build_arg_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config) if args.config else None
    if config_path is not None and not config_path.exists():
        print(Fore.RED + f"Config file not found: {config_path}" + Style.RESET_ALL)
        sys.exit(1)
    config = Config(config_path)
    apply_cli_overrides(config, args)

    try:
        settings = validate_args(args)
    except ConfigurationError as e:
        print(Fore.RED + str(e) + Style.RESET_ALL)
        sys.exit(1)

    try:
        plan = load_plan(settings.plan_file)
    except PlanError as e:
        print(Fore.RED + format_plan_error(settings.plan_file, str(e)) + Style.RESET_ALL)
        sys.exit(1)

    if args.show_plan:
        display_plan(plan, settings, config)
        sys.exit(0)

    if not args.skip_tool_check:
        print("[TOOLS] Checking requirements...", end=" ")
        system_check = SystemCheck(config.compose_tool)
        if not system_check.display_tool_status(system_check.check_all_tools()):
            sys.exit(1)

    try:
        settings.log_path.mkdir()
    except OSError as e:
        print(Fore.RED + f"Could not create log path {settings.log_path}: {e}" + Style.RESET_ALL)
        sys.exit(1)

    log_file = setup_logging(settings.log_path)
    logging.info("=" * 70)
    logging.info("docker-chaos started")
    logging.info(f"Log file: {log_file}")
    logging.info(f"Command: {settings.command}")
    logging.info(f"Plan: {settings.plan_file} ({len(plan)} scenarios)")

    print_header(settings, config)

    process_runner = ProcessRunner()
    stats = RunStats()
    orchestrator = build_orchestrator(settings, plan, config, process_runner, stats)
    log_capture = ComposeLogCapture(settings.compose_file, settings.project_name, settings.log_path,
                                    compose_tool=config.compose_tool)

    log_capture.start()
    deadline = Deadline(settings.duration_seconds,
                        make_deadline_handler(config.on_deadline, log_capture, orchestrator, process_runner))
    deadline.start()

    exit_code = 0
    started = time.monotonic()
    try:
        orchestrator.run()
        logging.info("docker-chaos completed")
    except KeyboardInterrupt:
        print(Fore.YELLOW + "\n\nOperation interrupted by user" + Style.RESET_ALL)
        logging.info("User interrupted operation")
    except ChaosError as e:
        print(Fore.RED + f"\n{e}" + Style.RESET_ALL)
        logging.error(f"Run halted: {e}")
        exit_code = 1
    except Exception as e:
        print(Fore.RED + f"\nUnexpected error: {e}" + Style.RESET_ALL)
        logging.error(f"Unexpected error: {e}", exc_info=True)
        exit_code = 1
    finally:
        deadline.cancel()
        log_capture.stop()
        display_summary(stats, time.monotonic() - started)

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
