"""
docker-compose scaling adapter for docker-chaos.
The only place where chaos actually reaches the containers.
"""

import logging
import shlex
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from core.logger import log_subprocess_failure
from utils.process import ProcessResult, ProcessRunner

DEFAULT_COMPOSE_TOOL = 'docker-compose'


def compose_base_command(compose_tool: str, compose_file: Union[str, Path], project_name: str) -> List[str]:
    """
    Build the compose invocation prefix shared by every compose command.

    Args:
        compose_tool: Tool command, e.g. "docker-compose" or "docker compose"
        compose_file: Compose file the project was started from
        project_name: Project name of the running instance

    Returns:
        Argument list ending just before the compose subcommand
    """
    return shlex.split(compose_tool) + ['--file', str(compose_file), '--project-name', project_name]


def build_scale_command(compose_tool: str, compose_file: Union[str, Path],
                        modifications: Sequence[Mapping[str, int]], project_name: str) -> List[str]:
    """
    Serialise scenario modifications into a single scale command.

    Produces: <tool> --file <file> --project-name <name> scale svc1=n1 svc2=n2 ...
    with the name=count tokens in the order given.

    Raises:
        ValueError: If there is nothing to scale
    """
    targets = []
    for modification in modifications:
        for service, replicas in modification.items():
            targets.append(f"{service}={replicas}")

    if not targets:
        raise ValueError("No services to scale")

    return compose_base_command(compose_tool, compose_file, project_name) + ['scale'] + targets


class ComposeScaler:
    """Scales services of a running compose project."""

    def __init__(self, compose_tool: str = DEFAULT_COMPOSE_TOOL, runner: Optional[ProcessRunner] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the scaler.

        Args:
            compose_tool: docker-compose command to invoke
            runner: Shared process runner (one is created if omitted)
            timeout: Seconds before a scale command is killed, None for no limit
        """
        self.compose_tool = compose_tool
        self.runner = runner or ProcessRunner()
        self.timeout = timeout

    def modify(self, compose_file: Union[str, Path], modifications: Sequence[Mapping[str, int]],
               project_name: str) -> ProcessResult:
        """
        Scale the listed services to their paired replica counts in one call.

        Args:
            compose_file: Compose file of the target project
            modifications: Ordered single-key mappings of service -> replicas
            project_name: Compose project name

        Returns:
            ProcessResult; on failure it carries the tool's stdout and stderr
        """
        command = build_scale_command(self.compose_tool, compose_file, modifications, project_name)
        logging.info(f"Scaling: {' '.join(command)}")

        result = self.runner.run(command, timeout=self.timeout, operation="docker-compose scale")
        if not result.success:
            log_subprocess_failure(result, "docker-compose scale", command)
        return result
