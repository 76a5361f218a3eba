"""
Test command execution for docker-chaos.
"""

import logging
from typing import List, Optional

from utils.process import ProcessResult, ProcessRunner


class CommandRunner:
    """Runs the user's test command and reports pass/fail with its output."""

    def __init__(self, command: List[str], runner: Optional[ProcessRunner] = None,
                 timeout: Optional[float] = None):
        """
        Initialize the runner.

        Args:
            command: Test command as an argument list
            runner: Shared process runner (one is created if omitted)
            timeout: Seconds before a test run is killed and counted as failed
        """
        if not command:
            raise ValueError("Test command cannot be empty")
        self.command = list(command)
        self.runner = runner or ProcessRunner()
        self.timeout = timeout

    def run(self) -> ProcessResult:
        """Run the test command once."""
        result = self.runner.run(self.command, timeout=self.timeout, operation="Test run")
        logging.debug(f"Test command exited with code {result.returncode}")
        return result

    def __str__(self) -> str:
        return ' '.join(self.command)
