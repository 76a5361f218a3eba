"""
Container log capture for docker-chaos.
Streams `docker-compose logs --follow` for the whole project into the run's log directory.
"""

import logging
import subprocess
import threading
from pathlib import Path
from typing import Optional, Union

from core.compose import DEFAULT_COMPOSE_TOOL, compose_base_command
from utils.process import terminate_process_tree

LOG_FILE_NAME = 'compose.log'


class ComposeLogCapture:
    """
    Started once at startup, stopped once (normally by the deadline).

    stop() may be called from the deadline thread and again from the main
    thread on exit, so it is idempotent.
    """

    def __init__(self, compose_file: Union[str, Path], project_name: str, log_path: Union[str, Path],
                 compose_tool: str = DEFAULT_COMPOSE_TOOL):
        self.compose_file = compose_file
        self.project_name = project_name
        self.log_path = Path(log_path)
        self.compose_tool = compose_tool
        self.process: Optional[subprocess.Popen] = None
        self._log_file = None
        self._lock = threading.Lock()
        self._stopped = False

    @property
    def log_file(self) -> Path:
        return self.log_path / LOG_FILE_NAME

    @property
    def running(self) -> bool:
        with self._lock:
            return self.process is not None and self.process.poll() is None

    def build_command(self):
        return compose_base_command(self.compose_tool, self.compose_file, self.project_name) + [
            'logs', '--follow', '--no-color', '--timestamps'
        ]

    def start(self) -> bool:
        """
        Start streaming logs.

        Returns:
            True if the log stream is running. A stream that cannot be started
            is logged and the run goes on without it.
        """
        with self._lock:
            if self.process is not None or self._stopped:
                raise RuntimeError("Log capture can only be started once")

            command = self.build_command()
            self._log_file = open(self.log_file, 'w', encoding='utf-8')
            try:
                self.process = subprocess.Popen(
                    command,
                    stdout=self._log_file,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL
                )
            except OSError as e:
                logging.warning(f"Could not start log capture ({' '.join(command)}): {e}")
                self._log_file.close()
                self._log_file = None
                return False

        logging.info(f"Capturing container logs to {self.log_file}")
        return True

    def stop(self):
        """Stop the log stream and close the log file."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            process, self.process = self.process, None
            log_file, self._log_file = self._log_file, None

        if process is not None and process.poll() is None:
            terminate_process_tree(process.pid)
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                logging.warning(f"Log capture process {process.pid} did not exit")

        if log_file is not None:
            log_file.close()
            logging.info("Log capture stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
