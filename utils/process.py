"""
Subprocess execution for docker-chaos.
Runs external commands with timeouts and supports killing the in-flight process tree.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import psutil


# Seconds to wait for a terminated process before escalating to kill
TERMINATE_GRACE_SECONDS = 5


@dataclass
class ProcessResult:
    """Outcome of one external command."""

    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = -1
    cancelled: bool = False

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


def terminate_process_tree(pid: int, grace: float = TERMINATE_GRACE_SECONDS) -> int:
    """
    Terminate a process and all of its descendants.

    Children are signalled first so a shell wrapper cannot orphan them.
    Anything still alive after the grace period is killed.

    Args:
        pid: Root process id
        grace: Seconds to wait after SIGTERM before SIGKILL

    Returns:
        Number of processes that were signalled
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return 0

    try:
        procs = parent.children(recursive=True)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        procs = []
    procs.append(parent)

    for proc in procs:
        try:
            proc.terminate()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    _, alive = psutil.wait_procs(procs, timeout=grace)
    for proc in alive:
        try:
            logging.warning(f"Process {proc.pid} ignored SIGTERM - killing")
            proc.kill()
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    return len(procs)


class ProcessRunner:
    """
    Runs one external command at a time and remembers it so another thread can cancel it.

    The orchestrator is single-flight, so a single runner is shared by the test
    runner and the scaling adapter. cancel() is the only method meant to be
    called from a different thread.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False

    @property
    def busy(self) -> bool:
        """True while a command is running."""
        with self._lock:
            return self._process is not None and self._process.poll() is None

    def run(self, cmd: List[str], timeout: Optional[float] = None, cwd: Optional[Path] = None,
            operation: str = "Subprocess") -> ProcessResult:
        """
        Run a command and capture its output.

        Never raises for process-level problems: a missing executable, a
        timeout or a cancellation all come back as a failed ProcessResult.

        Args:
            cmd: Command and arguments
            timeout: Timeout in seconds, None to wait forever
            cwd: Working directory
            operation: Operation description for logging

        Returns:
            ProcessResult for the command
        """
        logging.debug(f"{operation}: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                text=True,
                encoding='utf-8',
                errors='replace'
            )
        except OSError as e:
            logging.error(f"{operation} could not start: {e}")
            return ProcessResult(success=False, stderr=str(e), returncode=-1)

        with self._lock:
            self._process = process
            self._cancelled = False

        try:
            try:
                stdout, stderr = process.communicate(timeout=timeout)
            except subprocess.TimeoutExpired:
                logging.error(f"{operation} TIMEOUT after {timeout}s - killing process tree")
                terminate_process_tree(process.pid)
                stdout, stderr = process.communicate()
                stderr = (stderr or "") + f"\n{operation} killed after {timeout}s timeout"
                return ProcessResult(success=False, stdout=stdout or "", stderr=stderr.strip(),
                                     returncode=process.returncode if process.returncode is not None else -1)
        finally:
            with self._lock:
                cancelled = self._cancelled
                self._process = None

        if cancelled:
            logging.warning(f"{operation} was cancelled")
            return ProcessResult(success=False, stdout=stdout or "", stderr=stderr or "",
                                 returncode=process.returncode, cancelled=True)

        success = process.returncode == 0
        if not success:
            logging.debug(f"{operation} exited with code {process.returncode}")
        return ProcessResult(success=success, stdout=stdout or "", stderr=stderr or "",
                             returncode=process.returncode)

    def cancel(self) -> bool:
        """
        Kill the in-flight command, if any.

        Returns:
            True if a running process was cancelled
        """
        with self._lock:
            process = self._process
            if process is None or process.poll() is not None:
                return False
            self._cancelled = True

        logging.warning(f"Cancelling in-flight process {process.pid}")
        terminate_process_tree(process.pid)
        return True
