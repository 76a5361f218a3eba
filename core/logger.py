"""
Logging setup and management for docker-chaos.
"""

import datetime
import logging
from pathlib import Path

from utils.error_messages import truncate_output


def setup_logging(log_dir: Path, level: int = logging.INFO) -> Path:
    """
    Set up logging configuration.

    The tool's own log sits next to the captured container logs.

    Args:
        log_dir: Run log directory (must exist)
        level: Root logger level

    Returns:
        Path to the current log file
    """
    current_time = datetime.datetime.now().strftime("%Y%m%d-%H%M%S")
    log_file = Path(log_dir) / f'docker-chaos-{current_time}.log'

    log_formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    log_handler = logging.FileHandler(log_file, encoding='utf-8')
    log_handler.setFormatter(log_formatter)

    logger = logging.getLogger()
    logger.setLevel(level)
    logger.addHandler(log_handler)

    return log_file


def log_subprocess_failure(result, process_name: str, command=None):
    """
    Log detailed information for a failed subprocess.

    Args:
        result: ProcessResult of the failed command
        process_name: Name of the process that failed
        command: Optional argument list that was run
    """
    logging.error(f"{process_name} failed with return code {result.returncode}")
    if command:
        logging.error(f"Command: {' '.join(command)}")
    output = truncate_output(result.output, limit=2000)
    if output:
        logging.error(f"Output:\n{output}")
