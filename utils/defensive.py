"""
Defensive input validation for docker-chaos.
Everything here runs before orchestration starts; any failure is fatal.
"""

import os
import re
import shlex
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Union

from colorama import Fore, Style


class ValidationError(Exception):
    """Raised when validation fails."""
    pass


class ConfigurationError(ValidationError):
    """Raised when the run cannot start because its configuration is wrong."""
    pass


# docker-compose project names: lowercase letters, digits, dashes and underscores
PROJECT_NAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_-]*$')


class InputValidator:
    """Validates CLI inputs defensively."""

    @staticmethod
    def validate_path(path: Union[str, Path, None], must_exist: bool = False,
                      must_be_dir: bool = False, must_be_file: bool = False,
                      allow_none: bool = False) -> Optional[Path]:
        """
        Validate and normalise path input.

        Args:
            path: Path to validate
            must_exist: Path must exist
            must_be_dir: Path must be a directory
            must_be_file: Path must be a file
            allow_none: Allow None values

        Returns:
            Resolved Path object or None

        Raises:
            ValidationError: If validation fails
        """
        if path is None:
            if allow_none:
                return None
            raise ValidationError("Path cannot be None")

        if isinstance(path, str):
            # Remove null bytes (security)
            path = path.replace('\x00', '').strip()
            if not path:
                raise ValidationError("Path cannot be empty")
            path_obj = Path(path).expanduser()
        elif isinstance(path, Path):
            path_obj = path
        else:
            raise ValidationError(f"Invalid path type: {type(path)}")

        if must_exist and not path_obj.exists():
            raise ValidationError(f"Path does not exist: {path_obj}")

        if must_be_dir and path_obj.exists() and not path_obj.is_dir():
            raise ValidationError(f"Path is not a directory: {path_obj}")

        if must_be_file and path_obj.exists() and not path_obj.is_file():
            raise ValidationError(f"Path is not a file: {path_obj}")

        try:
            return path_obj.resolve()
        except OSError as e:
            raise ValidationError(f"Cannot resolve path: {e}")

    @staticmethod
    def validate_compose_file(path: Union[str, Path]) -> Path:
        """Return the real path of the compose file or raise ConfigurationError."""
        try:
            compose_file = InputValidator.validate_path(path, must_exist=True, must_be_file=True)
        except ValidationError as e:
            raise ConfigurationError(f"A docker-compose.yml file could not be found ({e})")
        if not os.access(compose_file, os.R_OK):
            raise ConfigurationError(f"The docker-compose file is not readable: {compose_file}")
        return compose_file

    @staticmethod
    def validate_plan_file(path: Optional[str]) -> Path:
        """Return the real path of the chaos plan file or raise ConfigurationError."""
        if not path:
            raise ConfigurationError("A plan file is needed so we know how to create chaos")
        try:
            return InputValidator.validate_path(path, must_exist=True, must_be_file=True)
        except ValidationError as e:
            raise ConfigurationError(f"The plan file could not be found ({e})")

    @staticmethod
    def validate_project_name(name: Optional[str]) -> str:
        """Check the compose project name."""
        if name is None or not name.strip():
            raise ConfigurationError("A project name is needed so we know where to create chaos")
        name = name.strip()
        if not PROJECT_NAME_PATTERN.match(name):
            # docker-compose normalises names itself, so this is not fatal.
            # Runs before setup_logging(), so print rather than log
            print(f"{Fore.YELLOW}WARNING: Project name '{name}' will be normalised by docker-compose{Style.RESET_ALL}")
        return name

    @staticmethod
    def validate_log_path(path: Union[str, Path]) -> Path:
        """
        Check that the log directory does not exist yet.

        Returns:
            Absolute path of the directory to create
        """
        try:
            log_path = InputValidator.validate_path(path)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid log path: {e}")
        if log_path.exists():
            raise ConfigurationError(f"Log path {log_path} already exists. Aborting")
        if not log_path.parent.exists():
            raise ConfigurationError(f"Parent directory of log path does not exist: {log_path.parent}")
        return log_path

    @staticmethod
    def resolve_command(command: Optional[Sequence[str]]) -> List[str]:
        """
        Turn the positional test command into an argument list.

        A single argument is split shell-style so "./run-tests.sh --fast"
        works quoted. The program itself must exist, either as a path or on PATH.

        Returns:
            Argument list with the program resolved to a real path
        """
        if not command:
            raise ConfigurationError("You need to pass the command to be executed")

        if len(command) == 1:
            try:
                args = shlex.split(command[0])
            except ValueError as e:
                raise ConfigurationError(f"Could not parse test command: {e}")
        else:
            args = list(command)

        if not args:
            raise ConfigurationError("You need to pass the command to be executed")

        program = args[0]
        if os.sep in program or (os.altsep and os.altsep in program) or Path(program).exists():
            program_path = Path(program).expanduser()
            if not program_path.exists():
                raise ConfigurationError(f"Test command not found: {program}")
            resolved = str(program_path.resolve())
        else:
            resolved = shutil.which(program)
            if resolved is None:
                raise ConfigurationError(f"Test command not found on PATH: {program}")

        return [resolved] + args[1:]
