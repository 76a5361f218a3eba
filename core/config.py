"""
Configuration management for docker-chaos.
Loads and validates the optional JSON tunables file.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from core.deadline import DeadlinePolicy


class Config:
    """Manages run tunables. CLI flags override values loaded from file."""

    # Default configuration values
    DEFAULT_CONFIG = {
        'compose_tool': 'docker-compose',
        'max_retries': None,
        'retry_backoff_seconds': 0,
        'retry_backoff_factor': 2.0,
        'max_backoff_seconds': 60,
        'test_timeout_seconds': None,
        'scale_timeout_seconds': 300,
        'on_deadline': DeadlinePolicy.CONTINUE.value,
        'halt_on_scenario_failure': False,
    }

    def __init__(self, config_path: Path = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to config.json file. If None, uses defaults.
        """
        self.config = self.DEFAULT_CONFIG.copy()

        if config_path and config_path.exists():
            self.load_config(config_path)

    def load_config(self, config_path: Path):
        """Load configuration from JSON file, keeping defaults if it is invalid."""
        try:
            with open(config_path, 'r') as f:
                user_config = json.load(f)
        except json.JSONDecodeError as e:
            print(f"\nERROR: Invalid JSON in config file")
            print(f"  Config file: {config_path.absolute()}")
            print(f"  Problem: {e.msg}")
            print(f"  Line: {e.lineno}, Column: {e.colno}")
            print()
            print("Using default configuration.")
            return
        except OSError as e:
            print(f"\nERROR: Could not load config file")
            print(f"  Config file: {config_path.absolute()}")
            print(f"  Problem: {e}")
            print()
            print("Using default configuration.")
            return

        if not isinstance(user_config, dict):
            print(f"\nERROR: Config file must contain a JSON object")
            print(f"  Config file: {config_path.absolute()}")
            print("Using default configuration.")
            return

        is_valid, errors = self._validate_config(user_config)
        if not is_valid:
            print(f"\nConfiguration validation failed:")
            print(f"  Config file: {config_path.absolute()}")
            print()
            for error in errors:
                print(error)
                print()
            print("Using default configuration instead.")
            return

        self.config.update(user_config)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        return self.config.get(key, default)

    def set(self, key: str, value: Any):
        """Set configuration value."""
        self.config[key] = value

    def _validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        """
        Validate configuration dictionary.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        unknown = sorted(set(config) - set(self.DEFAULT_CONFIG))
        for field in unknown:
            errors.append(
                f"ERROR: Unknown config field\n"
                f"  Field: {field}\n"
                f"  Known fields: {', '.join(sorted(self.DEFAULT_CONFIG))}"
            )

        # field: (min, max, display name, example, allow null)
        numeric_fields = {
            'max_retries': (0, 1_000_000, "Maximum retries", 10, True),
            'retry_backoff_seconds': (0, 3600, "Retry backoff", 1, False),
            'retry_backoff_factor': (1, 10, "Retry backoff factor", 2, False),
            'max_backoff_seconds': (0, 3600, "Maximum backoff", 60, False),
            'test_timeout_seconds': (1, 86400, "Test timeout", 600, True),
            'scale_timeout_seconds': (1, 3600, "Scale timeout", 300, False),
        }

        for field, (min_val, max_val, display_name, example, nullable) in numeric_fields.items():
            if field not in config:
                continue
            value = config[field]
            if value is None and nullable:
                continue
            integer_only = field == 'max_retries'
            expected = "number (integer)" if integer_only else "number"
            valid_type = int if integer_only else (int, float)
            if isinstance(value, bool) or not isinstance(value, valid_type):
                errors.append(
                    f"ERROR: Invalid config value\n"
                    f"  Field: {field}\n"
                    f"  Value: {repr(value)} ({type(value).__name__})\n"
                    f"  Expected: {expected}{' or null' if nullable else ''}\n"
                    f"  Example: {example}\n"
                    f"  Valid range: {min_val} to {max_val}"
                )
            elif value < min_val or value > max_val:
                errors.append(
                    f"ERROR: Invalid config value\n"
                    f"  Field: {field} ({display_name})\n"
                    f"  Value: {value}\n"
                    f"  Expected: number between {min_val} and {max_val}\n"
                    f"  Example: {example}"
                )

        if 'compose_tool' in config:
            value = config['compose_tool']
            if not isinstance(value, str) or not value.strip():
                errors.append(
                    f"ERROR: Invalid config value\n"
                    f"  Field: compose_tool\n"
                    f"  Value: {repr(value)}\n"
                    f"  Expected: non-empty string\n"
                    f"  Example: \"docker compose\""
                )

        if 'on_deadline' in config and config['on_deadline'] not in DeadlinePolicy.choices():
            errors.append(
                f"ERROR: Invalid config value\n"
                f"  Field: on_deadline\n"
                f"  Value: {repr(config['on_deadline'])}\n"
                f"  Expected: one of {', '.join(DeadlinePolicy.choices())}"
            )

        if 'halt_on_scenario_failure' in config and not isinstance(config['halt_on_scenario_failure'], bool):
            errors.append(
                f"ERROR: Invalid config value\n"
                f"  Field: halt_on_scenario_failure\n"
                f"  Value: {repr(config['halt_on_scenario_failure'])}\n"
                f"  Expected: true or false"
            )

        return (len(errors) == 0, errors)

    @property
    def compose_tool(self) -> str:
        """Get the docker-compose command."""
        return self.config['compose_tool']

    @property
    def max_retries(self) -> Optional[int]:
        """Get the retry cap (None retries forever)."""
        return self.config['max_retries']

    @property
    def retry_backoff_seconds(self) -> float:
        return self.config['retry_backoff_seconds']

    @property
    def retry_backoff_factor(self) -> float:
        return self.config['retry_backoff_factor']

    @property
    def max_backoff_seconds(self) -> float:
        return self.config['max_backoff_seconds']

    @property
    def test_timeout_seconds(self) -> Optional[float]:
        """Get the per-run test timeout (None waits forever)."""
        return self.config['test_timeout_seconds']

    @property
    def scale_timeout_seconds(self) -> float:
        return self.config['scale_timeout_seconds']

    @property
    def on_deadline(self) -> DeadlinePolicy:
        """Get the deadline policy."""
        return DeadlinePolicy(self.config['on_deadline'])

    @property
    def halt_on_scenario_failure(self) -> bool:
        return self.config['halt_on_scenario_failure']
