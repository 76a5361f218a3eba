"""
Chaos plan model for docker-chaos.
A plan is an ordered, immutable list of scenarios; each scenario scales a set of services at once.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from utils.defensive import ConfigurationError


class PlanError(ConfigurationError):
    """Raised when a chaos plan is missing, malformed or empty."""
    pass


@dataclass(frozen=True)
class Scenario:
    """A named set of service -> replica count changes applied together."""

    name: str
    changes: Tuple[Tuple[str, int], ...]

    def __post_init__(self):
        if not self.changes:
            raise PlanError(f"Scenario '{self.name}' has no services to scale")

    @property
    def modifications(self) -> List[Dict[str, int]]:
        """The changes as ordered single-key mappings, as the scaling adapter takes them."""
        return [{service: replicas} for service, replicas in self.changes]

    def describe(self) -> str:
        """Human-readable form, e.g. "api down (api=0 db=1)"."""
        pairs = " ".join(f"{service}={replicas}" for service, replicas in self.changes)
        return f"{self.name} ({pairs})"

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class ChaosPlan:
    """Ordered scenarios, traversed cyclically by the scheduler."""

    scenarios: Tuple[Scenario, ...]

    def __post_init__(self):
        if not self.scenarios:
            raise PlanError("Chaos plan contains no scenarios")

    def __len__(self) -> int:
        return len(self.scenarios)

    def __iter__(self):
        return iter(self.scenarios)

    def __getitem__(self, index: int) -> Scenario:
        return self.scenarios[index]

    def get_scenarios(self) -> Tuple[Scenario, ...]:
        return self.scenarios


def _parse_replicas(scenario_name: str, service: Any, replicas: Any) -> Tuple[str, int]:
    if not isinstance(service, str) or not service.strip():
        raise PlanError(f"Scenario '{scenario_name}': service names must be non-empty strings, got {service!r}")
    # bool is an int subclass; "api": true is a typo, not a replica count
    if isinstance(replicas, bool) or not isinstance(replicas, int):
        raise PlanError(f"Scenario '{scenario_name}': replica count for '{service}' must be an integer, "
                        f"got {replicas!r}")
    if replicas < 0:
        raise PlanError(f"Scenario '{scenario_name}': replica count for '{service}' cannot be negative")
    return service.strip(), replicas


def _parse_changes(scenario_name: str, services: Any) -> Tuple[Tuple[str, int], ...]:
    changes = []
    if isinstance(services, dict):
        for service, replicas in services.items():
            changes.append(_parse_replicas(scenario_name, service, replicas))
    elif isinstance(services, list):
        for entry in services:
            if not isinstance(entry, dict) or len(entry) != 1:
                raise PlanError(f"Scenario '{scenario_name}': each entry must map exactly one service "
                                f"to a replica count, got {entry!r}")
            (service, replicas), = entry.items()
            changes.append(_parse_replicas(scenario_name, service, replicas))
    else:
        raise PlanError(f"Scenario '{scenario_name}': services must be a list or an object")

    if not changes:
        raise PlanError(f"Scenario '{scenario_name}' has no services to scale")
    return tuple(changes)


def parse_plan(data: Any) -> ChaosPlan:
    """
    Build a ChaosPlan from decoded plan data.

    Accepted shapes:
        {"scenarios": [{"name": "api down", "services": [{"api": 0}]}, ...]}
        [{"name": "api down", "services": {"api": 0}}, [{"api": 3}], ...]

    Raises:
        PlanError: If the data does not describe at least one valid scenario
    """
    if isinstance(data, dict):
        if 'scenarios' not in data:
            raise PlanError("Plan object must have a 'scenarios' list")
        entries = data['scenarios']
    else:
        entries = data

    if not isinstance(entries, list):
        raise PlanError("Plan scenarios must be a list")
    if not entries:
        raise PlanError("Chaos plan contains no scenarios")

    scenarios = []
    for index, entry in enumerate(entries, 1):
        default_name = f"scenario-{index}"
        if isinstance(entry, list):
            scenarios.append(Scenario(default_name, _parse_changes(default_name, entry)))
        elif isinstance(entry, dict):
            name = entry.get('name', default_name)
            if not isinstance(name, str) or not name.strip():
                raise PlanError(f"Scenario {index}: name must be a non-empty string")
            if 'services' not in entry:
                raise PlanError(f"Scenario '{name}' is missing 'services'")
            scenarios.append(Scenario(name.strip(), _parse_changes(name, entry['services'])))
        else:
            raise PlanError(f"Scenario {index} must be an object or a list, got {type(entry).__name__}")

    return ChaosPlan(tuple(scenarios))


def load_plan(plan_file: Union[str, Path]) -> ChaosPlan:
    """
    Read and parse a JSON chaos plan file.

    Raises:
        PlanError: If the file cannot be read or is not a valid plan
    """
    plan_file = Path(plan_file)
    try:
        with open(plan_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise PlanError(f"Invalid JSON in plan file (line {e.lineno}, column {e.colno}): {e.msg}")
    except OSError as e:
        raise PlanError(f"Could not read plan file: {e}")

    return parse_plan(data)
