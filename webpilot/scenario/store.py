"""
Scenario repository.

Scenarios live in memory keyed by scenario id and are mirrored to disk as one
JSON document per scenario (``<scenario_id>.json``). Every write is a full
document overwrite.
"""

import json
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml
from pydantic import ValidationError

from webpilot.logging_config import get_logger
from .errors import ConfirmationRequiredError, ScenarioNotFoundError, ScenarioValidationError
from .models import Scenario, parse_step, utc_now


class ScenarioStore:
    """In-memory scenario table backed by a directory of JSON files."""

    def __init__(self, storage_dir: Path):
        """Initialize the store; call ``load_all`` to read existing files."""
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.logger = get_logger(__name__)

        self._scenarios: Dict[str, Scenario] = {}
        self._lock = threading.RLock()
        self._last_id_millis = 0

    def __len__(self) -> int:
        return len(self._scenarios)

    # Identity and lookup

    def new_scenario_id(self) -> str:
        """Generate a timestamp-based id that is unique within this store."""
        with self._lock:
            millis = max(int(time.time() * 1000), self._last_id_millis + 1)
            while f"scenario-{millis}" in self._scenarios:
                millis += 1
            self._last_id_millis = millis
            return f"scenario-{millis}"

    def scenario_path(self, scenario_id: str) -> Path:
        return self.storage_dir / f"{scenario_id}.json"

    def find(self, id_or_name: str) -> Optional[Scenario]:
        """Find a scenario by id, falling back to the first one with that name."""
        with self._lock:
            scenario = self._scenarios.get(id_or_name)
            if scenario is not None:
                return scenario

            matching = self.find_all_by_name(id_or_name)
            if len(matching) > 1:
                self.logger.warning(f"Multiple scenarios found with name '{id_or_name}', using first match")
            return matching[0] if matching else None

    def find_all_by_name(self, name: str) -> List[Scenario]:
        with self._lock:
            return [s for s in self._scenarios.values() if s.name == name]

    def get(self, id_or_name: str) -> Scenario:
        """
        Get a scenario by id or name.

        Raises:
            ScenarioNotFoundError: If nothing matches
        """
        scenario = self.find(id_or_name)
        if scenario is None:
            raise ScenarioNotFoundError(f"Scenario '{id_or_name}' not found")
        return scenario

    def list(self, filter: Optional[str] = None, limit: Optional[int] = 50) -> List[Scenario]:
        """
        List scenarios, most recently modified first.

        Args:
            filter: Case-insensitive substring matched against name and description
            limit: Maximum number of scenarios returned (None for all)
        """
        if limit is not None and limit < 0:
            raise ScenarioValidationError("limit cannot be negative")

        with self._lock:
            scenarios = list(self._scenarios.values())

        if filter:
            needle = filter.lower()
            scenarios = [
                s for s in scenarios
                if needle in s.name.lower() or (s.description and needle in s.description.lower())
            ]

        scenarios.sort(key=lambda s: s.metadata.last_modified, reverse=True)
        return scenarios if limit is None else scenarios[:limit]

    # Mutation

    def create(self, scenario: Scenario) -> Scenario:
        """Register a new scenario in memory (not persisted)."""
        with self._lock:
            if scenario.scenario_id in self._scenarios:
                raise ScenarioValidationError(f"Scenario id '{scenario.scenario_id}' already exists")
            self._scenarios[scenario.scenario_id] = scenario
        self.logger.debug(f"Created scenario {scenario.scenario_id} ('{scenario.name}')")
        return scenario

    def update(self, id_or_name: str, new_name: Optional[str] = None,
               description: Optional[str] = None, steps: Optional[Sequence[Any]] = None,
               variables: Optional[Dict[str, Any]] = None) -> Tuple[Scenario, Dict[str, Any]]:
        """
        Patch a scenario and persist it.

        Steps are replaced wholesale; variables are merged into the existing
        ones.

        Returns:
            The updated scenario and a description of what changed

        Raises:
            ScenarioNotFoundError: If nothing matches
            ScenarioValidationError: If the new name or a step is malformed
        """
        parsed_steps = self._parse_steps(steps) if steps is not None else None
        if new_name is not None and not new_name.strip():
            raise ScenarioValidationError("Scenario name cannot be empty")

        with self._lock:
            scenario = self.get(id_or_name)
            updated: Dict[str, Any] = {}

            if new_name is not None:
                scenario.name = new_name.strip()
                updated["name"] = scenario.name
            if description is not None:
                scenario.description = description
                updated["description"] = description
            if parsed_steps is not None:
                scenario.steps = parsed_steps
            if variables:
                scenario.variables = {
                    **scenario.variables,
                    **{str(k): str(v) for k, v in variables.items()}
                }

            updated["steps"] = len(parsed_steps) if parsed_steps is not None else 0
            updated["variables"] = sorted(variables) if variables else []

            scenario.refresh_metadata()
            self.save(scenario)

        self.logger.info(f"Updated scenario {scenario.scenario_id} ('{scenario.name}')")
        return scenario, updated

    def delete(self, id_or_name: str, confirm: bool = False) -> Scenario:
        """
        Remove a scenario from memory and disk.

        Raises:
            ScenarioNotFoundError: If nothing matches
            ConfirmationRequiredError: If ``confirm`` is not True
        """
        with self._lock:
            scenario = self.get(id_or_name)
            if confirm is not True:
                raise ConfirmationRequiredError(
                    f"Confirmation required to delete scenario '{scenario.name}'. Set 'confirm: true' in arguments."
                )

            file_path = self.scenario_path(scenario.scenario_id)
            if file_path.exists():
                file_path.unlink()
            del self._scenarios[scenario.scenario_id]

        self.logger.info(f"Deleted scenario {scenario.scenario_id} ('{scenario.name}')")
        return scenario

    def discard(self, scenario_id: str) -> None:
        """Drop a scenario from memory without touching its file."""
        with self._lock:
            self._scenarios.pop(scenario_id, None)

    def mark_used(self, scenario: Scenario) -> None:
        """Stamp last use; only scenarios already on disk are re-saved."""
        with self._lock:
            scenario.metadata.last_used_at = utc_now()
            if self.is_persisted(scenario):
                self.save(scenario)

    # Persistence

    def is_persisted(self, scenario: Scenario) -> bool:
        return self.scenario_path(scenario.scenario_id).exists()

    def save(self, scenario: Scenario) -> Path:
        """Write the full scenario document to disk."""
        file_path = self.scenario_path(scenario.scenario_id)
        with self._lock:
            self._scenarios[scenario.scenario_id] = scenario
            scenario.save_to_file(file_path)
        self.logger.info(f"Saved scenario '{scenario.name}' to: {file_path}")
        return file_path

    def load_all(self) -> int:
        """
        Rebuild the in-memory table from the storage directory.

        Unreadable or invalid files are skipped with a warning.

        Returns:
            Number of scenarios loaded
        """
        self.logger.info(f"Loading existing scenarios from {self.storage_dir}")
        loaded = 0

        with self._lock:
            for file_path in sorted(self.storage_dir.glob("*.json")):
                try:
                    scenario = Scenario.load_from_file(file_path)
                except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
                    self.logger.warning(f"Skipping unreadable scenario file {file_path}: {e}")
                    continue

                self._scenarios[scenario.scenario_id] = scenario
                loaded += 1
                self.logger.debug(f"Loaded scenario '{scenario.name}' ({scenario.scenario_id})")

        self.logger.info(f"Loaded {loaded} scenarios")
        return loaded

    def export_scenario(self, id_or_name: str, output_dir: Path, format: str = "json") -> Path:
        """Export one scenario as JSON or YAML."""
        scenario = self.get(id_or_name)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        if format.lower() == "json":
            output_file = output_dir / f"{scenario.scenario_id}.json"
            scenario.save_to_file(output_file)
        elif format.lower() == "yaml":
            output_file = output_dir / f"{scenario.scenario_id}.yaml"
            with open(output_file, "w", encoding="utf-8") as f:
                yaml.safe_dump(scenario.to_dict(), f, default_flow_style=False, sort_keys=False)
        else:
            raise ScenarioValidationError(f"Unsupported export format: {format}")

        self.logger.info(f"Exported scenario '{scenario.name}' to {output_file}")
        return output_file

    def import_scenarios(self, import_dir: Path) -> List[str]:
        """Import every JSON/YAML scenario document found in a directory."""
        imported_ids = []
        import_dir = Path(import_dir)

        for file_path in sorted(import_dir.iterdir()):
            suffix = file_path.suffix.lower()
            if suffix not in (".json", ".yaml", ".yml"):
                continue
            try:
                if suffix == ".json":
                    scenario = Scenario.load_from_file(file_path)
                else:
                    with open(file_path, "r", encoding="utf-8") as f:
                        scenario = Scenario.from_dict(yaml.safe_load(f) or {})
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError, ValidationError) as e:
                self.logger.error(f"Failed to import scenario from {file_path}: {e}")
                continue

            self.save(scenario)
            imported_ids.append(scenario.scenario_id)

        self.logger.info(f"Imported {len(imported_ids)} scenarios from {import_dir}")
        return imported_ids

    @staticmethod
    def _parse_steps(steps: Sequence[Any]) -> List[Any]:
        parsed = []
        for index, raw in enumerate(steps):
            try:
                parsed.append(parse_step(raw))
            except ValidationError as e:
                raise ScenarioValidationError(f"Invalid step at index {index}: {e}") from e
        return parsed
