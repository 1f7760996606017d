"""
Scenario management system.

This module provides the public operation surface for scenarios: recording,
replay and organization. Every operation returns an ``OperationResult``;
nothing raised by the components underneath escapes to the caller.
"""

import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from webpilot.artifact_storage import ArtifactStorage
from webpilot.config_models import SystemConfig
from webpilot.logging_config import get_logger
from webpilot.operation_utils import safe_operation
from webpilot.session_registry import SessionFactory, SessionRegistry
from .dispatcher import ActionDispatcher
from .errors import ErrorKind, SessionNotFoundError
from .models import OperationResult
from .player import ReplayEngine, describe_plan
from .recorder import RecordingController
from .store import ScenarioStore
from .variables import VariableSubstitutionEngine


class ScenarioManager:
    """Central manager for scenario operations."""

    def __init__(self, store: ScenarioStore, recorder: RecordingController,
                 registry: SessionRegistry, engine: ReplayEngine):
        """Initialize scenario manager."""
        self.store = store
        self.recorder = recorder
        self.registry = registry
        self.engine = engine
        self.logger = get_logger(__name__)

    @classmethod
    def from_config(cls, config: SystemConfig, session_factory: Optional[SessionFactory] = None,
                    sleep: Callable[[float], None] = time.sleep) -> "ScenarioManager":
        """
        Wire up all components from a system configuration.

        Args:
            config: System configuration
            session_factory: Browser session factory (Chrome when omitted)
            sleep: Sleep function used for replay pacing and page polling

        Returns:
            Manager with scenarios loaded from the scenario directory
        """
        if session_factory is None:
            from webpilot.drivers.selenium_chrome import chrome_session_factory
            session_factory = chrome_session_factory(config.browser)

        store = ScenarioStore(config.paths.scenario_dir)
        store.load_all()

        registry = SessionRegistry(session_factory)
        dispatcher = ActionDispatcher(
            page_change_timeout_ms=config.replay.page_change_timeout_ms,
            poll_interval_seconds=config.replay.poll_interval_seconds,
            sleep=sleep
        )
        engine = ReplayEngine(
            registry,
            dispatcher,
            VariableSubstitutionEngine(config.replay.call_variables_override),
            ArtifactStorage(config.paths.screenshot_dir),
            step_delay_seconds=config.replay.step_delay_seconds,
            sleep=sleep
        )
        return cls(store, RecordingController(store), registry, engine)

    # Recording operations

    @safe_operation
    def record_scenario(self, session_id: str, scenario_name: str,
                        description: Optional[str] = None) -> OperationResult:
        """Start recording browser actions of a session into a new scenario."""
        if self.registry.get(session_id) is None:
            raise SessionNotFoundError(f"Session {session_id} not found")

        scenario = self.recorder.start(session_id, scenario_name, description)
        return OperationResult.ok(
            f"Started recording scenario '{scenario.name}'",
            scenario_id=scenario.scenario_id,
            scenario_name=scenario.name
        )

    @safe_operation
    def stop_recording_scenario(self, scenario_name: str, save_scenario: bool = True) -> OperationResult:
        """Stop recording a scenario and optionally persist it."""
        scenario = self.recorder.stop(scenario_name, save=save_scenario)
        message = f"Scenario '{scenario.name}' recording stopped"
        if save_scenario:
            message += " and saved"
        return OperationResult.ok(
            message,
            scenario_id=scenario.scenario_id,
            scenario_name=scenario.name,
            total_steps=scenario.metadata.total_steps,
            duration=scenario.metadata.duration_seconds
        )

    @safe_operation
    def recording_status(self, session_id: str) -> OperationResult:
        status = self.recorder.get_recording_status(session_id)
        state = "recording" if status["recording"] else "not recording"
        return OperationResult.ok(f"Session {session_id} is {state}", **status)

    # Playback operations

    @safe_operation
    def replay_scenario(self, scenario_name: str, session_id: Optional[str] = None,
                        fast_mode: bool = False, stop_on_error: bool = False,
                        skip_screenshots: bool = True, take_screenshots: bool = False,
                        variables: Optional[Dict[str, Any]] = None) -> OperationResult:
        """
        Replay a scenario by id or name.

        The result is successful only when every step succeeded; the report
        is attached either way.
        """
        scenario = self.store.get(scenario_name)
        report = self.engine.replay(
            scenario,
            session_id=session_id,
            fast_mode=fast_mode,
            stop_on_error=stop_on_error,
            skip_screenshots=skip_screenshots,
            take_screenshots=take_screenshots,
            variables=variables
        )
        self.store.mark_used(scenario)

        if report.success:
            return OperationResult(success=True, message=report.message, data=report.to_dict())

        kind = ErrorKind.UNEXPECTED if report.error else ErrorKind.STEP_FAILURE
        return OperationResult(success=False, message=report.message, error_kind=kind, data=report.to_dict())

    @safe_operation
    def plan_scenario(self, scenario_name: str,
                      variables: Optional[Dict[str, Any]] = None) -> OperationResult:
        """Resolve a scenario's steps with variables without running them."""
        scenario = self.store.get(scenario_name)
        plan = describe_plan(scenario, self.engine.variables, variables)
        return OperationResult.ok(
            f"Scenario '{scenario.name}' has {len(plan)} steps",
            scenario_id=scenario.scenario_id,
            steps=plan
        )

    # Organization

    @safe_operation
    def list_scenarios(self, filter: Optional[str] = None, limit: Optional[int] = 50) -> OperationResult:
        """List scenario summaries, most recently modified first."""
        scenarios = self.store.list(filter=filter, limit=limit)
        return OperationResult.ok(
            f"Found {len(scenarios)} scenarios",
            scenarios=[s.get_summary() for s in scenarios],
            total=len(self.store)
        )

    @safe_operation
    def get_scenario(self, scenario_name: str) -> OperationResult:
        scenario = self.store.get(scenario_name)
        return OperationResult.ok(f"Scenario '{scenario.name}'", scenario=scenario.to_dict())

    @safe_operation
    def update_scenario(self, scenario_name: str, new_name: Optional[str] = None,
                        description: Optional[str] = None, steps: Optional[List[Any]] = None,
                        variables: Optional[Dict[str, Any]] = None) -> OperationResult:
        """Rename, re-describe, replace steps of, or merge variables into a scenario."""
        scenario, updated = self.store.update(
            scenario_name,
            new_name=new_name,
            description=description,
            steps=steps,
            variables=variables
        )
        return OperationResult.ok(
            f"Scenario '{scenario.name}' updated successfully",
            scenario_id=scenario.scenario_id,
            updated=updated
        )

    @safe_operation
    def delete_scenario(self, scenario_name: str, confirm: bool = False) -> OperationResult:
        """Delete a scenario; refuses unless ``confirm`` is True."""
        scenario = self.store.delete(scenario_name, confirm=confirm)
        self.recorder.cancel_for_scenario(scenario.scenario_id)
        return OperationResult.ok(
            f"Scenario '{scenario.name}' deleted successfully",
            scenario_id=scenario.scenario_id
        )

    @safe_operation
    def export_scenario(self, scenario_name: str, output_dir: Path,
                        format: str = "json") -> OperationResult:
        path = self.store.export_scenario(scenario_name, output_dir, format)
        return OperationResult.ok(f"Exported scenario to {path}", path=str(path))

    @safe_operation
    def import_scenarios(self, import_dir: Path) -> OperationResult:
        imported = self.store.import_scenarios(import_dir)
        return OperationResult.ok(f"Imported {len(imported)} scenarios", scenario_ids=imported)

    def shutdown(self) -> None:
        """Cancel unfinished recordings and close every browser session still open."""
        for session_id in self.recorder.active_sessions():
            self.recorder.cancel(session_id)
        self.registry.close_all()
