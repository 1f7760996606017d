"""
Scenario replay.

This module re-executes recorded scenarios step by step against a browser
session, applying variable substitution, pacing and the abort policy, and
aggregates everything into a ``ReplayReport``.
"""

import time
from typing import Any, Callable, Dict, Optional

from webpilot.artifact_storage import ArtifactStorage
from webpilot.interfaces import BrowserError, BrowserSession
from webpilot.logging_config import get_logger
from webpilot.session_registry import SessionRegistry
from .dispatcher import ActionDispatcher
from .errors import ReplayAbortedError
from .models import ActionKind, ActionResult, ReplayReport, Scenario, StepBase, now_millis
from .variables import VariableSubstitutionEngine


class ReplayEngine:
    """Walks a scenario's steps in order and reports on the outcome."""

    def __init__(self, registry: SessionRegistry, dispatcher: ActionDispatcher,
                 variables: VariableSubstitutionEngine, artifacts: ArtifactStorage,
                 step_delay_seconds: float = 0.5,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize replay engine."""
        self.registry = registry
        self.dispatcher = dispatcher
        self.variables = variables
        self.artifacts = artifacts
        self.step_delay_seconds = step_delay_seconds
        self._sleep = sleep
        self.logger = get_logger(__name__)

    def replay(self, scenario: Scenario, session_id: Optional[str] = None,
               fast_mode: bool = False, stop_on_error: bool = False,
               skip_screenshots: bool = True, take_screenshots: bool = False,
               variables: Optional[Dict[str, Any]] = None) -> ReplayReport:
        """
        Replay a scenario.

        When ``session_id`` does not resolve to a live session, a headless
        ephemeral session is opened for this replay and closed afterwards,
        whatever the outcome.

        Args:
            scenario: Scenario to replay
            session_id: Session to replay against
            fast_mode: Skip the delay between steps
            stop_on_error: Abort at the first failing step
            skip_screenshots: Report screenshot steps as skipped
            take_screenshots: Capture and persist screenshot steps
                (only when ``skip_screenshots`` is False)
            variables: Call-time variable values

        Returns:
            Replay report, including partial results on abort
        """
        started = time.time()
        report = ReplayReport(
            scenario_id=scenario.scenario_id,
            scenario_name=scenario.name,
            total_steps=len(scenario.steps)
        )

        session = self.registry.get(session_id)
        ephemeral = session is None
        if session_id and session is None:
            self.logger.warning(f"Session {session_id} not found, replaying in a new session")

        if ephemeral:
            browser_id = f"replay-{scenario.scenario_id}-{now_millis()}"
            try:
                session = self.registry.open_session(browser_id, headless=True)
            except BrowserError as e:
                self.logger.error(f"Failed to open browser for replay: {e}")
                report.aborted = True
                report.error = str(e)
                report.finish(started, f"Failed to open browser for replay: {e}")
                return report

        report.session_id = session.session_id
        report.ephemeral_session = ephemeral
        self.logger.info(
            f"Replaying scenario '{scenario.name}' ({len(scenario.steps)} steps) on session "
            f"{session.session_id}{' (ephemeral)' if ephemeral else ''}"
        )

        try:
            self._run_steps(scenario, session, report, fast_mode, stop_on_error,
                            skip_screenshots, take_screenshots, variables or {})
            report.finish(started)
        except ReplayAbortedError as e:
            report.aborted = True
            report.finish(started, str(e))
        except Exception as e:
            self.logger.exception(f"Unexpected error while replaying scenario '{scenario.name}'")
            report.aborted = True
            report.error = f"{type(e).__name__}: {e}"
            report.finish(started, f"Replay failed: {e}")
        finally:
            if ephemeral:
                self.registry.close_session(session.session_id)

        self.logger.info(
            f"Scenario replay finished: {scenario.name} - executed {report.executed_steps}/"
            f"{report.total_steps}, failed {report.failed_steps}, {report.duration_seconds:.2f}s"
        )
        return report

    def _run_steps(self, scenario: Scenario, session: BrowserSession, report: ReplayReport,
                   fast_mode: bool, stop_on_error: bool, skip_screenshots: bool,
                   take_screenshots: bool, call_vars: Dict[str, Any]) -> None:
        capture_screenshots = take_screenshots and not skip_screenshots

        for index, step in enumerate(scenario.steps):
            step_number = index + 1
            if not fast_mode and index > 0 and self.step_delay_seconds > 0:
                self._sleep(self.step_delay_seconds)

            if step.kind is ActionKind.SCREENSHOT and not capture_screenshots:
                result = ActionResult.ok("Screenshot skipped")
            else:
                resolved = self.variables.resolve_step(step, scenario.variables, call_vars)
                result = self.dispatcher.dispatch(session, resolved)
                if result.success and step.kind is ActionKind.SCREENSHOT:
                    self._store_screenshot(report, step_number, result)

            report.add_step_result(step_number, step.action, result)
            report.final_url = self._read_url(session, report.final_url)

            if not result.success:
                self.logger.warning(f"Step {step_number} ({step.action}) failed: {result.message}")
                if stop_on_error:
                    raise ReplayAbortedError(f"Replay stopped on error at step {step_number}: {result.message}")

    def _store_screenshot(self, report: ReplayReport, step_number: int, result: ActionResult) -> None:
        if not isinstance(result.value, bytes):
            return
        path = self.artifacts.save_screenshot(result.value, f"replay_step_{step_number}_{now_millis()}.png")
        report.screenshots.append(str(path))

    def _read_url(self, session: BrowserSession, fallback: str) -> str:
        try:
            return session.current_url
        except BrowserError as e:
            self.logger.debug(f"Could not read current URL: {e}")
            return fallback


def describe_plan(scenario: Scenario, engine: VariableSubstitutionEngine,
                  variables: Optional[Dict[str, Any]] = None) -> list:
    """Resolve every step without executing it (dry run)."""
    plan = []
    for index, step in enumerate(scenario.steps):
        resolved: StepBase = engine.resolve_step(step, scenario.variables, variables or {})
        plan.append({"step": index + 1, "action": resolved.action, "target": resolved.describe()})
    return plan
