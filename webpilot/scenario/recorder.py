"""
Scenario recording.

A recording is bound to one browser session. While it is active, every
mutating browser operation on that session appends a step; stopping the
recording moves the captured steps into the scenario created at start.
"""

import threading
import time
from typing import Any, Dict, List, Optional, Union

from webpilot.logging_config import get_logger
from .errors import RecordingConflictError, RecordingNotActiveError, ScenarioNotFoundError
from .models import ActiveRecording, Scenario, StepBase, parse_step
from .store import ScenarioStore


class RecordingController:
    """Tracks active recordings (at most one per session)."""

    def __init__(self, store: ScenarioStore):
        """Initialize recording controller."""
        self.store = store
        self.logger = get_logger(__name__)

        self._recordings: Dict[str, ActiveRecording] = {}
        self._lock = threading.RLock()

    def start(self, session_id: str, scenario_name: str, description: Optional[str] = None) -> Scenario:
        """
        Start recording a new scenario on a session.

        The scenario is created empty and kept in memory only until the
        recording is stopped with save enabled.

        Raises:
            RecordingConflictError: If the session is already recording
        """
        with self._lock:
            if session_id in self._recordings:
                raise RecordingConflictError(
                    f"Recording already active for session {session_id}. Stop current recording first."
                )

            scenario = Scenario(
                scenario_id=self.store.new_scenario_id(),
                name=scenario_name,
                description=description,
                origin_session_id=session_id
            )
            self.store.create(scenario)
            self._recordings[session_id] = ActiveRecording(
                session_id=session_id,
                scenario_id=scenario.scenario_id
            )

        self.logger.info(f"Started recording scenario '{scenario.name}' ({scenario.scenario_id}) on session {session_id}")
        return scenario

    def record(self, session_id: str, step: Union[StepBase, Dict[str, Any]]) -> bool:
        """
        Append a step to the session's active recording.

        Returns:
            True if the step was recorded, False when the session is not recording
        """
        with self._lock:
            recording = self._recordings.get(session_id)
            if recording is None:
                return False
            parsed = parse_step(step)
            recording.steps.append(parsed)

        self.logger.debug(f"Recorded step {len(recording.steps)}: {parsed.action} on session {session_id}")
        return True

    def stop(self, scenario_name: str, save: bool = True) -> Scenario:
        """
        Stop the recording of a scenario and finalize it.

        Raises:
            ScenarioNotFoundError: If no scenario has that name
            RecordingNotActiveError: If none of the matching scenarios is recording
        """
        with self._lock:
            candidates = self.store.find_all_by_name(scenario_name)
            if not candidates:
                raise ScenarioNotFoundError(f"Scenario '{scenario_name}' not found")

            scenario, recording = self._match_recording(candidates)
            if recording is None:
                raise RecordingNotActiveError(f"No active recording found for scenario '{scenario_name}'")

            scenario.steps = list(recording.steps)
            scenario.refresh_metadata(duration_seconds=round(time.time() - recording.start_time, 3))

            # Recording stays active if the write fails
            if save:
                self.store.save(scenario)
            del self._recordings[recording.session_id]

        self.logger.info(
            f"Stopped recording scenario '{scenario.name}': {scenario.metadata.total_steps} steps, "
            f"saved={save}"
        )
        return scenario

    def cancel(self, session_id: str) -> Optional[Scenario]:
        """Discard a session's recording along with its unsaved scenario."""
        with self._lock:
            recording = self._recordings.pop(session_id, None)
            if recording is None:
                return None
            scenario = self.store.find(recording.scenario_id)
            if scenario is not None and not self.store.is_persisted(scenario):
                self.store.discard(scenario.scenario_id)

        self.logger.warning(f"Cancelled recording on session {session_id} ({len(recording.steps)} steps dropped)")
        return scenario

    def cancel_for_scenario(self, scenario_id: str) -> Optional[str]:
        """
        Drop the recording that feeds a scenario, if any.

        Returns:
            The session id that was recording, or None
        """
        with self._lock:
            for session_id, recording in self._recordings.items():
                if recording.scenario_id == scenario_id:
                    del self._recordings[session_id]
                    break
            else:
                return None

        self.logger.warning(
            f"Cancelled recording on session {session_id}: scenario {scenario_id} was deleted "
            f"({len(recording.steps)} steps dropped)"
        )
        return session_id

    def is_recording(self, session_id: str) -> bool:
        """Check if a session is currently recording."""
        with self._lock:
            return session_id in self._recordings

    def get_recording_status(self, session_id: str) -> Dict[str, Any]:
        """Get current recording status of a session."""
        with self._lock:
            recording = self._recordings.get(session_id)
            if recording is None:
                return {"recording": False, "scenario_id": None, "steps_recorded": 0, "start_time": None}

            return {
                "recording": True,
                "scenario_id": recording.scenario_id,
                "steps_recorded": len(recording.steps),
                "start_time": recording.start_time
            }

    def active_sessions(self) -> List[str]:
        with self._lock:
            return list(self._recordings)

    def _match_recording(self, candidates: List[Scenario]):
        for scenario in candidates:
            recording = self._recordings.get(scenario.origin_session_id or "")
            if recording is not None and recording.scenario_id == scenario.scenario_id:
                return scenario, recording
        return candidates[0], None
