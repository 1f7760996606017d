"""
Browser tool surface.

Each tool builds the scenario step describing the action, records it when
the session is recording, then executes it through the ``ActionDispatcher``.
Recording and replay therefore share one representation of every action.
"""

from typing import Any, Dict, List, Optional

from .artifact_storage import ArtifactStorage
from .interfaces import BrowserSession
from .logging_config import get_logger
from .operation_utils import safe_operation
from .scenario.dispatcher import ActionDispatcher
from .scenario.errors import ErrorKind, SessionNotFoundError
from .scenario.models import (
    ClickStep,
    ExecuteScriptStep,
    FillFormStep,
    NavigateStep,
    OperationResult,
    ScreenshotStep,
    SelectOptionStep,
    StepBase,
    TypeStep,
    WaitForPageChangeStep,
)
from .scenario.recorder import RecordingController
from .session_registry import SessionRegistry


class BrowserTools:
    """Mutating browser operations exposed to tool-calling clients."""

    def __init__(self, registry: SessionRegistry, recorder: RecordingController,
                 artifacts: ArtifactStorage, dispatcher: Optional[ActionDispatcher] = None):
        self.registry = registry
        self.recorder = recorder
        self.artifacts = artifacts
        self.dispatcher = dispatcher or ActionDispatcher()
        self.logger = get_logger(__name__)

    # Session lifecycle

    @safe_operation
    def open_browser(self, browser_id: str = "default", headless: bool = False,
                     url: Optional[str] = None) -> OperationResult:
        """Open a new browser session, optionally loading a first page."""
        session = self.registry.open_session(browser_id, headless=headless)
        if url:
            session.navigate(url)

        return OperationResult.ok(
            f"Browser '{browser_id}' opened",
            session_id=session.session_id,
            browser_id=browser_id,
            url=session.current_url
        )

    @safe_operation
    def close_browser(self, session_id: str) -> OperationResult:
        """Close a session; an unsaved recording on it is discarded."""
        self._require_session(session_id)
        if self.recorder.is_recording(session_id):
            self.recorder.cancel(session_id)

        self.registry.close_session(session_id)
        return OperationResult.ok(f"Session {session_id} closed", session_id=session_id)

    # Actions

    @safe_operation
    def navigate_to(self, session_id: str, url: str) -> OperationResult:
        return self._perform(session_id, NavigateStep(url=url))

    @safe_operation
    def click_element(self, session_id: str, selector: str, by: str = "css") -> OperationResult:
        return self._perform(session_id, ClickStep(selector=selector, by=by))

    @safe_operation
    def type_text(self, session_id: str, selector: str, text: str, by: str = "css") -> OperationResult:
        return self._perform(session_id, TypeStep(selector=selector, text=text, by=by))

    @safe_operation
    def execute_script(self, session_id: str, script: str,
                       args: Optional[List[Any]] = None) -> OperationResult:
        return self._perform(session_id, ExecuteScriptStep(script=script, args=args or []))

    @safe_operation
    def take_screenshot(self, session_id: str, filename: Optional[str] = None) -> OperationResult:
        """Capture the viewport and store it under the screenshot directory."""
        session = self._require_session(session_id)
        step = ScreenshotStep(filename=filename)
        self.recorder.record(session_id, step)

        result = self.dispatcher.dispatch(session, step)
        if not result.success:
            return OperationResult.fail(result.message or "Screenshot failed", ErrorKind.STEP_FAILURE)

        path = self.artifacts.save_screenshot(result.value, filename)
        return OperationResult.ok(result.message, path=str(path), size=len(result.value))

    @safe_operation
    def fill_form(self, session_id: str, fields: Dict[str, Dict[str, str]],
                  submit_after: bool = False, submit_selector: Optional[str] = None) -> OperationResult:
        """
        Fill several inputs in one call.

        Args:
            session_id: Target session
            fields: ``{name: {"selector": ..., "value": ...}}``
            submit_after: Click the submit control afterwards
            submit_selector: Explicit submit control selector
        """
        step = FillFormStep(fields=fields, submit_after=submit_after, submit_selector=submit_selector)
        return self._perform(session_id, step)

    @safe_operation
    def select_option(self, session_id: str, selector: str, option: Dict[str, Any],
                      timeout: Optional[int] = None) -> OperationResult:
        return self._perform(session_id, SelectOptionStep(selector=selector, option=option, timeout=timeout))

    @safe_operation
    def wait_for_page_change(self, session_id: str, pattern: Optional[str] = None,
                             timeout: Optional[int] = None) -> OperationResult:
        """Wait until the URL matches ``pattern`` or, without one, until it changes."""
        return self._perform(session_id, WaitForPageChangeStep(pattern=pattern, timeout=timeout))

    def _perform(self, session_id: str, step: StepBase) -> OperationResult:
        session = self._require_session(session_id)
        self.recorder.record(session_id, step)

        result = self.dispatcher.dispatch(session, step)
        if not result.success:
            data = result.value if isinstance(result.value, dict) else {}
            return OperationResult.fail(result.message or f"{step.action} failed", ErrorKind.STEP_FAILURE, **data)

        if isinstance(result.value, dict):
            return OperationResult.ok(result.message, **result.value)
        if result.value is not None:
            return OperationResult.ok(result.message, result=result.value)
        return OperationResult.ok(result.message)

    def _require_session(self, session_id: str) -> BrowserSession:
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session
