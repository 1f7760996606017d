"""Maps scenario steps onto browser session operations."""

import re
import time
from typing import Callable, Dict, List, Optional

from webpilot.interfaces import BrowserError, BrowserSession
from webpilot.logging_config import get_logger, log_browser_action
from .models import (
    ActionKind,
    ActionResult,
    ClickStep,
    ExecuteScriptStep,
    FillFormStep,
    NavigateStep,
    ScreenshotStep,
    SelectOptionStep,
    StepBase,
    TypeStep,
    WaitForPageChangeStep,
    WaitStep,
)


class ActionDispatcher:
    """
    Executes one step against a browser session.

    Each action kind maps to exactly one handler. Handlers call the session
    and return an ``ActionResult``; browser exceptions are turned into failed
    results here, so ``dispatch`` never raises for a failing action.
    """

    def __init__(self, page_change_timeout_ms: int = 10000, poll_interval_seconds: float = 0.25,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.page_change_timeout_ms = page_change_timeout_ms
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self._clock = clock
        self.logger = get_logger(__name__)

        self._handlers: Dict[ActionKind, Callable[[BrowserSession, StepBase], ActionResult]] = {
            ActionKind.NAVIGATE: self._handle_navigate,
            ActionKind.CLICK: self._handle_click,
            ActionKind.TYPE: self._handle_type,
            ActionKind.EXECUTE_SCRIPT: self._handle_execute_script,
            ActionKind.SCREENSHOT: self._handle_screenshot,
            ActionKind.FILL_FORM: self._handle_fill_form,
            ActionKind.SELECT_OPTION: self._handle_select_option,
            ActionKind.WAIT_FOR_PAGE_CHANGE: self._handle_wait_for_page_change,
            ActionKind.WAIT: self._handle_wait,
        }

        missing = set(ActionKind) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No dispatch handler for actions: {sorted(k.value for k in missing)}")

    def dispatch(self, session: BrowserSession, step: StepBase) -> ActionResult:
        """
        Execute a (variable-resolved) step.

        Args:
            session: Target browser session
            step: Step to execute

        Returns:
            Normalized action result
        """
        kind = step.kind
        handler = self._handlers.get(kind) if kind else None
        if handler is None:
            self.logger.warning(f"Unknown scenario step action: {step.action}")
            return ActionResult.fail(f"Unknown action: {step.action}")

        try:
            result = handler(session, step)
        except BrowserError as e:
            result = ActionResult.fail(str(e))
        except Exception as e:
            # Driver adapters may leak exceptions of their own library
            self.logger.exception(f"Unexpected error during {kind.value}")
            result = ActionResult.fail(f"{type(e).__name__}: {e}")

        session.touch()
        log_browser_action(self.logger, session.session_id, kind.value, step.describe(),
                           result.success, result.message)
        return result

    # Handlers

    def _handle_navigate(self, session: BrowserSession, step: NavigateStep) -> ActionResult:
        session.navigate(step.url)
        return ActionResult.ok("Navigated successfully", {"url": step.url})

    def _handle_click(self, session: BrowserSession, step: ClickStep) -> ActionResult:
        session.click(step.selector, step.by)
        return ActionResult.ok("Element clicked")

    def _handle_type(self, session: BrowserSession, step: TypeStep) -> ActionResult:
        session.type_text(step.selector, step.text, step.by)
        return ActionResult.ok("Text typed")

    def _handle_execute_script(self, session: BrowserSession, step: ExecuteScriptStep) -> ActionResult:
        value = session.run_script(step.script, list(step.args))
        return ActionResult.ok("Script executed successfully", value)

    def _handle_screenshot(self, session: BrowserSession, step: ScreenshotStep) -> ActionResult:
        image = session.screenshot()
        return ActionResult.ok("Screenshot captured", image)

    def _handle_fill_form(self, session: BrowserSession, step: FillFormStep) -> ActionResult:
        filled = 0
        errors: List[Dict[str, str]] = []

        for name, field in step.fields.items():
            try:
                session.type_text(field.selector, field.value, "css")
                filled += 1
            except BrowserError as e:
                errors.append({"field": name, "selector": field.selector, "error": str(e)})

        if step.submit_after:
            try:
                session.submit_form(step.submit_selector)
            except BrowserError as e:
                errors.append({"field": "_submit", "selector": step.submit_selector or "auto", "error": str(e)})

        message = f"Form filled: {filled} fields"
        if errors:
            message += f", {len(errors)} errors"
        return ActionResult(success=not errors, message=message,
                            value={"filled_fields": filled, "errors": errors})

    def _handle_select_option(self, session: BrowserSession, step: SelectOptionStep) -> ActionResult:
        chosen = session.select_option(step.selector, step.option.model_dump(exclude_none=True))
        return ActionResult.ok("Option selected", {"selected_option": chosen})

    def _handle_wait_for_page_change(self, session: BrowserSession,
                                     step: WaitForPageChangeStep) -> ActionResult:
        timeout_ms = step.timeout if step.timeout is not None else self.page_change_timeout_ms
        try:
            pattern: Optional[re.Pattern] = re.compile(step.pattern) if step.pattern else None
        except re.error as e:
            return ActionResult.fail(f"Invalid URL pattern '{step.pattern}': {e}")

        old_url = step.from_url or session.current_url
        deadline = self._clock() + timeout_ms / 1000

        while True:
            new_url = session.current_url
            changed = bool(pattern.search(new_url)) if pattern else new_url != old_url
            if changed:
                return ActionResult.ok("Page changed", {
                    "old_url": old_url,
                    "new_url": new_url,
                    "title": session.title
                })
            if self._clock() >= deadline:
                return ActionResult.fail(
                    f"Timeout waiting for page change after {timeout_ms}ms (still at {new_url})"
                )
            self._sleep(self.poll_interval_seconds)

    def _handle_wait(self, session: BrowserSession, step: WaitStep) -> ActionResult:
        # Placeholder kind: recorded waits carry no condition to replay
        self.logger.info("Wait step has no replayable condition, skipping")
        return ActionResult.ok("Wait action skipped")
