"""In-memory browser session for testing without a real browser."""

import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..interfaces import BrowserError, BrowserSession, ElementNotFoundError, SessionClosedError
from ..logging_config import get_logger

# Smallest valid PNG: signature plus an empty IEND chunk
MOCK_PNG = b"\x89PNG\r\n\x1a\n\x00\x00\x00\x00IEND\xaeB`\x82"

_session_counter = itertools.count(1)


class MockBrowserSession(BrowserSession):
    """
    Mock browser that keeps page state in memory.

    Every call is appended to ``calls`` as ``(operation, *arguments)`` so
    tests can assert on the exact order of dispatched actions. Failures are
    simulated through ``missing_selectors``, ``unreachable_urls`` and
    ``failing_scripts``.
    """

    def __init__(self, browser_id: str = "mock", session_id: Optional[str] = None,
                 start_url: str = "about:blank"):
        super().__init__(session_id or f"mock-session-{next(_session_counter)}", browser_id)
        self._logger = get_logger(__name__)
        self._url = start_url
        self._closed = False

        self.calls: List[Tuple[Any, ...]] = []
        self.values: Dict[str, str] = {}
        self.titles: Dict[str, str] = {}
        self.close_count = 0

        self.missing_selectors: set = set()
        self.unreachable_urls: set = set()
        self.failing_scripts: set = set()
        # selector -> URL loaded after the element is clicked
        self.click_targets: Dict[str, str] = {}
        # selector -> [(text, value), ...]
        self.select_options: Dict[str, List[Tuple[str, str]]] = {}
        self.script_handler: Optional[Callable[[str, List[Any]], Any]] = None

    @property
    def is_active(self) -> bool:
        return not self._closed

    @property
    def current_url(self) -> str:
        self._ensure_open()
        return self._url

    @property
    def title(self) -> str:
        self._ensure_open()
        return self.titles.get(self._url, "")

    def navigate(self, url: str) -> None:
        self._ensure_open()
        self.calls.append(("navigate", url))
        if url in self.unreachable_urls:
            raise BrowserError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self._url = url

    def click(self, selector: str, by: str = "css") -> None:
        self._ensure_open()
        self.calls.append(("click", selector, by))
        self._check_selector(selector)
        if selector in self.click_targets:
            self._url = self.click_targets[selector]

    def type_text(self, selector: str, text: str, by: str = "css") -> None:
        self._ensure_open()
        self.calls.append(("type", selector, text, by))
        self._check_selector(selector)
        self.values[selector] = text

    def run_script(self, script: str, args: Optional[List[Any]] = None) -> Any:
        self._ensure_open()
        args = list(args or [])
        self.calls.append(("execute_script", script, args))
        if script in self.failing_scripts:
            raise BrowserError(f"javascript error: {script}")
        if self.script_handler:
            return self.script_handler(script, args)
        return None

    def screenshot(self) -> bytes:
        self._ensure_open()
        self.calls.append(("screenshot",))
        return MOCK_PNG

    def select_option(self, selector: str, option: Dict[str, Any]) -> Dict[str, Any]:
        self._ensure_open()
        self.calls.append(("select_option", selector, dict(option)))
        self._check_selector(selector)

        options = self.select_options.get(selector, [])
        by = option.get("by", "text")
        for index, (text, value) in enumerate(options):
            if by == "index" and index == (option.get("index") or 0):
                break
            if by == "value" and value == option.get("value"):
                break
            if by == "text" and (option.get("text") or "").lower() in text.lower():
                break
        else:
            raise ElementNotFoundError(f"Option not found in {selector}: {option}")

        self.values[selector] = value
        return {"text": text, "value": value, "index": index}

    def submit_form(self, submit_selector: Optional[str] = None) -> None:
        self._ensure_open()
        selector = submit_selector or 'button[type="submit"]'
        self.calls.append(("submit", selector))
        self._check_selector(selector)
        if selector in self.click_targets:
            self._url = self.click_targets[selector]

    def close(self) -> None:
        self.close_count += 1
        self._closed = True
        self._logger.debug(f"Mock session {self.session_id} closed")

    def set_url(self, url: str) -> None:
        """Move the mock to another page without recording a call."""
        self._url = url

    def dispatched_actions(self) -> List[str]:
        """Return the operation names of all calls in order."""
        return [call[0] for call in self.calls]

    def _check_selector(self, selector: str) -> None:
        if selector in self.missing_selectors:
            raise ElementNotFoundError(f"Element not found: {selector}")

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError(f"Session {self.session_id} is closed")
