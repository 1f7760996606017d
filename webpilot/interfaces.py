"""Abstract base classes defining the browser session interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional


class BrowserError(Exception):
    """Base exception for browser-related errors."""


class ElementNotFoundError(BrowserError):
    """Raised when a selector does not resolve to an element."""


class SessionClosedError(BrowserError):
    """Raised when an operation targets a session that has been closed."""


class BrowserSession(ABC):
    """
    Interface that every browser driver adapter implements.

    Each method is a thin pass-through into the underlying automation
    driver. Failures are reported by raising ``BrowserError`` subclasses;
    callers normalize them into results.
    """

    def __init__(self, session_id: str, browser_id: str):
        self.session_id = session_id
        self.browser_id = browser_id
        self.created_at = datetime.now()
        self.last_used_at = self.created_at

    def touch(self) -> None:
        """Mark the session as used now."""
        self.last_used_at = datetime.now()

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """Return True while the underlying browser is open."""

    @property
    @abstractmethod
    def current_url(self) -> str:
        """Return the URL of the current page."""

    @property
    @abstractmethod
    def title(self) -> str:
        """Return the title of the current page."""

    @abstractmethod
    def navigate(self, url: str) -> None:
        """
        Load a URL in the current tab.

        Args:
            url: Absolute URL to load
        """

    @abstractmethod
    def click(self, selector: str, by: str = "css") -> None:
        """
        Click the first element matching a selector.

        Args:
            selector: Element selector
            by: Selector strategy (css, xpath, id, name, className, tagName, text)

        Raises:
            ElementNotFoundError: If no element matches
        """

    @abstractmethod
    def type_text(self, selector: str, text: str, by: str = "css") -> None:
        """
        Replace the value of an input element and fire input/change events.

        Args:
            selector: Element selector
            text: Text to enter
            by: Selector strategy

        Raises:
            ElementNotFoundError: If no element matches
        """

    @abstractmethod
    def run_script(self, script: str, args: Optional[List[Any]] = None) -> Any:
        """
        Execute JavaScript in the page.

        Args:
            script: Script body
            args: Positional arguments exposed to the script as ``arguments``

        Returns:
            Whatever the script returns
        """

    @abstractmethod
    def screenshot(self) -> bytes:
        """
        Capture the visible viewport.

        Returns:
            PNG image bytes
        """

    @abstractmethod
    def select_option(self, selector: str, option: Dict[str, Any]) -> Dict[str, Any]:
        """
        Choose an option of a ``<select>`` element.

        Args:
            selector: CSS selector of the select element
            option: ``{"by": "text"|"value"|"index", "text"?, "value"?, "index"?}``

        Returns:
            The chosen option as ``{"text", "value", "index"}``

        Raises:
            ElementNotFoundError: If the select or the option is missing
        """

    @abstractmethod
    def submit_form(self, submit_selector: Optional[str] = None) -> None:
        """
        Click a submit control.

        Args:
            submit_selector: Explicit submit button selector; the first
                ``[type=submit]`` control is used when omitted
        """

    @abstractmethod
    def close(self) -> None:
        """Quit the browser and release its resources."""
