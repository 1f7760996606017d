"""Selenium WebDriver adapter for Chrome."""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

from selenium import webdriver
from selenium.common.exceptions import (
    NoSuchElementException,
    TimeoutException,
    WebDriverException,
)
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.common.by import By
from selenium.webdriver.remote.webelement import WebElement
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import Select, WebDriverWait

from ..config_models import BrowserConfig
from ..interfaces import BrowserError, BrowserSession, ElementNotFoundError, SessionClosedError
from ..logging_config import get_logger

_SET_VALUE_SCRIPT = """
const el = arguments[0];
const text = arguments[1];
el.scrollIntoView({block: 'center', behavior: 'instant'});
el.focus();
el.value = text;
el.dispatchEvent(new Event('input', {bubbles: true}));
el.dispatchEvent(new Event('change', {bubbles: true}));
"""

_CLICK_SCRIPT = """
const el = arguments[0];
el.scrollIntoView({block: 'center', behavior: 'instant'});
el.click();
"""

_DEFAULT_SUBMIT_SELECTOR = 'button[type="submit"], input[type="submit"]'


def resolve_locator(selector: str, by: str = "css") -> tuple:
    """
    Translate a (selector, strategy) pair into a Selenium locator.

    Unknown strategies fall back to CSS.
    """
    strategies = {
        "css": By.CSS_SELECTOR,
        "xpath": By.XPATH,
        "id": By.ID,
        "name": By.NAME,
        "classname": By.CLASS_NAME,
        "tagname": By.TAG_NAME,
    }
    key = (by or "css").lower()
    if key == "text":
        return By.XPATH, f"//*[contains(text(), '{selector}')]"
    return strategies.get(key, By.CSS_SELECTOR), selector


class SeleniumChromeSession(BrowserSession):
    """
    Browser session backed by a local Chrome driven through Selenium.

    Element interaction goes through small injected scripts so that
    framework-controlled inputs (React, Vue) see the same events a user
    would produce.
    """

    def __init__(self, browser_id: str, headless: bool = False, width: int = 1920,
                 height: int = 1080, element_timeout_ms: int = 10000,
                 chromedriver_path: Optional[Path] = None):
        self._logger = get_logger(__name__)
        self.element_timeout = element_timeout_ms / 1000

        options = Options()
        if headless:
            options.add_argument("--headless=new")
        options.add_argument(f"--window-size={width},{height}")
        options.add_argument("--no-first-run")
        options.add_argument("--disable-dev-shm-usage")

        service = Service(executable_path=str(chromedriver_path)) if chromedriver_path else Service()

        try:
            self._driver = webdriver.Chrome(options=options, service=service)
        except WebDriverException as e:
            raise BrowserError(f"Failed to start Chrome for '{browser_id}': {e.msg or e}") from e

        self._closed = False
        super().__init__(self._driver.session_id, browser_id)
        self._logger.info(f"Chrome session {self.session_id} started for browser '{browser_id}'")

    @property
    def is_active(self) -> bool:
        return not self._closed

    @property
    def current_url(self) -> str:
        with self._driver_errors("read current URL"):
            return self._driver.current_url

    @property
    def title(self) -> str:
        with self._driver_errors("read title"):
            return self._driver.title

    def navigate(self, url: str) -> None:
        with self._driver_errors(f"navigate to {url}"):
            self._driver.get(url)

    def click(self, selector: str, by: str = "css") -> None:
        element = self._find(selector, by)
        with self._driver_errors(f"click {selector}"):
            self._driver.execute_script(_CLICK_SCRIPT, element)

    def type_text(self, selector: str, text: str, by: str = "css") -> None:
        element = self._find(selector, by)
        with self._driver_errors(f"type into {selector}"):
            self._driver.execute_script(_SET_VALUE_SCRIPT, element, text)

    def run_script(self, script: str, args: Optional[List[Any]] = None) -> Any:
        with self._driver_errors("execute script"):
            return self._driver.execute_script(script, *(args or []))

    def screenshot(self) -> bytes:
        with self._driver_errors("take screenshot"):
            return self._driver.get_screenshot_as_png()

    def select_option(self, selector: str, option: Dict[str, Any]) -> Dict[str, Any]:
        element = self._find(selector, "css")
        if element.tag_name.lower() != "select":
            raise ElementNotFoundError(f"Select element not found: {selector}")

        with self._driver_errors(f"select option in {selector}"):
            select = Select(element)
            options = select.options
            by = option.get("by", "text")

            index = -1
            if by == "index":
                index = option.get("index") or 0
                if index >= len(options):
                    index = -1
            elif by == "value":
                for i, opt in enumerate(options):
                    if opt.get_attribute("value") == option.get("value"):
                        index = i
                        break
            else:
                # Case-insensitive substring match on the visible label
                target = (option.get("text") or "").lower()
                for i, opt in enumerate(options):
                    if target in (opt.text or "").lower():
                        index = i
                        break

            if index < 0:
                raise ElementNotFoundError(f"Option not found in {selector}: {option}")

            select.select_by_index(index)
            chosen = options[index]
            return {"text": chosen.text, "value": chosen.get_attribute("value"), "index": index}

    def submit_form(self, submit_selector: Optional[str] = None) -> None:
        self.click(submit_selector or _DEFAULT_SUBMIT_SELECTOR, "css")

    def close(self) -> None:
        if self._closed:
            return
        try:
            self._driver.quit()
        except WebDriverException as e:
            self._logger.warning(f"Error while quitting Chrome session {self.session_id}: {e}")
        finally:
            self._closed = True
            self._logger.info(f"Chrome session {self.session_id} closed")

    def _find(self, selector: str, by: str) -> WebElement:
        """Wait for an element to be present and return it."""
        if self._closed:
            raise SessionClosedError(f"Session {self.session_id} is closed")

        locator = resolve_locator(selector, by)
        try:
            return WebDriverWait(self._driver, self.element_timeout).until(
                EC.presence_of_element_located(locator)
            )
        except (TimeoutException, NoSuchElementException) as e:
            raise ElementNotFoundError(f"Element not found: {selector} (by={by})") from e
        except WebDriverException as e:
            raise BrowserError(f"Failed to locate {selector}: {e.msg or e}") from e

    @contextmanager
    def _driver_errors(self, operation: str) -> Iterator[None]:
        """Translate Selenium exceptions into BrowserError."""
        if self._closed:
            raise SessionClosedError(f"Session {self.session_id} is closed")
        try:
            yield
        except NoSuchElementException as e:
            raise ElementNotFoundError(f"Failed to {operation}: {e.msg or e}") from e
        except WebDriverException as e:
            raise BrowserError(f"Failed to {operation}: {e.msg or e}") from e


def chrome_session_factory(config: BrowserConfig) -> Callable[[str, bool], SeleniumChromeSession]:
    """Build a session factory that opens Chrome with the configured window and timeouts."""
    def factory(browser_id: str, headless: bool) -> SeleniumChromeSession:
        return SeleniumChromeSession(
            browser_id,
            headless=headless or config.headless,
            width=config.window_width,
            height=config.window_height,
            element_timeout_ms=config.element_timeout_ms,
            chromedriver_path=config.chromedriver_path
        )
    return factory
