"""
Central pytest configuration and fixtures.

This module provides the core fixtures shared across all test modules:
configuration with isolated directories, logging, a mock browser factory and
the wired-up scenario components.
"""

import tempfile
import uuid
from collections.abc import Generator
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from webpilot.artifact_storage import ArtifactStorage
from webpilot.browser_tools import BrowserTools
from webpilot.config_loader import load_config
from webpilot.config_models import SystemConfig
from webpilot.drivers.mock_browser import MockBrowserSession
from webpilot.interfaces import BrowserError
from webpilot.logging_config import get_logger, setup_logging
from webpilot.scenario.dispatcher import ActionDispatcher
from webpilot.scenario.manager import ScenarioManager
from webpilot.scenario.player import ReplayEngine
from webpilot.scenario.recorder import RecordingController
from webpilot.scenario.store import ScenarioStore
from webpilot.scenario.variables import VariableSubstitutionEngine
from webpilot.session_registry import SessionRegistry

# Global variables to track test run state
_test_run_id: Optional[str] = None
_session_config: Optional[SystemConfig] = None


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class MockBrowserFactory:
    """
    Session factory producing ``MockBrowserSession`` objects.

    ``configure`` is applied to every new session so tests can preset pages,
    failing selectors and click targets before a replay opens its browser.
    """

    def __init__(self):
        self.created: List[MockBrowserSession] = []
        self.configure: Optional[Callable[[MockBrowserSession], None]] = None
        self.fail_with: Optional[str] = None

    def __call__(self, browser_id: str, headless: bool) -> MockBrowserSession:
        if self.fail_with:
            raise BrowserError(self.fail_with)

        session = MockBrowserSession(browser_id=browser_id)
        session.headless = headless
        if self.configure:
            self.configure(session)
        self.created.append(session)
        return session

    @property
    def last(self) -> MockBrowserSession:
        return self.created[-1]


# ================================================================================
# Session-scoped fixtures (created once per test session)
# ================================================================================

@pytest.fixture(scope="session")
def config() -> SystemConfig:
    """
    Load and provide system configuration for the entire test session.

    Paths point into a temporary directory so that tests never touch the
    working tree.
    """
    global _session_config

    if _session_config is None:
        temp_dir = Path(tempfile.mkdtemp(prefix="webpilot_test_"))

        _session_config = load_config(temp_dir / "missing.yml")

        _session_config.paths.log_dir = temp_dir / "logs"
        _session_config.paths.scenario_dir = temp_dir / "scenarios"
        _session_config.paths.screenshot_dir = temp_dir / "screenshots"

        _session_config.paths.log_dir.mkdir(parents=True, exist_ok=True)

    return _session_config


@pytest.fixture(scope="session", autouse=True)
def test_session(config: SystemConfig) -> Generator[str, None, None]:
    """Generate the run id and set up logging for the whole session."""
    global _test_run_id

    _test_run_id = str(uuid.uuid4())

    setup_logging(config, _test_run_id)
    logger = get_logger(__name__)
    logger.info(f"Starting test session {_test_run_id}")

    yield _test_run_id

    logger.info(f"Completing test session {_test_run_id}")


# ================================================================================
# Function-scoped fixtures (created for each test function)
# ================================================================================

@pytest.fixture
def test_config(config: SystemConfig, tmp_path: Path) -> SystemConfig:
    """Per-test copy of the configuration with its own scenario and screenshot dirs."""
    cfg = config.model_copy(deep=True)
    cfg.paths.scenario_dir = tmp_path / "scenarios"
    cfg.paths.screenshot_dir = tmp_path / "screenshots"
    cfg.replay.page_change_timeout_ms = 1000
    cfg.replay.poll_interval_seconds = 0.1
    return cfg


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock driving page-change polling."""
    return FakeClock()


@pytest.fixture
def pacing() -> FakeClock:
    """Fake sleep used for the delay between replayed steps."""
    return FakeClock()


@pytest.fixture
def browser_factory() -> MockBrowserFactory:
    return MockBrowserFactory()


@pytest.fixture
def registry(browser_factory: MockBrowserFactory) -> Generator[SessionRegistry, None, None]:
    reg = SessionRegistry(browser_factory)
    yield reg
    reg.close_all()


@pytest.fixture
def browser(registry: SessionRegistry) -> MockBrowserSession:
    """A live mock session registered in the registry."""
    return registry.open_session("test-browser")


@pytest.fixture
def store(test_config: SystemConfig) -> ScenarioStore:
    return ScenarioStore(test_config.paths.scenario_dir)


@pytest.fixture
def recorder(store: ScenarioStore) -> RecordingController:
    return RecordingController(store)


@pytest.fixture
def artifacts(test_config: SystemConfig) -> ArtifactStorage:
    return ArtifactStorage(test_config.paths.screenshot_dir)


@pytest.fixture
def dispatcher(test_config: SystemConfig, clock: FakeClock) -> ActionDispatcher:
    return ActionDispatcher(
        page_change_timeout_ms=test_config.replay.page_change_timeout_ms,
        poll_interval_seconds=test_config.replay.poll_interval_seconds,
        sleep=clock.sleep,
        clock=clock
    )


@pytest.fixture
def engine(registry: SessionRegistry, dispatcher: ActionDispatcher, artifacts: ArtifactStorage,
           test_config: SystemConfig, pacing: FakeClock) -> ReplayEngine:
    return ReplayEngine(
        registry,
        dispatcher,
        VariableSubstitutionEngine(test_config.replay.call_variables_override),
        artifacts,
        step_delay_seconds=test_config.replay.step_delay_seconds,
        sleep=pacing.sleep
    )


@pytest.fixture
def manager(store: ScenarioStore, recorder: RecordingController, registry: SessionRegistry,
            engine: ReplayEngine) -> ScenarioManager:
    return ScenarioManager(store, recorder, registry, engine)


@pytest.fixture
def tools(registry: SessionRegistry, recorder: RecordingController, artifacts: ArtifactStorage,
          dispatcher: ActionDispatcher) -> BrowserTools:
    return BrowserTools(registry, recorder, artifacts, dispatcher)


# ================================================================================
# Pytest hooks
# ================================================================================

def pytest_collection_modifyitems(config: pytest.Config, items) -> None:
    """Add markers based on test path."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
