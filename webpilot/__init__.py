"""Browser automation with scenario recording and replay."""

# Version information
__version__ = "0.1.0"
__author__ = "webpilot team"

# Expose commonly used classes
from .browser_tools import BrowserTools as BrowserTools
from .config_loader import load_config as load_config
from .scenario.manager import ScenarioManager as ScenarioManager

__all__ = [
    "BrowserTools",
    "ScenarioManager",
    "load_config",
]
