"""Configuration models for the browser automation service."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class PathsConfig(BaseModel):
    """Configuration for file system paths."""

    scenario_dir: Path = Field(default=Path("scenarios"), description="Directory for saved scenarios")
    screenshot_dir: Path = Field(default=Path("screenshots"), description="Directory for captured screenshots")
    log_dir: Path = Field(default=Path("logs"), description="Directory for log files")

    @field_validator("scenario_dir", "screenshot_dir", "log_dir", mode="before")
    @classmethod
    def ensure_path_exists(cls, v: str | Path) -> Path:
        """Ensure directories exist."""
        if isinstance(v, str):
            v = Path(v)
        v.mkdir(parents=True, exist_ok=True)
        return v


class LoggingConfig(BaseModel):
    """Configuration for the logging framework."""

    level: str = Field(default="INFO", description="Log level")
    format_console: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(run_id)s - %(message)s",
        description="Console log format"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Level must be one of {valid_levels}")
        return v.upper()


class BrowserConfig(BaseModel):
    """Configuration for browser sessions opened by the service."""

    headless: bool = Field(default=False, description="Run browsers without a window")
    window_width: int = Field(default=1920, description="Browser window width in pixels")
    window_height: int = Field(default=1080, description="Browser window height in pixels")
    element_timeout_ms: int = Field(default=10000, description="Element lookup timeout in milliseconds")
    chromedriver_path: Optional[Path] = Field(default=None, description="Explicit chromedriver binary")

    @field_validator("window_width", "window_height", "element_timeout_ms")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Browser dimensions and timeouts must be positive")
        return v


class ReplayConfig(BaseModel):
    """Configuration for scenario replay."""

    step_delay_seconds: float = Field(default=0.5, description="Delay between steps outside fast mode")
    page_change_timeout_ms: int = Field(default=10000, description="Default wait_for_page_change timeout")
    poll_interval_seconds: float = Field(default=0.25, description="URL polling interval for page changes")
    call_variables_override: bool = Field(
        default=False,
        description="Let call-time variables win over scenario variables with the same name"
    )

    @field_validator("step_delay_seconds", "poll_interval_seconds")
    @classmethod
    def must_not_be_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Replay delays cannot be negative")
        return v

    @field_validator("page_change_timeout_ms")
    @classmethod
    def timeout_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Page change timeout must be positive")
        return v


class SystemConfig(BaseModel):
    """Main system configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    replay: ReplayConfig = Field(default_factory=ReplayConfig)
