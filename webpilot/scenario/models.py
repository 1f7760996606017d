"""
Data models for scenario recording and replay.

This module defines the core data structures: the closed set of step kinds
a scenario can hold, the scenario document persisted to disk, the transient
recording accumulator, and the results produced by dispatch and replay.
"""

import json
import re
import time
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, ClassVar, Dict, Iterator, List, Literal, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    field_validator,
)

from .errors import ErrorKind, ScenarioError

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")


def now_millis() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ActionKind(str, Enum):
    """Kinds of browser actions a scenario step can perform."""

    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    EXECUTE_SCRIPT = "execute_script"
    SCREENSHOT = "screenshot"
    FILL_FORM = "fill_form"
    SELECT_OPTION = "select_option"
    WAIT_FOR_PAGE_CHANGE = "wait_for_page_change"
    WAIT = "wait"


class StepBase(BaseModel):
    """Fields shared by every step kind."""

    model_config = ConfigDict(frozen=True)

    # Fields whose string content may carry {{variable}} placeholders
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ()

    timestamp: int = Field(default_factory=now_millis, description="Capture time in epoch milliseconds")

    @property
    def kind(self) -> Optional[ActionKind]:
        try:
            return ActionKind(self.action)
        except ValueError:
            return None

    def describe(self) -> str:
        """Short human-readable target of the step, for logs."""
        return ""

    def template_strings(self) -> Iterator[str]:
        """Yield every string that variable substitution may rewrite."""
        for field_name in self.TEMPLATED_FIELDS:
            yield from _iter_strings(getattr(self, field_name))

    def placeholders(self) -> set:
        """Names of all {{variable}} placeholders used by this step."""
        names = set()
        for text in self.template_strings():
            names.update(match.strip() for match in PLACEHOLDER_PATTERN.findall(text))
        return names


def _iter_strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_strings(item)
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, (FormField, SelectOptionSpec)):
        yield from _iter_strings(value.template_values())


class FormField(BaseModel):
    """Single input filled by a fill_form step."""

    model_config = ConfigDict(frozen=True)

    selector: str
    value: str = ""

    def template_values(self) -> List[str]:
        return [self.selector, self.value]


class SelectOptionSpec(BaseModel):
    """How a select_option step picks its option."""

    model_config = ConfigDict(frozen=True)

    by: Literal["text", "value", "index"] = "text"
    text: Optional[str] = None
    value: Optional[str] = None
    index: Optional[int] = None

    def template_values(self) -> List[str]:
        return [v for v in (self.text, self.value) if v is not None]


class NavigateStep(StepBase):
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ("url",)

    action: Literal["navigate"] = "navigate"
    url: str

    def describe(self) -> str:
        return self.url


class ClickStep(StepBase):
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ("selector",)

    action: Literal["click"] = "click"
    selector: str
    by: str = "css"

    def describe(self) -> str:
        return self.selector


class TypeStep(StepBase):
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ("selector", "text")

    action: Literal["type"] = "type"
    selector: str
    # Older documents stored the typed text under "value"
    text: str = Field(validation_alias=AliasChoices("text", "value"))
    by: str = "css"

    def describe(self) -> str:
        return self.selector


class ExecuteScriptStep(StepBase):
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ("script", "args")

    action: Literal["execute_script"] = "execute_script"
    script: str
    args: List[Any] = Field(default_factory=list)

    def describe(self) -> str:
        return self.script[:60]


class ScreenshotStep(StepBase):
    action: Literal["screenshot"] = "screenshot"
    filename: Optional[str] = None


class FillFormStep(StepBase):
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ("fields",)

    action: Literal["fill_form"] = "fill_form"
    fields: Dict[str, FormField]
    submit_after: bool = False
    submit_selector: Optional[str] = None

    def describe(self) -> str:
        return ", ".join(self.fields)


class SelectOptionStep(StepBase):
    TEMPLATED_FIELDS: ClassVar[Tuple[str, ...]] = ("selector", "option")

    action: Literal["select_option"] = "select_option"
    selector: str
    option: SelectOptionSpec
    timeout: Optional[int] = None

    def describe(self) -> str:
        return self.selector


class WaitForPageChangeStep(StepBase):
    action: Literal["wait_for_page_change"] = "wait_for_page_change"
    pattern: Optional[str] = None
    timeout: Optional[int] = Field(default=None, description="Timeout in milliseconds")
    from_url: Optional[str] = None

    def describe(self) -> str:
        return self.pattern or "<any change>"


class WaitStep(StepBase):
    action: Literal["wait"] = "wait"
    duration_ms: Optional[int] = None


class UnknownStep(StepBase):
    """Step whose action tag this version does not recognize; kept verbatim."""

    model_config = ConfigDict(frozen=True, extra="allow")

    action: str


_KNOWN_ACTIONS = {kind.value for kind in ActionKind}


def _step_tag(value: Any) -> str:
    action = value.get("action") if isinstance(value, dict) else getattr(value, "action", None)
    return action if action in _KNOWN_ACTIONS else "unknown"


ScenarioStep = Annotated[
    Union[
        Annotated[NavigateStep, Tag("navigate")],
        Annotated[ClickStep, Tag("click")],
        Annotated[TypeStep, Tag("type")],
        Annotated[ExecuteScriptStep, Tag("execute_script")],
        Annotated[ScreenshotStep, Tag("screenshot")],
        Annotated[FillFormStep, Tag("fill_form")],
        Annotated[SelectOptionStep, Tag("select_option")],
        Annotated[WaitForPageChangeStep, Tag("wait_for_page_change")],
        Annotated[WaitStep, Tag("wait")],
        Annotated[UnknownStep, Tag("unknown")],
    ],
    Discriminator(_step_tag),
]

_step_adapter = TypeAdapter(ScenarioStep)


def parse_step(data: Union[Dict[str, Any], StepBase]) -> StepBase:
    """Build a typed step from a mapping (or pass a step through)."""
    if isinstance(data, StepBase):
        return data
    return _step_adapter.validate_python(data)


class ScenarioMetadata(BaseModel):
    """Values derived from a scenario's steps and recording timing."""

    total_steps: int = 0
    duration_seconds: float = 0.0
    created_at: datetime = Field(default_factory=utc_now)
    last_modified: datetime = Field(default_factory=utc_now)
    last_used_at: Optional[datetime] = None
    variables_used: List[str] = Field(default_factory=list)


class Scenario(BaseModel):
    """Named, persisted, ordered list of browser actions plus default variables."""

    scenario_id: str = Field(..., description="Unique scenario identifier")
    name: str = Field(..., description="Human-readable scenario name")
    description: Optional[str] = Field(default=None, description="Scenario description")
    origin_session_id: Optional[str] = Field(default=None, description="Session the scenario was recorded in")
    steps: List[ScenarioStep] = Field(default_factory=list, description="Ordered steps")
    variables: Dict[str, str] = Field(default_factory=dict, description="Default variable values")
    metadata: ScenarioMetadata = Field(default_factory=ScenarioMetadata)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or len(v.strip()) == 0:
            raise ValueError("Scenario name cannot be empty")
        return v.strip()

    @field_validator("variables", mode="before")
    @classmethod
    def stringify_variables(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v

    def refresh_metadata(self, duration_seconds: Optional[float] = None) -> None:
        """Recompute the step-derived metadata after a mutation."""
        self.metadata.total_steps = len(self.steps)
        used = set()
        for step in self.steps:
            used.update(step.placeholders())
        self.metadata.variables_used = sorted(used)
        if duration_seconds is not None:
            self.metadata.duration_seconds = duration_seconds
        self.metadata.last_modified = utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert scenario to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Scenario":
        """Create scenario from dictionary."""
        return cls.model_validate(data)

    def save_to_file(self, file_path: Path) -> None:
        """Save scenario to JSON file."""
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_from_file(cls, file_path: Path) -> "Scenario":
        """Load scenario from JSON file."""
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls.from_dict(data)

    def get_summary(self) -> Dict[str, Any]:
        """Get scenario summary information."""
        return {
            "scenario_id": self.scenario_id,
            "name": self.name,
            "description": self.description,
            "total_steps": self.metadata.total_steps,
            "duration": self.metadata.duration_seconds,
            "created_at": self.metadata.created_at.isoformat(),
            "last_modified": self.metadata.last_modified.isoformat(),
            "last_used": self.metadata.last_used_at.isoformat() if self.metadata.last_used_at else None,
            "variables": sorted(self.variables),
        }


class ActiveRecording(BaseModel):
    """In-progress capture of steps for one session. Never persisted."""

    session_id: str
    scenario_id: str
    steps: List[ScenarioStep] = Field(default_factory=list)
    start_time: float = Field(default_factory=time.time)


class ActionResult(BaseModel):
    """Normalized outcome of one dispatched browser action."""

    success: bool
    message: Optional[str] = None
    value: Any = None

    @classmethod
    def ok(cls, message: Optional[str] = None, value: Any = None) -> "ActionResult":
        return cls(success=True, message=message, value=value)

    @classmethod
    def fail(cls, message: str) -> "ActionResult":
        return cls(success=False, message=message)


class StepOutcome(BaseModel):
    step: int
    action: str
    success: bool
    message: Optional[str] = None


class StepError(BaseModel):
    step: int
    action: str
    error: str


class ReplayReport(BaseModel):
    """Result of one replay invocation."""

    scenario_id: str
    scenario_name: str
    total_steps: int
    executed_steps: int = 0
    failed_steps: int = 0
    duration_seconds: float = 0.0
    final_url: str = ""
    errors: List[StepError] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
    step_results: List[StepOutcome] = Field(default_factory=list)
    success: bool = False
    aborted: bool = False
    message: str = ""
    session_id: Optional[str] = None
    ephemeral_session: bool = False
    # Set when the replay itself broke (as opposed to a failing step)
    error: Optional[str] = None

    def add_step_result(self, step_number: int, action: str, result: ActionResult) -> None:
        """Add the outcome of an attempted step."""
        self.executed_steps += 1
        self.step_results.append(StepOutcome(
            step=step_number, action=action, success=result.success, message=result.message
        ))
        if not result.success:
            self.failed_steps += 1
            self.errors.append(StepError(
                step=step_number, action=action, error=result.message or "Step failed"
            ))

    def finish(self, started: float, message: Optional[str] = None) -> None:
        """Mark replay as finished."""
        self.duration_seconds = round(time.time() - started, 3)
        self.success = self.failed_steps == 0 and not self.aborted
        if message:
            self.message = message
        elif self.success:
            self.message = "Scenario replayed successfully"
        else:
            self.message = f"Scenario replayed with {self.failed_steps} errors"

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class OperationResult(BaseModel):
    """Success/failure result returned by every public operation."""

    success: bool
    message: str
    error_kind: Optional[ErrorKind] = None
    data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **data: Any) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, kind: ErrorKind, **data: Any) -> "OperationResult":
        return cls(success=False, message=message, error_kind=kind, data=data)

    @classmethod
    def from_error(cls, error: ScenarioError, **data: Any) -> "OperationResult":
        return cls.fail(str(error), error.kind, **data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
