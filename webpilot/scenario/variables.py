"""
Variable substitution for scenario steps.

Placeholders use the ``{{name}}`` syntax. Two variable sources take part in
every resolution: the defaults stored on the scenario and the values passed
by the caller of a replay. By default scenario-defined values are applied
first, so for a name defined in both places the scenario value wins and the
call value only fills placeholders the scenario left open. Setting
``call_variables_override`` reverses the order.
"""

from typing import Any, Dict, Mapping, Optional, Set

from pydantic import BaseModel

from .models import PLACEHOLDER_PATTERN, StepBase


class VariableSubstitutionEngine:
    """Resolves ``{{name}}`` placeholders in strings and steps."""

    def __init__(self, call_variables_override: bool = False):
        self.call_variables_override = call_variables_override

    def resolve(self, template: str, scenario_vars: Optional[Mapping[str, Any]] = None,
                call_vars: Optional[Mapping[str, Any]] = None) -> str:
        """
        Replace every ``{{name}}`` occurrence in a template.

        Unknown placeholders are left in place.
        """
        if not isinstance(template, str):
            return template

        first, second = scenario_vars or {}, call_vars or {}
        if self.call_variables_override:
            first, second = second, first

        result = self._apply(template, first)
        return self._apply(result, second)

    def resolve_step(self, step: StepBase, scenario_vars: Optional[Mapping[str, Any]] = None,
                     call_vars: Optional[Mapping[str, Any]] = None) -> StepBase:
        """
        Build a resolved copy of a step.

        Only the step's templated fields are rewritten; the original step is
        left untouched.
        """
        if not step.TEMPLATED_FIELDS:
            return step

        updates: Dict[str, Any] = {}
        for field_name in step.TEMPLATED_FIELDS:
            updates[field_name] = self._resolve_value(getattr(step, field_name), scenario_vars, call_vars)

        return step.model_copy(update=updates)

    @staticmethod
    def find_placeholders(step: StepBase) -> Set[str]:
        """Names of the placeholders a step refers to."""
        return step.placeholders()

    def _resolve_value(self, value: Any, scenario_vars, call_vars) -> Any:
        if isinstance(value, str):
            return self.resolve(value, scenario_vars, call_vars)
        if isinstance(value, list):
            return [self._resolve_value(item, scenario_vars, call_vars) for item in value]
        if isinstance(value, dict):
            return {key: self._resolve_value(item, scenario_vars, call_vars) for key, item in value.items()}
        if isinstance(value, BaseModel):
            # FormField / SelectOptionSpec: rewrite string attributes only
            updates = {
                name: self.resolve(current, scenario_vars, call_vars)
                for name, current in value
                if isinstance(current, str)
            }
            return value.model_copy(update=updates)
        return value

    @staticmethod
    def _apply(text: str, variables: Mapping[str, Any]) -> str:
        lookup = {str(name): value for name, value in variables.items()}

        def substitute(match) -> str:
            # Same name normalization as StepBase.placeholders()
            name = match.group(1).strip()
            return str(lookup[name]) if name in lookup else match.group(0)

        return PLACEHOLDER_PATTERN.sub(substitute, text)
