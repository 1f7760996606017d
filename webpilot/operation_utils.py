"""Helpers shared by the public operation surfaces."""

from functools import wraps
from typing import Any, Callable

from pydantic import ValidationError

from .interfaces import BrowserError
from .logging_config import get_logger
from .scenario.errors import ErrorKind, ScenarioError
from .scenario.models import OperationResult


def safe_operation(func: Callable[..., OperationResult]) -> Callable[..., OperationResult]:
    """
    Decorator turning exceptions raised by an operation into failed results.

    Scenario errors keep their kind, malformed input is reported as a
    validation failure, browser errors as a step failure and anything else
    as unexpected (logged with traceback).
    """
    @wraps(func)
    def wrapper(*args, **kwargs) -> OperationResult:
        logger = get_logger(f"{func.__module__}.{func.__name__}")
        try:
            return func(*args, **kwargs)
        except ScenarioError as e:
            logger.warning(f"{func.__name__} failed: {e}")
            return OperationResult.from_error(e)
        except ValidationError as e:
            logger.warning(f"{func.__name__} rejected invalid input: {e}")
            return OperationResult.fail(f"Invalid input: {e}", ErrorKind.VALIDATION)
        except BrowserError as e:
            logger.warning(f"{func.__name__} browser error: {e}")
            return OperationResult.fail(str(e), ErrorKind.STEP_FAILURE)
        except Exception as e:
            logger.exception(f"Unexpected error in {func.__name__}")
            return OperationResult.fail(f"Unexpected error: {e}", ErrorKind.UNEXPECTED)

    return wrapper
