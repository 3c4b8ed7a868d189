import functools
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from .exceptions import BudgetError

logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Outcome of a public operation: success with data, or failure with a message"""
    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def from_error(cls, exc):
        details = {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in exc.details.items()
            if value is not None
        }
        return cls(success=False, error=exc.message, code=exc.code, details=details)

    def as_dict(self):
        if self.success:
            return {'success': True, 'data': self.data}
        payload = {'success': False, 'error': self.error, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


def operation(failure_message):
    """
    Wrap a service function so it always returns an ActionResult.

    Domain errors keep their own message. Anything else is logged with its
    traceback and reported as ``failure_message``.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return ActionResult.ok(func(*args, **kwargs))
            except BudgetError as exc:
                logger.info("%s rejected: %s (%s)", func.__name__, exc.message, exc.code)
                return ActionResult.from_error(exc)
            except Exception:
                logger.exception("%s failed", func.__name__)
                return ActionResult(success=False, error=failure_message, code=BudgetError.code)
        return wrapper
    return decorator
