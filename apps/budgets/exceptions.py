"""
Domain errors raised by the budget workflow.

Services raise these; the ``@operation`` boundary in ``results.py`` turns
them into failure results, so none of them reaches a caller directly.
"""


class BudgetError(Exception):
    code = 'ERROR'
    default_message = 'Operation failed'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class Unauthorized(BudgetError):
    code = 'UNAUTHORIZED'
    default_message = 'Unauthorized'


class InsufficientPermission(BudgetError):
    code = 'INSUFFICIENT_PERMISSION'
    default_message = 'Insufficient permissions'


class AccessDenied(BudgetError):
    code = 'ACCESS_DENIED'
    default_message = 'Access denied'


class NotFound(BudgetError):
    code = 'NOT_FOUND'
    default_message = 'Not found'


class ValidationFailed(BudgetError):
    code = 'VALIDATION_ERROR'
    default_message = 'Validation error'


class InsufficientFunds(BudgetError):
    code = 'INSUFFICIENT_FUNDS'
    default_message = 'Insufficient budget'

    def __init__(self, message=None, available=None):
        super().__init__(message, available=available)
        self.available = available


class AlreadyDecided(BudgetError):
    code = 'ALREADY_DECIDED'
    default_message = 'Approval already processed'


class InvalidState(BudgetError):
    code = 'INVALID_STATE'
    default_message = 'Operation not allowed in the current status'


class DuplicateCode(BudgetError):
    code = 'DUPLICATE_CODE'
    default_message = 'Code already exists'
