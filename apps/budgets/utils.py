import time
from datetime import date

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from .exceptions import NotFound

# Buddhist Era offset
BE_OFFSET = 543
MIN_FISCAL_YEAR = 2543
MAX_FISCAL_YEAR = 2643

_DIGITS = '0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ'


def to_base36(number):
    if number == 0:
        return '0'
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_DIGITS[rem])
    return ''.join(reversed(digits))


def generate_code(prefix, model, fiscal_year=None):
    """
    Build a code like BUD-2568-LZ3K9Q1A from the current millisecond timestamp.
    The timestamp is bumped until the code is free in ``model``.
    """
    stamp = int(time.time() * 1000)
    head = f"{prefix}-{fiscal_year}" if fiscal_year is not None else prefix
    while True:
        code = f"{head}-{to_base36(stamp)}"
        if not model.objects.filter(code=code).exists():
            return code
        stamp += 1


def fiscal_year_dates(fiscal_year):
    """Oct 1 of the previous Gregorian year through Sep 30"""
    gregorian = fiscal_year - BE_OFFSET
    return date(gregorian - 1, 10, 1), date(gregorian, 9, 30)


def fiscal_year_for(day):
    year = day.year + BE_OFFSET
    return year + 1 if day.month >= 10 else year


def current_fiscal_year():
    return fiscal_year_for(timezone.localdate())


def format_amount(amount):
    return f"{amount:,.2f} {settings.BUDGET_CURRENCY}"


def get_or_not_found(queryset, message, **lookup):
    """``queryset.get(**lookup)`` that treats a malformed id like a missing row"""
    try:
        return queryset.get(**lookup)
    except (ObjectDoesNotExist, ValueError, DjangoValidationError):
        raise NotFound(message)
