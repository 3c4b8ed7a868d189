"""
Budget-consumption guard.

Callers run these inside ``transaction.atomic()`` after ``lock_budget`` so
that the read of competing amounts and the subsequent write are serialized
per budget.
"""
import logging

from .exceptions import InsufficientFunds
from .models import Budget, BudgetAllocation, Expense
from .utils import format_amount, get_or_not_found

logger = logging.getLogger(__name__)


def lock_budget(budget_id):
    return get_or_not_found(Budget.objects.select_for_update(), "Budget not found", pk=budget_id)


def _exclude(queryset, instance):
    if instance is not None and instance.pk is not None:
        queryset = queryset.exclude(pk=instance.pk)
    return queryset


def ensure_allocation_capacity(budget, amount, exclude=None):
    """Room for ``amount`` next to the budget's other ACTIVE allocations"""
    competing = _exclude(BudgetAllocation.objects.filter(budget=budget).active(), exclude)
    available = budget.allocated_amount - competing.total_allocated()
    if amount > available:
        logger.info("Allocation of %s refused on budget %s, available %s", amount, budget.code, available)
        raise InsufficientFunds(
            f"Insufficient budget. Available: {format_amount(available)}",
            available=available,
        )
    return available


def ensure_expense_capacity(budget, amount, allocation=None, exclude=None):
    """
    Room for ``amount`` next to the budget's other consuming expenses and,
    when the expense draws on an allocation, within that allocation too.
    """
    competing = _exclude(Expense.objects.filter(budget=budget).consuming(), exclude)
    available = budget.allocated_amount - competing.total_amount()
    if amount > available:
        logger.info("Expense of %s refused on budget %s, available %s", amount, budget.code, available)
        raise InsufficientFunds(
            f"Insufficient budget. Available: {format_amount(available)}",
            available=available,
        )

    if allocation is not None:
        spent = _exclude(allocation.expenses.consuming(), exclude).total_amount()
        allocation_available = allocation.allocated_amount - spent
        if amount > allocation_available:
            raise InsufficientFunds(
                f"Insufficient allocation balance. Available: {format_amount(allocation_available)}",
                available=allocation_available,
            )
    return available
