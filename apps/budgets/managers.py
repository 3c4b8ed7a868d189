from decimal import Decimal

from django.db import models
from django.db.models import DecimalField, OuterRef, Subquery, Sum, Value
from django.db.models.functions import Coalesce

ZERO = Decimal('0.00')

# Expenses in these states no longer hold any part of a budget
RELEASED_EXPENSE_STATUSES = ('REJECTED', 'CANCELLED')


def _money():
    return DecimalField(max_digits=18, decimal_places=4)


def _total(queryset, field_name):
    return queryset.aggregate(
        total=Coalesce(Sum(field_name), Value(ZERO), output_field=_money())
    )['total']


def _subquery_total(queryset, group_field, field_name):
    """Per-row total as a subquery, so several totals never multiply each other through joins"""
    totals = (
        queryset.filter(**{group_field: OuterRef('pk')})
        .order_by()
        .values(group_field)
        .annotate(total=Sum(field_name))
        .values('total')
    )
    return Coalesce(Subquery(totals, output_field=_money()), Value(ZERO), output_field=_money())


class BudgetAllocationQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status='ACTIVE')

    def total_allocated(self):
        return _total(self, 'allocated_amount')

    def with_ledger(self):
        """Annotate spent_amount from the allocation's consuming expenses"""
        from .models import Expense
        return self.annotate(
            spent_amount=_subquery_total(Expense.objects.consuming(), 'budget_allocation', 'amount')
        )


class ExpenseQuerySet(models.QuerySet):

    def consuming(self):
        """Expenses that still count against their budget"""
        return self.exclude(status__in=RELEASED_EXPENSE_STATUSES)

    def total_amount(self):
        return _total(self, 'amount')


class BudgetQuerySet(models.QuerySet):

    def with_ledger(self):
        """
        Annotate allocated_to_projects (ACTIVE allocations) and spent_amount
        (consuming expenses) on every budget.
        """
        from .models import BudgetAllocation, Expense
        return self.annotate(
            allocated_to_projects=_subquery_total(
                BudgetAllocation.objects.active(), 'budget', 'allocated_amount'
            ),
            spent_amount=_subquery_total(Expense.objects.consuming(), 'budget', 'amount'),
        )


class ApprovalQuerySet(models.QuerySet):

    def pending(self):
        return self.filter(status='PENDING')

    def for_reference(self, approval_type, reference_id):
        return self.filter(type=approval_type, reference_id=reference_id)
