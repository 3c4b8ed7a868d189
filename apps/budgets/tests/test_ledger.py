from decimal import Decimal

from django.test import TestCase

from apps.budgets.exceptions import InsufficientFunds
from apps.budgets.ledger import ensure_allocation_capacity, ensure_expense_capacity
from apps.budgets.models import Budget, BudgetAllocation, Expense
from apps.budgets.services import create_budget_allocation, create_expense, update_budget_allocation
from .fixtures import BudgetFixtures


class AllocationGuardTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.budget = self.make_budget('5000000')

    def test_allocations_fill_the_budget_exactly(self):
        first = create_budget_allocation(self.staff, self.allocation_data(self.budget, '2000000'))
        self.assertTrue(first.success, first.error)

        refused = create_budget_allocation(self.staff, self.allocation_data(self.budget, '3500000'))
        self.assertFalse(refused.success)
        self.assertEqual(refused.code, 'INSUFFICIENT_FUNDS')
        self.assertIn('3,000,000.00', refused.error)
        self.assertEqual(Decimal(refused.details['available']), Decimal('3000000'))

        exact = create_budget_allocation(self.staff, self.allocation_data(self.budget, '3000000'))
        self.assertTrue(exact.success, exact.error)

        one_more = create_budget_allocation(self.staff, self.allocation_data(self.budget, '0.01'))
        self.assertEqual(one_more.code, 'INSUFFICIENT_FUNDS')
        self.assertEqual(self.budget.allocations.count(), 2)

    def test_inactive_allocations_do_not_hold_capacity(self):
        self.make_allocation(self.budget, '5000000', status=BudgetAllocation.STATUS_INACTIVE)
        result = create_budget_allocation(self.staff, self.allocation_data(self.budget, '5000000'))
        self.assertTrue(result.success, result.error)

    def test_inactive_allocation_may_exceed_capacity(self):
        self.make_allocation(self.budget, '5000000')
        result = create_budget_allocation(
            self.staff,
            self.allocation_data(self.budget, '100', status=BudgetAllocation.STATUS_INACTIVE),
        )
        self.assertTrue(result.success, result.error)

    def test_update_excludes_the_allocation_itself(self):
        allocation = self.make_allocation(self.budget, '4000000')
        self.make_allocation(self.budget, '1000000')

        same = update_budget_allocation(self.staff, allocation.pk, {'allocated_amount': '4000000'})
        self.assertTrue(same.success, same.error)

        grown = update_budget_allocation(self.staff, allocation.pk, {'allocated_amount': '4000001'})
        self.assertEqual(grown.code, 'INSUFFICIENT_FUNDS')
        self.assertIn('4,000,000.00', grown.error)
        allocation.refresh_from_db()
        self.assertEqual(allocation.allocated_amount, Decimal('4000000'))

    def test_reactivating_an_allocation_is_checked(self):
        allocation = self.make_allocation(self.budget, '3000000', status=BudgetAllocation.STATUS_INACTIVE)
        self.make_allocation(self.budget, '4000000')
        result = update_budget_allocation(
            self.staff, allocation.pk, {'status': BudgetAllocation.STATUS_ACTIVE}
        )
        self.assertEqual(result.code, 'INSUFFICIENT_FUNDS')

    def test_missing_budget_is_reported(self):
        data = self.allocation_data(self.budget, '100')
        data['budget_id'] = '00000000-0000-0000-0000-000000000000'
        result = create_budget_allocation(self.staff, data)
        self.assertEqual(result.code, 'NOT_FOUND')
        self.assertEqual(result.error, 'Budget not found')

    def test_ensure_allocation_capacity_returns_what_is_left(self):
        self.make_allocation(self.budget, '1250000')
        available = ensure_allocation_capacity(self.budget, Decimal('1'))
        self.assertEqual(available, Decimal('3750000'))


class ExpenseGuardTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.budget = self.make_budget('1500')
        self.make_expense(self.budget, '1000')

    def test_expense_over_remaining_budget_is_refused(self):
        result = create_expense(self.staff, self.expense_data(self.budget, '1000'))
        self.assertFalse(result.success)
        self.assertEqual(result.code, 'INSUFFICIENT_FUNDS')
        self.assertIn('500.00', result.error)
        self.assertEqual(self.budget.expenses.count(), 1)

    def test_expense_within_remaining_budget_is_created(self):
        result = create_expense(self.staff, self.expense_data(self.budget, '500'))
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data['status'], Expense.STATUS_DRAFT)
        self.assertEqual(result.data['division_id'], self.division.pk)

    def test_rejected_and_cancelled_expenses_release_their_amount(self):
        self.budget.expenses.update(status=Expense.STATUS_REJECTED)
        self.make_expense(self.budget, '200', status=Expense.STATUS_CANCELLED)
        result = create_expense(self.staff, self.expense_data(self.budget, '1500'))
        self.assertTrue(result.success, result.error)

    def test_every_other_status_holds_its_amount(self):
        for status in (Expense.STATUS_PENDING_APPROVAL, Expense.STATUS_APPROVED, Expense.STATUS_PAID):
            self.budget.expenses.update(status=status)
            with self.assertRaises(InsufficientFunds):
                ensure_expense_capacity(self.budget, Decimal('501'))

    def test_allocation_balance_is_enforced(self):
        budget = self.make_budget('10000')
        allocation = self.make_allocation(budget, '600')
        self.make_expense(budget, '100', allocation=allocation)

        result = create_expense(
            self.staff, self.expense_data(budget, '700', budget_allocation_id=str(allocation.pk))
        )
        self.assertEqual(result.code, 'INSUFFICIENT_FUNDS')
        self.assertIn('Insufficient allocation balance', result.error)
        self.assertIn('500.00', result.error)

    def test_exclude_skips_the_expense_being_edited(self):
        expense = self.budget.expenses.get()
        available = ensure_expense_capacity(self.budget, Decimal('1500'), exclude=expense)
        self.assertEqual(available, Decimal('1500'))


class LedgerAnnotationTests(BudgetFixtures, TestCase):

    def test_annotations_match_model_helpers(self):
        budget = self.make_budget('9000')
        self.make_allocation(budget, '4000')
        self.make_allocation(budget, '3000', status=BudgetAllocation.STATUS_CLOSED)
        self.make_expense(budget, '700')
        self.make_expense(budget, '300', status=Expense.STATUS_REJECTED)

        annotated = Budget.objects.with_ledger().get(pk=budget.pk)
        self.assertEqual(annotated.allocated_to_projects, Decimal('4000'))
        self.assertEqual(annotated.spent_amount, Decimal('700'))
        self.assertEqual(budget.get_allocated_to_projects(), Decimal('4000'))
        self.assertEqual(budget.get_spent_amount(), Decimal('700'))
        self.assertEqual(budget.remaining_amount, Decimal('5000'))

    def test_budget_without_rows_has_zero_totals(self):
        budget = self.make_budget('100')
        annotated = Budget.objects.with_ledger().get(pk=budget.pk)
        self.assertEqual(annotated.allocated_to_projects, Decimal('0'))
        self.assertEqual(annotated.spent_amount, Decimal('0'))
