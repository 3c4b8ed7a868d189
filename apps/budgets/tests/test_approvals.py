from django.test import TestCase

from apps.admin_panel.models import AuditTrail
from apps.budgets.approvals import (
    AUTO_REJECT_MESSAGE,
    BudgetSubject,
    ExpenseSubject,
    approve_budget,
    approve_expense,
    eligible_approvers,
    get_pending_approval_count,
    get_pending_approvals,
    reject_budget,
    reject_expense,
    subject_of,
    submit_budget_for_approval,
    submit_expense_for_approval,
)
from apps.budgets.models import Approval, Budget, Expense, Notification
from apps.user_accounts.models import User
from .fixtures import BudgetFixtures, make_user


class ApprovalFixtures(BudgetFixtures):

    def setUp(self):
        super().setUp()
        self.budget = self.make_budget('100000')
        self.expense = self.make_expense(self.budget, '2500')

    def submit_expense(self):
        result = submit_expense_for_approval(self.staff, self.expense.pk)
        self.assertTrue(result.success, result.error)
        return list(Approval.objects.filter(expense=self.expense).order_by('level'))


class FanOutTests(ApprovalFixtures, TestCase):

    def test_submission_creates_one_approval_per_approver(self):
        result = submit_expense_for_approval(self.staff, self.expense.pk)
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data, {'approvals': 2})

        approvals = Approval.objects.filter(expense=self.expense).order_by('level')
        self.assertEqual(
            [(a.level, a.approver, a.status) for a in approvals],
            [(1, self.approver1, Approval.STATUS_PENDING), (2, self.approver2, Approval.STATUS_PENDING)],
        )
        self.assertTrue(all(a.reference_id == self.expense.pk for a in approvals))

        self.expense.refresh_from_db()
        self.assertEqual(self.expense.status, Expense.STATUS_PENDING_APPROVAL)

    def test_each_approver_is_notified(self):
        self.submit_expense()
        for approver in (self.approver1, self.approver2):
            notification = approver.notifications.get()
            self.assertEqual(notification.type, Notification.TYPE_EXPENSE_APPROVAL)
            self.assertIn(self.expense.code, notification.message)
            self.assertEqual(notification.link, f'/dashboard/expenses/{self.expense.pk}')
        self.assertFalse(self.staff.notifications.exists())

    def test_inactive_users_and_other_divisions_are_skipped(self):
        make_user('retired@example.com', User.ROLE_APPROVER, self.division, is_active=False)
        make_user('elsewhere@example.com', User.ROLE_APPROVER, self.other_division)
        make_user('viewer@example.com', User.ROLE_VIEWER, self.division)
        self.assertEqual(
            list(eligible_approvers(self.division.pk)), [self.approver1, self.approver2]
        )

    def test_division_admins_are_approvers(self):
        division_admin = make_user('chief@example.com', User.ROLE_ADMIN, self.division)
        self.assertIn(division_admin, eligible_approvers(self.division.pk))

    def test_only_draft_expenses_can_be_submitted(self):
        self.expense.status = Expense.STATUS_APPROVED
        self.expense.save()
        result = submit_expense_for_approval(self.staff, self.expense.pk)
        self.assertEqual(result.code, 'INVALID_STATE')
        self.assertEqual(result.error, 'Only draft expenses can be submitted')
        self.assertFalse(Approval.objects.exists())

    def test_division_without_approvers_creates_no_round(self):
        budget = self.make_budget('1000', division=self.other_division, created_by=self.admin)
        expense = self.make_expense(budget, '10', created_by=self.admin)
        User.objects.filter(pk=self.admin.pk).update(division=None)

        with self.assertLogs('apps.budgets.approvals', level='WARNING'):
            result = submit_expense_for_approval(self.staff, expense.pk)
        self.assertEqual(result.data, {'approvals': 0})

    def test_budget_submission_leaves_status_alone(self):
        result = submit_budget_for_approval(self.staff, self.budget.pk)
        self.assertEqual(result.data, {'approvals': 2})
        self.budget.refresh_from_db()
        self.assertEqual(self.budget.status, Budget.STATUS_APPROVED)
        self.assertEqual(
            set(self.budget.approvals.values_list('type', flat=True)), {Approval.TYPE_BUDGET}
        )

    def test_budget_resubmission_starts_another_round(self):
        submit_budget_for_approval(self.staff, self.budget.pk)
        with self.assertLogs('apps.budgets.approvals', level='WARNING'):
            submit_budget_for_approval(self.staff, self.budget.pk)
        self.assertEqual(self.budget.approvals.count(), 4)

    def test_submission_is_audited(self):
        self.submit_expense()
        entry = AuditTrail.objects.get(action='SUBMIT')
        self.assertEqual(entry.user, self.staff)
        self.assertEqual(entry.record_id, str(self.expense.pk))

    def test_subject_of_returns_the_matching_variant(self):
        first, _ = self.submit_expense()
        subject = subject_of(first)
        self.assertIsInstance(subject, ExpenseSubject)
        self.assertEqual(subject.instance, self.expense)

        submit_budget_for_approval(self.staff, self.budget.pk)
        budget_subject = subject_of(self.budget.approvals.first())
        self.assertIsInstance(budget_subject, BudgetSubject)
        self.assertEqual(budget_subject.creator, self.staff)


class DecisionTests(ApprovalFixtures, TestCase):

    def test_unanimous_approval_completes_the_expense(self):
        first, second = self.submit_expense()

        result = approve_expense(self.approver1, first.pk, 'ok')
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data['status'], Approval.STATUS_APPROVED)
        self.assertFalse(result.data['completed'])
        self.expense.refresh_from_db()
        self.assertEqual(self.expense.status, Expense.STATUS_PENDING_APPROVAL)
        self.assertFalse(self.staff.notifications.exists())

        result = approve_expense(self.approver2, second.pk)
        self.assertTrue(result.data['completed'])
        self.expense.refresh_from_db()
        self.assertEqual(self.expense.status, Expense.STATUS_APPROVED)

        notification = self.staff.notifications.get()
        self.assertEqual(notification.type, Notification.TYPE_EXPENSE_APPROVED)

    def test_rejection_cascades_to_pending_approvals(self):
        first, second = self.submit_expense()

        result = reject_expense(self.approver1, first.pk, 'Missing receipt')
        self.assertTrue(result.success, result.error)
        self.assertTrue(result.data['completed'])

        first.refresh_from_db()
        second.refresh_from_db()
        self.assertEqual(first.status, Approval.STATUS_REJECTED)
        self.assertEqual(first.comments, 'Missing receipt')
        self.assertEqual(second.status, Approval.STATUS_REJECTED)
        self.assertEqual(second.comments, AUTO_REJECT_MESSAGE)
        self.assertIsNotNone(second.decided_at)

        self.expense.refresh_from_db()
        self.assertEqual(self.expense.status, Expense.STATUS_REJECTED)
        notification = self.staff.notifications.get()
        self.assertEqual(notification.type, Notification.TYPE_EXPENSE_REJECTED)
        self.assertIn('Missing receipt', notification.message)

    def test_cascade_keeps_earlier_approvals(self):
        first, second = self.submit_expense()
        approve_expense(self.approver1, first.pk)
        reject_expense(self.approver2, second.pk, 'Over the limit')

        first.refresh_from_db()
        self.assertEqual(first.status, Approval.STATUS_APPROVED)
        self.expense.refresh_from_db()
        self.assertEqual(self.expense.status, Expense.STATUS_REJECTED)

    def test_rejection_requires_comments(self):
        first, _ = self.submit_expense()
        for comments in (None, '', '   '):
            result = reject_expense(self.approver1, first.pk, comments)
            self.assertEqual(result.code, 'VALIDATION_ERROR')
            self.assertEqual(result.error, 'Comments required for rejection')
        first.refresh_from_db()
        self.assertEqual(first.status, Approval.STATUS_PENDING)

    def test_only_the_assigned_approver_may_decide(self):
        first, _ = self.submit_expense()
        for intruder in (self.approver2, self.staff, self.admin):
            result = approve_expense(intruder, first.pk)
            self.assertEqual(result.code, 'ACCESS_DENIED')
        first.refresh_from_db()
        self.assertEqual(first.status, Approval.STATUS_PENDING)

    def test_decided_approvals_cannot_be_decided_again(self):
        first, second = self.submit_expense()
        reject_expense(self.approver1, first.pk, 'No')

        again = reject_expense(self.approver1, first.pk, 'Still no')
        self.assertEqual(again.code, 'ALREADY_DECIDED')
        self.assertEqual(again.error, 'Approval already processed')

        auto_rejected = approve_expense(self.approver2, second.pk)
        self.assertEqual(auto_rejected.code, 'ALREADY_DECIDED')

    def test_approval_type_must_match(self):
        first, _ = self.submit_expense()
        result = approve_budget(self.approver1, first.pk)
        self.assertEqual(result.code, 'VALIDATION_ERROR')
        self.assertEqual(result.error, 'Invalid approval type')

    def test_unknown_approval(self):
        result = approve_expense(self.approver1, '00000000-0000-0000-0000-000000000000')
        self.assertEqual(result.code, 'NOT_FOUND')
        self.assertEqual(result.error, 'Approval not found')

        malformed = approve_expense(self.approver1, 'not-a-uuid')
        self.assertEqual(malformed.code, 'NOT_FOUND')

    def test_inactive_approver_is_unauthorized(self):
        first, _ = self.submit_expense()
        self.approver1.is_active = False
        self.approver1.save()
        result = approve_expense(self.approver1, first.pk)
        self.assertEqual(result.code, 'UNAUTHORIZED')

    def test_decisions_are_audited(self):
        first, second = self.submit_expense()
        approve_expense(self.approver1, first.pk)
        reject_expense(self.approver2, second.pk, 'Too expensive')
        self.assertEqual(
            list(AuditTrail.objects.filter(model_name='Expense').exclude(action='SUBMIT')
                 .order_by('timestamp', 'id').values_list('action', 'user')),
            [('APPROVE', self.approver1.pk), ('REJECT', self.approver2.pk)],
        )

    def test_fully_approved_budget_keeps_its_status(self):
        submit_budget_for_approval(self.staff, self.budget.pk)
        for approval in self.budget.approvals.order_by('level'):
            result = approve_budget(approval.approver, approval.pk)
            self.assertTrue(result.success, result.error)
        self.assertTrue(result.data['completed'])

        self.budget.refresh_from_db()
        self.assertEqual(self.budget.status, Budget.STATUS_APPROVED)
        self.assertEqual(
            self.staff.notifications.get().type, Notification.TYPE_BUDGET_APPROVED
        )

    def test_rejected_budget_round(self):
        submit_budget_for_approval(self.staff, self.budget.pk)
        approval = self.budget.approvals.get(approver=self.approver2)
        result = reject_budget(self.approver2, approval.pk, 'Wrong plan')
        self.assertTrue(result.success, result.error)
        self.assertFalse(self.budget.approvals.pending().exists())
        self.assertEqual(self.staff.notifications.get().type, Notification.TYPE_BUDGET_REJECTED)


class PendingApprovalTests(ApprovalFixtures, TestCase):

    def test_pending_list_shows_own_approvals(self):
        self.submit_expense()
        result = get_pending_approvals(self.approver1)
        self.assertTrue(result.success, result.error)
        self.assertEqual(len(result.data), 1)
        row = result.data[0]
        self.assertEqual(row['type'], Approval.TYPE_EXPENSE)
        self.assertEqual(row['subject']['code'], self.expense.code)
        self.assertEqual(row['approver_id'], self.approver1.pk)

    def test_non_approvers_cannot_list(self):
        result = get_pending_approvals(self.staff)
        self.assertEqual(result.code, 'INSUFFICIENT_PERMISSION')
        self.assertEqual(get_pending_approval_count(self.staff).data, 0)

    def test_round_trip_empties_the_queue(self):
        first, second = self.submit_expense()
        self.assertEqual(get_pending_approval_count(self.approver1).data, 1)
        self.assertEqual(get_pending_approval_count(self.approver2).data, 1)

        approve_expense(self.approver1, first.pk)
        approve_expense(self.approver2, second.pk)

        self.assertEqual(get_pending_approvals(self.approver1).data, [])
        self.assertEqual(get_pending_approvals(self.approver2).data, [])
        self.assertEqual(get_pending_approval_count(self.approver2).data, 0)

    def test_newest_requests_come_first(self):
        self.submit_expense()
        submit_budget_for_approval(self.staff, self.budget.pk)
        rows = get_pending_approvals(self.approver1).data
        self.assertEqual([r['type'] for r in rows], [Approval.TYPE_BUDGET, Approval.TYPE_EXPENSE])
