import io
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.test import TestCase
from django.utils import timezone
from openpyxl import load_workbook

from apps.budgets.approvals import approve_expense, reject_expense, submit_expense_for_approval
from apps.budgets.models import Approval, Expense
from apps.budgets.reports import (
    build_budget_summary,
    export_budget_summary,
    export_budget_summary_workbook,
    get_approval_timeline_report,
    get_budget_summary_report,
)
from .fixtures import BudgetFixtures


class BudgetSummaryTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.budget = self.make_budget('5000000')
        self.make_expense(self.budget, '1000000', status=Expense.STATUS_APPROVED)
        self.make_expense(self.budget, '2000000', status=Expense.STATUS_REJECTED)
        self.foreign = self.make_budget('100', division=self.other_division, created_by=self.admin)

    def test_rows_and_totals(self):
        report = build_budget_summary(self.admin)
        self.assertEqual(report['fiscal_year'], self.fiscal_year)
        self.assertEqual(len(report['summary']), 2)

        row = next(r for r in report['summary'] if r['code'] == self.budget.code)
        self.assertEqual(row['spent'], Decimal('1000000'))
        self.assertEqual(row['remaining'], Decimal('4000000'))
        self.assertEqual(row['utilization_rate'], Decimal('20.00'))
        self.assertEqual(row['expense_count'], 1)
        self.assertEqual(row['division'], 'กองคลัง')

        totals = report['totals']
        self.assertEqual(totals['total_budgets'], 2)
        self.assertEqual(totals['total_allocated'], Decimal('5000100'))
        self.assertEqual(totals['total_spent'], Decimal('1000000'))
        self.assertEqual(totals['average_utilization'], Decimal('10.00'))

    def test_non_admins_only_see_their_division(self):
        report = build_budget_summary(self.staff)
        self.assertEqual([r['code'] for r in report['summary']], [self.budget.code])

    def test_other_fiscal_years_are_excluded(self):
        report = build_budget_summary(self.admin, fiscal_year=self.fiscal_year + 1)
        self.assertEqual(report['summary'], [])
        self.assertEqual(report['totals']['average_utilization'], Decimal('0.00'))

    def test_operation_returns_json_safe_values(self):
        result = get_budget_summary_report(self.staff)
        self.assertTrue(result.success, result.error)
        row = result.data['summary'][0]
        self.assertIsInstance(row['allocated'], str)
        self.assertEqual(Decimal(row['spent']), Decimal('1000000'))
        self.assertIsInstance(result.data['totals']['total_spent'], str)

    def test_workbook_export(self):
        content = export_budget_summary_workbook(build_budget_summary(self.admin))
        wb = load_workbook(io.BytesIO(content))
        ws = wb.active
        self.assertEqual(ws.title, f'FY{self.fiscal_year}')
        self.assertEqual(ws['A1'].value, 'Code')
        self.assertTrue(ws['A1'].font.bold)
        codes = {ws.cell(row=r, column=1).value for r in (2, 3)}
        self.assertEqual(codes, {self.budget.code, self.foreign.code})
        self.assertEqual(ws.cell(row=ws.max_row, column=1).value, 'Total')
        self.assertEqual(ws.cell(row=ws.max_row, column=5).value, 5000100)


class BudgetSummaryExportTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.budget = self.make_budget('5000000')

    def test_export_returns_workbook_bytes(self):
        result = export_budget_summary(self.staff, fiscal_year=self.fiscal_year)
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data['fiscal_year'], self.fiscal_year)
        ws = load_workbook(io.BytesIO(result.data['content'])).active
        self.assertEqual(ws['A2'].value, self.budget.code)

    def test_render_failure_becomes_a_failed_result(self):
        with mock.patch(
            'apps.budgets.reports.export_budget_summary_workbook', side_effect=RuntimeError('disk full')
        ):
            with self.assertLogs('apps.budgets.results', level='ERROR'):
                result = export_budget_summary(self.staff)
        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Failed to export budget summary report')
        self.assertEqual(result.code, 'ERROR')

    def test_anonymous_actor(self):
        result = export_budget_summary(None)
        self.assertEqual(result.code, 'UNAUTHORIZED')


class ApprovalTimelineTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        budget = self.make_budget('10000')
        self.approved = self.make_expense(budget, '100')
        self.rejected = self.make_expense(budget, '200')
        for expense in (self.approved, self.rejected):
            submit_expense_for_approval(self.staff, expense.pk)

        for approval in Approval.objects.filter(expense=self.approved):
            approve_expense(approval.approver, approval.pk)
        first = Approval.objects.get(expense=self.rejected, approver=self.approver1)
        reject_expense(self.approver1, first.pk, 'Duplicate request')

    def test_statistics(self):
        result = get_approval_timeline_report(self.staff)
        self.assertTrue(result.success, result.error)

        stats = result.data['statistics']
        self.assertEqual(stats['total_approvals'], 4)
        self.assertEqual(stats['approved_count'], 2)
        self.assertEqual(stats['rejected_count'], 2)
        self.assertEqual([level['level'] for level in stats['by_level']], [1, 2])
        self.assertEqual([level['count'] for level in stats['by_level']], [2, 2])

    def test_timeline_rows(self):
        timeline = get_approval_timeline_report(self.staff).data['timeline']
        self.assertEqual(len(timeline), 4)
        titles = {row['item_name'] for row in timeline}
        self.assertEqual(titles, {self.approved.title, self.rejected.title})
        self.assertTrue(all(row['duration_hours'] >= 0 for row in timeline))
        self.assertEqual(timeline[0]['approver_division'], 'กองคลัง')

    def test_date_window(self):
        tomorrow = timezone.localdate() + timedelta(days=1)
        result = get_approval_timeline_report(self.staff, start=tomorrow)
        self.assertEqual(result.data['timeline'], [])
        self.assertEqual(result.data['statistics']['avg_overall_time'], 0)

    def test_pending_approvals_are_left_out(self):
        expense = self.make_expense(self.approved.budget, '1')
        submit_expense_for_approval(self.staff, expense.pk)
        result = get_approval_timeline_report(self.staff)
        self.assertEqual(result.data['statistics']['total_approvals'], 4)
