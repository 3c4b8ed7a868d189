import io
import json
from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from openpyxl import load_workbook

from apps.budgets.models import Approval, Expense
from apps.budgets.tests.fixtures import BudgetFixtures


class EndpointTestCase(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.budget = self.make_budget('5000000')
        self.client.force_login(self.staff)

    def post_json(self, url, payload=None):
        return self.client.post(url, data=json.dumps(payload or {}), content_type='application/json')


class BudgetEndpointTests(EndpointTestCase):

    def test_list_budgets(self):
        response = self.client.get(reverse('budget_list'), {'fiscal_year': self.fiscal_year})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual([b['id'] for b in body['data']], [str(self.budget.pk)])

    def test_bad_query_parameter(self):
        response = self.client.get(reverse('budget_list'), {'fiscal_year': 'soon'})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Invalid fiscal_year')

    def test_invalid_json_body(self):
        response = self.client.post(reverse('budget_list'), data='{nope', content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['code'], 'VALIDATION_ERROR')

    def test_unknown_budget_is_404(self):
        response = self.client.get(reverse('budget_detail', args=['00000000-0000-0000-0000-000000000000']))
        self.assertEqual(response.status_code, 404)

    def test_other_division_is_403(self):
        foreign = self.make_budget('1', division=self.other_division, created_by=self.admin)
        response = self.client.get(reverse('budget_detail', args=[foreign.pk]))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'ACCESS_DENIED')

    def test_method_not_allowed(self):
        response = self.client.put(reverse('budget_detail', args=[self.budget.pk]))
        self.assertEqual(response.status_code, 405)

    def test_anonymous_is_unauthorized(self):
        self.client.logout()
        response = self.client.get(reverse('budget_list'))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {'success': False, 'error': 'Unauthorized', 'code': 'UNAUTHORIZED'})


class LedgerEndpointTests(EndpointTestCase):

    def test_over_allocation_is_a_conflict(self):
        ok = self.post_json(reverse('allocation_list'), self.allocation_data(self.budget, '2000000'))
        self.assertEqual(ok.status_code, 200)

        refused = self.post_json(reverse('allocation_list'), self.allocation_data(self.budget, '3500000'))
        self.assertEqual(refused.status_code, 409)
        body = refused.json()
        self.assertEqual(body['code'], 'INSUFFICIENT_FUNDS')
        self.assertIn('3,000,000.00', body['error'])
        self.assertIn('available', body['details'])

    def test_expense_lifecycle(self):
        created = self.post_json(reverse('expense_list'), self.expense_data(self.budget, '1200'))
        self.assertEqual(created.status_code, 200)
        expense_id = created.json()['data']['id']

        upload = SimpleUploadedFile('quote.png', b'\x89PNG fake', content_type='image/png')
        attached = self.client.post(reverse('upload_expense_document', args=[expense_id]), {'document': upload})
        self.assertEqual(attached.status_code, 200)
        self.assertEqual(attached.json()['data']['file_format'], 'png')

        submitted = self.client.post(reverse('submit_expense', args=[expense_id]))
        self.assertEqual(submitted.json()['data'], {'approvals': 2})

        again = self.client.post(reverse('submit_expense', args=[expense_id]))
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()['code'], 'INVALID_STATE')

    def test_budget_filter(self):
        allocation = self.make_allocation(self.budget, '1000')
        expense = self.make_expense(self.budget, '10')
        other = self.make_budget('1000')
        self.make_allocation(other, '500')
        self.make_expense(other, '5')

        allocations = self.client.get(reverse('allocation_list'), {'budget': str(self.budget.pk)})
        self.assertEqual([a['id'] for a in allocations.json()['data']], [str(allocation.pk)])
        expenses = self.client.get(reverse('expense_list'), {'budget': str(self.budget.pk)})
        self.assertEqual([e['id'] for e in expenses.json()['data']], [str(expense.pk)])

    def test_malformed_budget_filter_is_a_bad_request(self):
        for name in ('allocation_list', 'expense_list'):
            response = self.client.get(reverse(name), {'budget': 'abc'})
            self.assertEqual(response.status_code, 400)
            self.assertEqual(
                response.json(), {'success': False, 'error': 'Invalid budget', 'code': 'VALIDATION_ERROR'}
            )

    def test_missing_document_is_rejected(self):
        expense = self.make_expense(self.budget, '1')
        response = self.client.post(reverse('upload_expense_document', args=[expense.pk]))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Document is required')


class ApprovalEndpointTests(EndpointTestCase):

    def setUp(self):
        super().setUp()
        self.expense = self.make_expense(self.budget, '750')
        self.client.post(reverse('submit_expense', args=[self.expense.pk]))
        self.first = Approval.objects.get(expense=self.expense, approver=self.approver1)
        self.second = Approval.objects.get(expense=self.expense, approver=self.approver2)

    def decide(self, user, approval, decision, **payload):
        self.client.force_login(user)
        return self.post_json(
            reverse('decide_approval', args=[approval.pk, decision]),
            {'type': Approval.TYPE_EXPENSE, **payload},
        )

    def test_approvers_see_their_queue(self):
        self.client.force_login(self.approver1)
        response = self.client.get(reverse('pending_approvals'))
        self.assertEqual(len(response.json()['data']), 1)
        count = self.client.get(reverse('pending_approval_count'))
        self.assertEqual(count.json()['data'], 1)

    def test_staff_cannot_list_approvals(self):
        response = self.client.get(reverse('pending_approvals'))
        self.assertEqual(response.status_code, 403)

    def test_unanimous_round(self):
        first = self.decide(self.approver1, self.first, 'approve')
        self.assertEqual(first.status_code, 200)
        self.assertFalse(first.json()['data']['completed'])

        second = self.decide(self.approver2, self.second, 'approve', comments='fine')
        self.assertTrue(second.json()['data']['completed'])
        self.expense.refresh_from_db()
        self.assertEqual(self.expense.status, Expense.STATUS_APPROVED)

    def test_reject_and_repeat(self):
        missing = self.decide(self.approver1, self.first, 'reject')
        self.assertEqual(missing.status_code, 400)

        rejected = self.decide(self.approver1, self.first, 'reject', comments='No quote attached')
        self.assertEqual(rejected.status_code, 200)

        repeat = self.decide(self.approver2, self.second, 'approve')
        self.assertEqual(repeat.status_code, 409)
        self.assertEqual(repeat.json()['code'], 'ALREADY_DECIDED')

    def test_wrong_approver(self):
        response = self.decide(self.approver2, self.first, 'approve')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'ACCESS_DENIED')

    def test_unknown_decision(self):
        response = self.decide(self.approver1, self.first, 'escalate')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'Invalid approval type')

    def test_notifications(self):
        self.client.force_login(self.approver1)
        listing = self.client.get(reverse('notification_list'), {'unread': '1'})
        notifications = listing.json()['data']
        self.assertEqual(len(notifications), 1)

        read = self.client.post(reverse('read_notification', args=[notifications[0]['id']]))
        self.assertTrue(read.json()['data']['is_read'])
        read_all = self.client.post(reverse('read_all_notifications'))
        self.assertEqual(read_all.json()['data'], {'updated': 0})


class ReportEndpointTests(EndpointTestCase):

    def test_summary(self):
        response = self.client.get(reverse('budget_summary_report'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['totals']['total_budgets'], 1)

    def test_export(self):
        response = self.client.get(reverse('export_budget_summary'), {'fiscal_year': self.fiscal_year})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response['Content-Type'], 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
        )
        self.assertIn(f'FY{self.fiscal_year}.xlsx', response['Content-Disposition'])
        ws = load_workbook(io.BytesIO(response.content)).active
        self.assertEqual(ws['A2'].value, self.budget.code)

    def test_export_failure_is_a_json_error(self):
        with mock.patch(
            'apps.budgets.reports.export_budget_summary_workbook', side_effect=RuntimeError('disk full')
        ):
            with self.assertLogs('apps.budgets.results', level='ERROR'):
                response = self.client.get(reverse('export_budget_summary'))
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(),
            {'success': False, 'error': 'Failed to export budget summary report', 'code': 'ERROR'},
        )

    def test_anonymous_export_is_unauthorized(self):
        self.client.logout()
        response = self.client.get(reverse('export_budget_summary'))
        self.assertEqual(response.status_code, 401)

    def test_timeline_window_must_be_a_date(self):
        response = self.client.get(reverse('approval_timeline_report'), {'start': 'yesterday'})
        self.assertEqual(response.status_code, 400)

    def test_lookups(self):
        response = self.client.get(reverse('lookup', args=['categories']))
        self.assertEqual(response.json()['data'][0]['code'], 'CAT-01')
        unknown = self.client.get(reverse('lookup', args=['planets']))
        self.assertEqual(unknown.status_code, 404)
