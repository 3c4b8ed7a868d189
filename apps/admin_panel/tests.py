import json

from django.test import TestCase
from django.urls import reverse

from apps.admin_panel import services
from apps.admin_panel.models import AuditTrail
from apps.budgets.models import Expense
from apps.budgets.tests.fixtures import PASSWORD, BudgetFixtures, make_user
from apps.user_accounts.models import Division, User


class DivisionServiceTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.super_admin = make_user('root@example.com', User.ROLE_SUPER_ADMIN)

    def test_create_and_update(self):
        result = services.create_division(self.admin, {'name': 'IT', 'name_local': 'กองเทคโนโลยี'})
        self.assertTrue(result.success, result.error)
        division_id = result.data['id']

        result = services.update_division(self.admin, division_id, {'description_local': 'ดูแลระบบ'})
        self.assertTrue(result.success, result.error)
        self.assertEqual(result.data['name_local'], 'กองเทคโนโลยี')
        self.assertEqual(Division.objects.get(pk=division_id).description_local, 'ดูแลระบบ')
        self.assertEqual(AuditTrail.objects.filter(model_name='Division').count(), 2)

    def test_local_name_is_required(self):
        result = services.create_division(self.admin, {'name': 'IT'})
        self.assertEqual(result.error, 'Division name (Thai) is required')

    def test_staff_cannot_manage_divisions(self):
        result = services.create_division(self.staff, {'name_local': 'x'})
        self.assertEqual(result.code, 'INSUFFICIENT_PERMISSION')

    def test_delete_needs_super_admin(self):
        empty = Division.objects.create(name_local='ว่าง')
        result = services.delete_division(self.admin, empty.pk)
        self.assertEqual(result.error, 'Only Super Admin can delete divisions')

        result = services.delete_division(self.super_admin, empty.pk)
        self.assertTrue(result.success, result.error)
        self.assertFalse(Division.objects.filter(pk=empty.pk).exists())

    def test_delete_refuses_divisions_in_use(self):
        result = services.delete_division(self.super_admin, self.division.pk)
        self.assertEqual(result.code, 'INVALID_STATE')
        self.assertEqual(result.error, 'Cannot delete division with users')

        unstaffed = Division.objects.create(name_local='ไม่มีคน')
        self.make_budget('10', division=unstaffed)
        result = services.delete_division(self.super_admin, unstaffed.pk)
        self.assertEqual(result.error, 'Cannot delete division with budgets')

    def test_statistics(self):
        budget = self.make_budget('1000')
        self.make_expense(budget, '250')
        self.make_expense(budget, '50', status=Expense.STATUS_REJECTED)

        data = services.get_division_statistics(self.staff, self.division.pk).data
        self.assertEqual(data['division_name'], 'กองคลัง')
        self.assertEqual(data['total_users'], 3)
        self.assertEqual(data['total_budgets'], 1)
        self.assertEqual(data['total_expenses'], 2)
        self.assertEqual(data['utilization_rate'], 25.0)

        denied = services.get_division_statistics(self.staff, self.other_division.pk)
        self.assertEqual(denied.code, 'ACCESS_DENIED')


class UserServiceTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.super_admin = make_user('root@example.com', User.ROLE_SUPER_ADMIN)

    def user_data(self, **extra):
        return {
            'email': 'new@example.com',
            'name': 'New Person',
            'password': 'hunter22',
            'division': self.division.pk,
            **extra,
        }

    def test_create_user(self):
        result = services.create_user(self.admin, self.user_data())
        self.assertTrue(result.success, result.error)
        user = User.objects.get(email='new@example.com')
        self.assertTrue(user.check_password('hunter22'))
        self.assertTrue(user.is_active)
        self.assertEqual(user.role, User.ROLE_STAFF)

    def test_create_user_validation(self):
        taken = services.create_user(self.admin, self.user_data(email='STAFF@example.com'))
        self.assertEqual(taken.code, 'DUPLICATE_CODE')
        self.assertEqual(taken.error, 'Email already exists')

        no_password = services.create_user(self.admin, self.user_data(password=''))
        self.assertEqual(no_password.error, 'Password is required')

        short = services.create_user(self.admin, self.user_data(password='abc'))
        self.assertEqual(short.error, 'Password must be at least 6 characters')

        no_division = services.create_user(self.admin, self.user_data(division=None))
        self.assertEqual(no_division.error, 'Division is required')

        denied = services.create_user(self.staff, self.user_data())
        self.assertEqual(denied.code, 'INSUFFICIENT_PERMISSION')

    def test_users_edit_themselves_but_not_their_role(self):
        result = services.update_user(
            self.staff, self.staff.pk, {'name': 'Renamed', 'role': User.ROLE_ADMIN, 'is_active': False}
        )
        self.assertTrue(result.success, result.error)
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.name, 'Renamed')
        self.assertEqual(self.staff.role, User.ROLE_STAFF)
        self.assertTrue(self.staff.is_active)

    def test_users_cannot_edit_others(self):
        result = services.update_user(self.staff, self.approver1.pk, {'name': 'Hacked'})
        self.assertEqual(result.code, 'INSUFFICIENT_PERMISSION')

    def test_admin_changes_role_and_password(self):
        result = services.update_user(
            self.admin, self.staff.pk, {'role': User.ROLE_APPROVER, 'password': 'changed1'}
        )
        self.assertTrue(result.success, result.error)
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.role, User.ROLE_APPROVER)
        self.assertTrue(self.staff.check_password('changed1'))

    def test_update_keeps_the_password_when_omitted(self):
        services.update_user(self.admin, self.staff.pk, {'name': 'Same Password'})
        self.staff.refresh_from_db()
        self.assertTrue(self.staff.check_password(PASSWORD))

    def test_delete_user_rules(self):
        budget = self.make_budget('10')
        self.assertEqual(
            services.delete_user(self.admin, self.approver1.pk).error, 'Only Super Admin can delete users'
        )
        self.assertEqual(
            services.delete_user(self.super_admin, budget.created_by_id).error,
            'Cannot delete user with created budgets',
        )
        self.assertEqual(
            services.delete_user(self.super_admin, self.super_admin.pk).error, 'Cannot delete your own account'
        )
        self.assertTrue(services.delete_user(self.super_admin, self.approver2.pk).success)
        self.assertFalse(User.objects.filter(pk=self.approver2.pk).exists())

    def test_toggle_status(self):
        result = services.toggle_user_status(self.admin, self.staff.pk)
        self.assertFalse(result.data['is_active'])
        result = services.toggle_user_status(self.admin, self.staff.pk)
        self.assertTrue(result.data['is_active'])

        own = services.toggle_user_status(self.admin, self.admin.pk)
        self.assertEqual(own.error, 'Cannot deactivate your own account')

    def test_assign_to_division(self):
        result = services.assign_user_to_division(self.admin, self.staff.pk, self.other_division.pk)
        self.assertTrue(result.success, result.error)
        self.staff.refresh_from_db()
        self.assertEqual(self.staff.division, self.other_division)

        missing = services.assign_user_to_division(self.admin, self.staff.pk, 999999)
        self.assertEqual(missing.error, 'Division not found')

    def test_listing(self):
        rows = services.get_users(self.admin, division_id=self.division.pk).data
        self.assertEqual(
            {r['email'] for r in rows},
            {'staff@example.com', 'approver1@example.com', 'approver2@example.com'},
        )
        candidates = services.get_users_not_in_division(self.admin, self.division.pk).data
        self.assertEqual({r['email'] for r in candidates}, {'admin@example.com', 'root@example.com'})
        self.assertEqual(services.get_users(self.staff).code, 'INSUFFICIENT_PERMISSION')

    def test_audit_trail(self):
        services.toggle_user_status(self.admin, self.staff.pk)
        entries = services.get_audit_trail(self.admin, model_name='User').data
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0]['user'], 'admin@example.com')
        self.assertIn('staff@example.com', entries[0]['detail'])


class AdminEndpointTests(BudgetFixtures, TestCase):

    def setUp(self):
        super().setUp()
        self.client.force_login(self.admin)

    def test_create_division(self):
        response = self.client.post(
            reverse('create_division'), data=json.dumps({'name_local': 'กองใหม่'}), content_type='application/json'
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

    def test_staff_are_forbidden(self):
        self.client.force_login(self.staff)
        response = self.client.get(reverse('user_list'))
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['code'], 'INSUFFICIENT_PERMISSION')

    def test_toggle_self_conflicts(self):
        response = self.client.post(reverse('toggle_user_status', args=[self.admin.pk]))
        self.assertEqual(response.status_code, 409)

    def test_update_user_with_patch(self):
        response = self.client.patch(
            reverse('user_detail', args=[self.staff.pk]),
            data=json.dumps({'name_local': 'สมชาย'}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['name_local'], 'สมชาย')

    def test_anonymous_is_unauthorized(self):
        self.client.logout()
        response = self.client.get(reverse('audit_trail'))
        self.assertEqual(response.status_code, 401)
