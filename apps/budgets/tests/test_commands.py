from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from apps.budgets.models import Budget, BudgetCategory
from apps.user_accounts.models import Division, User


class SeedBudgetDataTests(TestCase):

    def seed(self):
        out = StringIO()
        call_command('seed_budget_data', '--fiscal-year', '2568', stdout=out)
        return out.getvalue()

    def test_seeds_reference_data(self):
        output = self.seed()
        self.assertIn("Seed completed successfully.", output)
        self.assertEqual(Division.objects.count(), 3)
        self.assertEqual(BudgetCategory.objects.count(), 3)
        self.assertEqual(User.objects.count(), 5)

        budget = Budget.objects.get(code='BUD-2568-001')
        self.assertEqual(budget.status, Budget.STATUS_APPROVED)
        self.assertEqual(budget.created_by.role, User.ROLE_ADMIN)

        root = User.objects.get(email='admin@phc.go.th')
        self.assertTrue(root.is_superuser)
        self.assertTrue(root.check_password('password123'))

    def test_running_twice_is_harmless(self):
        self.seed()
        output = self.seed()
        self.assertIn("Skipping existing user staff@phc.go.th", output)
        self.assertIn("Sample budget BUD-2568-001 already exists", output)
        self.assertEqual(User.objects.count(), 5)
        self.assertEqual(Budget.objects.count(), 1)
