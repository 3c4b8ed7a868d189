from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, TestCase, override_settings

from apps.budgets.exceptions import NotFound
from apps.budgets.models import BudgetCategory
from apps.budgets.utils import (
    fiscal_year_dates,
    fiscal_year_for,
    format_amount,
    generate_code,
    get_or_not_found,
    to_base36,
)


class FiscalYearTests(SimpleTestCase):

    def test_fiscal_year_starts_in_october(self):
        self.assertEqual(fiscal_year_for(date(2024, 9, 30)), 2567)
        self.assertEqual(fiscal_year_for(date(2024, 10, 1)), 2568)

    def test_fiscal_year_dates(self):
        self.assertEqual(fiscal_year_dates(2568), (date(2024, 10, 1), date(2025, 9, 30)))


class FormattingTests(SimpleTestCase):

    def test_to_base36(self):
        self.assertEqual(to_base36(0), '0')
        self.assertEqual(to_base36(35), 'Z')
        self.assertEqual(to_base36(36), '10')

    def test_format_amount(self):
        self.assertEqual(format_amount(Decimal('3000000')), '3,000,000.00 THB')
        self.assertEqual(format_amount(Decimal('500.5')), '500.50 THB')

    @override_settings(BUDGET_CURRENCY='USD')
    def test_currency_comes_from_settings(self):
        self.assertEqual(format_amount(Decimal('1')), '1.00 USD')


class LookupTests(TestCase):

    def test_generated_codes_are_unique(self):
        first = generate_code('CAT', BudgetCategory, 2568)
        BudgetCategory.objects.create(code=first, name='First')
        second = generate_code('CAT', BudgetCategory, 2568)
        self.assertTrue(first.startswith('CAT-2568-'))
        self.assertNotEqual(first, second)
        self.assertTrue(generate_code('PLN', BudgetCategory).startswith('PLN-'))

    def test_missing_and_malformed_ids_are_not_found(self):
        with self.assertRaisesMessage(NotFound, 'Category not found'):
            get_or_not_found(BudgetCategory.objects.all(), 'Category not found', pk=404)
        with self.assertRaises(NotFound):
            get_or_not_found(BudgetCategory.objects.all(), 'Category not found', pk='abc')
