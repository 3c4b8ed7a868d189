from datetime import date
from decimal import Decimal
from itertools import count

from apps.budgets.models import (
    Activity,
    Budget,
    BudgetAllocation,
    BudgetCategory,
    Expense,
    Output,
    Plan,
)
from apps.budgets.utils import current_fiscal_year, fiscal_year_dates
from apps.user_accounts.models import Division, User

PASSWORD = 'secret123'

_sequence = count(1)


def make_user(email, role=User.ROLE_STAFF, division=None, **extra):
    return User.objects.create_user(
        email=email,
        password=PASSWORD,
        name=email.split('@')[0].title(),
        role=role,
        division=division,
        **extra
    )


class BudgetFixtures:
    """
    Mixin for TestCase classes: two divisions, a classification chain, a
    staff member and two approvers in the main division, and an admin who
    sits in the other division so that it never joins an approval round.
    """

    def setUp(self):
        super().setUp()
        self.fiscal_year = current_fiscal_year()
        self.division = Division.objects.create(name='Finance', name_local='กองคลัง')
        self.other_division = Division.objects.create(name='Planning', name_local='กองแผนงาน')

        self.category = BudgetCategory.objects.create(code='CAT-01', name='Operations', name_local='งบดำเนินงาน')
        self.plan = Plan.objects.create(code='PLN-01', name='Health plan', name_local='แผนงานสุขภาพ')
        self.output = Output.objects.create(code='OUT-01', name='Screening', name_local='การคัดกรอง', plan=self.plan)
        self.activity = Activity.objects.create(
            code='ACT-01', name='Village visits', name_local='เยี่ยมบ้าน', output=self.output
        )

        self.staff = make_user('staff@example.com', division=self.division)
        self.approver1 = make_user('approver1@example.com', User.ROLE_APPROVER, self.division)
        self.approver2 = make_user('approver2@example.com', User.ROLE_APPROVER, self.division)
        self.admin = make_user('admin@example.com', User.ROLE_ADMIN, self.other_division)

    def make_budget(self, amount='5000000', division=None, created_by=None, status=Budget.STATUS_APPROVED):
        start_date, end_date = fiscal_year_dates(self.fiscal_year)
        number = next(_sequence)
        return Budget.objects.create(
            code=f'BUD-{self.fiscal_year}-{number:03d}',
            name=f'Budget {number}',
            name_local=f'งบประมาณ {number}',
            fiscal_year=self.fiscal_year,
            division=division or self.division,
            category=self.category,
            plan=self.plan,
            output=self.output,
            activity=self.activity,
            allocated_amount=Decimal(amount),
            start_date=start_date,
            end_date=end_date,
            status=status,
            created_by=created_by or self.staff,
        )

    def make_allocation(self, budget, amount, status=BudgetAllocation.STATUS_ACTIVE):
        number = next(_sequence)
        return BudgetAllocation.objects.create(
            code=f'ALLOC-{number:03d}',
            name=f'Project {number}',
            name_local=f'โครงการ {number}',
            budget=budget,
            allocated_amount=Decimal(amount),
            status=status,
            start_date=budget.start_date,
            end_date=budget.end_date,
            created_by=budget.created_by,
        )

    def make_expense(self, budget, amount, status=Expense.STATUS_DRAFT, allocation=None, created_by=None):
        number = next(_sequence)
        return Expense.objects.create(
            code=f'EXP-{number:04d}',
            title=f'Expense {number}',
            description='Fuel for field visits',
            amount=Decimal(amount),
            expense_date=date.today(),
            category=self.category,
            division=budget.division,
            budget=budget,
            budget_allocation=allocation,
            status=status,
            created_by=created_by or self.staff,
        )

    def allocation_data(self, budget, amount, **extra):
        return {
            'budget_id': str(budget.pk),
            'name_local': 'โครงการใหม่',
            'allocated_amount': str(amount),
            'start_date': budget.start_date.isoformat(),
            'end_date': budget.end_date.isoformat(),
            **extra,
        }

    def expense_data(self, budget, amount, **extra):
        return {
            'budget_id': str(budget.pk),
            'code': f'EXP-NEW-{next(_sequence):04d}',
            'title': 'Printer toner',
            'description': 'Toner for the division office',
            'amount': str(amount),
            'expense_date': date.today().isoformat(),
            'category': self.category.pk,
            **extra,
        }
