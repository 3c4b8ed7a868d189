from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.budgets.models import Activity, Budget, BudgetCategory, Output, Plan
from apps.budgets.utils import current_fiscal_year, fiscal_year_dates
from apps.user_accounts.models import Division, User

DIVISIONS = [
    ("Primary Health Care Division", "กองสุขภาพปฐมภูมิ"),
    ("Health Promotion Department", "ฝ่ายส่งเสริมสุขภาพ"),
    ("Disease Prevention Department", "ฝ่ายป้องกันโรค"),
]

CATEGORIES = [
    ("CAT-001", "Personnel Expenses", "ค่าใช้จ่ายบุคลากร", "Salaries, benefits, and personnel-related costs"),
    ("CAT-002", "Operating Expenses", "ค่าใช้จ่ายดำเนินงาน", "Day-to-day operational costs"),
    ("CAT-003", "Equipment & Supplies", "ค่าครุภัณฑ์และวัสดุ", "Medical equipment and supplies"),
]

# (email, name, name_local, role, division index)
USERS = [
    ("admin@phc.go.th", "System Administrator", "ผู้ดูแลระบบ", User.ROLE_SUPER_ADMIN, 0),
    ("dept.admin@phc.go.th", "Department Admin", "ผู้ดูแลแผนก", User.ROLE_ADMIN, 1),
    ("approver@phc.go.th", "Budget Approver", "ผู้อนุมัติงบประมาณ", User.ROLE_APPROVER, 1),
    ("staff@phc.go.th", "Staff Member", "เจ้าหน้าที่", User.ROLE_STAFF, 1),
    ("viewer@phc.go.th", "Report Viewer", "ผู้ดูรายงาน", User.ROLE_VIEWER, 2),
]


class Command(BaseCommand):
    help = 'Creates reference divisions, budget categories, demo users and a sample budget'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='password123', help='Password for every demo user')
        parser.add_argument('--fiscal-year', type=int, default=None, help='Fiscal year (B.E.) of the sample budget')

    @transaction.atomic
    def handle(self, *args, **options):
        divisions = []
        for name, name_local in DIVISIONS:
            division, _ = Division.objects.get_or_create(name=name, defaults={'name_local': name_local})
            divisions.append(division)
        self.stdout.write("Divisions ready")

        categories = []
        for code, name, name_local, description in CATEGORIES:
            category, _ = BudgetCategory.objects.get_or_create(
                code=code,
                defaults={'name': name, 'name_local': name_local, 'description': description},
            )
            categories.append(category)
        self.stdout.write("Budget categories ready")

        users = {}
        for email, name, name_local, role, division_index in USERS:
            user = User.objects.filter(email=email).first()
            if user is None:
                user = User.objects.create_user(
                    email=email,
                    password=options['password'],
                    name=name,
                    name_local=name_local,
                    role=role,
                    division=divisions[division_index],
                    is_staff=role == User.ROLE_SUPER_ADMIN,
                    is_superuser=role == User.ROLE_SUPER_ADMIN,
                )
            else:
                self.stdout.write(self.style.WARNING(f"Skipping existing user {email}"))
            users[role] = user
        self.stdout.write("Users ready")

        plan, _ = Plan.objects.get_or_create(
            code='PLN-001', defaults={'name': "Health Promotion Plan", 'name_local': "แผนงานส่งเสริมสุขภาพ"}
        )
        output, _ = Output.objects.get_or_create(
            code='OUT-001',
            defaults={'name': "Community Health Services", 'name_local': "บริการสุขภาพชุมชน", 'plan': plan},
        )
        activity, _ = Activity.objects.get_or_create(
            code='ACT-001',
            defaults={'name': "Health Screening", 'name_local': "คัดกรองสุขภาพ", 'output': output},
        )

        fiscal_year = options['fiscal_year'] or current_fiscal_year()
        code = f'BUD-{fiscal_year}-001'
        if Budget.objects.filter(code=code).exists():
            self.stdout.write(self.style.WARNING(f"Sample budget {code} already exists"))
        else:
            start_date, end_date = fiscal_year_dates(fiscal_year)
            Budget.objects.create(
                code=code,
                name=f"FY{fiscal_year} Health Promotion Budget",
                name_local=f"งบประมาณส่งเสริมสุขภาพ ปี {fiscal_year}",
                description="Annual budget for health promotion activities",
                description_local="งบประมาณประจำปีสำหรับกิจกรรมส่งเสริมสุขภาพ",
                fiscal_year=fiscal_year,
                division=divisions[1],
                category=categories[1],
                plan=plan,
                output=output,
                activity=activity,
                allocated_amount=Decimal('5000000'),
                status=Budget.STATUS_APPROVED,
                start_date=start_date,
                end_date=end_date,
                created_by=users[User.ROLE_ADMIN],
            )
            self.stdout.write(f"Created sample budget {code}")

        self.stdout.write(self.style.SUCCESS("Seed completed successfully."))
        for email, _, _, role, _ in USERS:
            self.stdout.write(f"  {role}: {email}")
