import uuid
from decimal import Decimal

from django.core.validators import FileExtensionValidator
from django.db import models
from django.db.models import Q

from apps.user_accounts.models import Division, User
from .managers import (
    ApprovalQuerySet,
    BudgetAllocationQuerySet,
    BudgetQuerySet,
    ExpenseQuerySet,
)


def expense_document_upload_path(instance, filename):
    """
    Segregate uploaded files by format into different folders
    Structure: expense_documents/{fiscal_year}/{file_format}/{filename}
    """
    ext = filename.split('.')[-1].lower()
    fiscal_year = instance.expense.budget.fiscal_year

    # Determine folder based on file format
    if ext == 'pdf':
        folder = 'pdf_files'
    elif ext in ['doc', 'docx']:
        folder = 'word_files'
    elif ext in ['xls', 'xlsx']:
        folder = 'excel_files'
    elif ext in ['jpg', 'jpeg', 'png']:
        folder = 'image_files'
    else:
        folder = 'other_files'

    return f'expense_documents/{fiscal_year}/{folder}/{filename}'


class ClassificationBase(models.Model):
    """Shared shape of the budget classification chain"""
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    name_local = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        abstract = True
        ordering = ['code']

    def __str__(self):
        return f"{self.code} - {self.name_local or self.name}"


class BudgetCategory(ClassificationBase):
    description = models.TextField(blank=True)

    class Meta(ClassificationBase.Meta):
        verbose_name = "Budget Category"
        verbose_name_plural = "Budget Categories"


class Plan(ClassificationBase):

    class Meta(ClassificationBase.Meta):
        verbose_name = "Plan"


class Output(ClassificationBase):
    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name='outputs')

    class Meta(ClassificationBase.Meta):
        verbose_name = "Output"


class Activity(ClassificationBase):
    output = models.ForeignKey(Output, on_delete=models.PROTECT, related_name='activities')

    class Meta(ClassificationBase.Meta):
        verbose_name = "Activity"
        verbose_name_plural = "Activities"


class Budget(models.Model):
    """Fiscal-year funding envelope of a division"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_PENDING_APPROVAL = 'PENDING_APPROVAL'
    STATUS_APPROVED = 'APPROVED'
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_REJECTED = 'REJECTED'
    STATUS_CLOSED = 'CLOSED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING_APPROVAL, 'Pending Approval'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CLOSED, 'Closed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    name_local = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    description_local = models.TextField(blank=True)

    # Buddhist calendar year; Gregorian = fiscal_year - 543
    fiscal_year = models.PositiveIntegerField(db_index=True)
    division = models.ForeignKey(Division, on_delete=models.PROTECT, related_name='budgets')
    category = models.ForeignKey(BudgetCategory, on_delete=models.PROTECT, related_name='budgets')
    plan = models.ForeignKey(Plan, on_delete=models.PROTECT, related_name='budgets')
    output = models.ForeignKey(Output, on_delete=models.PROTECT, related_name='budgets')
    activity = models.ForeignKey(Activity, on_delete=models.PROTECT, related_name='budgets')

    allocated_amount = models.DecimalField(max_digits=18, decimal_places=4)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='created_budgets')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BudgetQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Budget"
        verbose_name_plural = "Budgets"

    def __str__(self):
        return f"{self.code} - {self.name_local} (฿{self.allocated_amount:,.2f})"

    def get_allocated_to_projects(self):
        """Total carved out by ACTIVE allocations"""
        return self.allocations.active().total_allocated()

    def get_spent_amount(self):
        """Total of expenses that still count against this budget"""
        return self.expenses.consuming().total_amount()

    @property
    def remaining_amount(self):
        return self.allocated_amount - self.get_allocated_to_projects()


class BudgetAllocation(models.Model):
    """Project-level sub-envelope carved out of a budget"""
    STATUS_ACTIVE = 'ACTIVE'
    STATUS_INACTIVE = 'INACTIVE'
    STATUS_CLOSED = 'CLOSED'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_CLOSED, 'Closed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=255)
    name_local = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    description_local = models.TextField(blank=True)

    budget = models.ForeignKey(Budget, on_delete=models.CASCADE, related_name='allocations')
    allocated_amount = models.DecimalField(max_digits=18, decimal_places=4)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    start_date = models.DateField()
    end_date = models.DateField()

    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='created_allocations')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BudgetAllocationQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Budget Allocation"
        verbose_name_plural = "Budget Allocations"

    def __str__(self):
        return f"{self.code} - {self.name_local} (฿{self.allocated_amount:,.2f})"

    def get_spent_amount(self):
        return self.expenses.consuming().total_amount()

    @property
    def remaining_amount(self):
        return self.allocated_amount - self.get_spent_amount()


class Expense(models.Model):
    """Spend request against a budget, optionally through one of its allocations"""
    STATUS_DRAFT = 'DRAFT'
    STATUS_PENDING_APPROVAL = 'PENDING_APPROVAL'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_PAID = 'PAID'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING_APPROVAL, 'Pending Approval'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_PAID, 'Paid'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.CharField(max_length=50, unique=True)
    title = models.CharField(max_length=255)
    title_local = models.CharField(max_length=255, blank=True)
    description = models.TextField()
    description_local = models.TextField(blank=True)

    amount = models.DecimalField(max_digits=18, decimal_places=4)
    expense_date = models.DateField()
    category = models.ForeignKey(BudgetCategory, on_delete=models.PROTECT, related_name='expenses')
    division = models.ForeignKey(Division, on_delete=models.PROTECT, related_name='expenses')
    budget = models.ForeignKey(Budget, on_delete=models.PROTECT, related_name='expenses')
    budget_allocation = models.ForeignKey(
        BudgetAllocation,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='expenses'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)

    created_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name='created_expenses')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ExpenseQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Expense"
        verbose_name_plural = "Expenses"

    def __str__(self):
        return f"{self.code} - {self.title} ({self.status})"


class ExpenseDocument(models.Model):
    """Supporting documents attached to an expense"""
    expense = models.ForeignKey(Expense, on_delete=models.CASCADE, related_name='documents')

    document = models.FileField(
        upload_to=expense_document_upload_path,
        validators=[FileExtensionValidator(
            allowed_extensions=['pdf', 'doc', 'docx', 'xls', 'xlsx', 'jpg', 'jpeg', 'png']
        )],
        help_text="Receipt, invoice or other supporting document"
    )
    file_name = models.CharField(max_length=255)
    file_format = models.CharField(max_length=10, editable=False)
    file_size = models.BigIntegerField(help_text="File size in bytes", editable=False)

    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-uploaded_at']
        verbose_name = "Expense Document"
        verbose_name_plural = "Expense Documents"

    def __str__(self):
        return f"{self.file_name} ({self.file_format.upper()})"

    def save(self, *args, **kwargs):
        # Auto-detect file format and size
        if self.document:
            self.file_format = self.document.name.split('.')[-1].lower()
            self.file_size = self.document.size
            if not self.file_name:
                self.file_name = self.document.name
        super().save(*args, **kwargs)

    def get_file_size_display(self):
        """Return human-readable file size"""
        size = self.file_size
        if size < 1024:
            return f"{size} B"
        elif size < 1024 * 1024:
            return f"{size / 1024:.2f} KB"
        else:
            return f"{size / (1024 * 1024):.2f} MB"


class Approval(models.Model):
    """One approver's vote on a budget or an expense"""
    TYPE_BUDGET = 'BUDGET'
    TYPE_EXPENSE = 'EXPENSE'

    TYPE_CHOICES = [
        (TYPE_BUDGET, 'Budget'),
        (TYPE_EXPENSE, 'Expense'),
    ]

    STATUS_PENDING = 'PENDING'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    type = models.CharField(max_length=10, choices=TYPE_CHOICES)
    reference_id = models.UUIDField(db_index=True)

    # Exactly one of these is set, matching `type` (see constraints)
    budget = models.ForeignKey(
        Budget, on_delete=models.CASCADE, null=True, blank=True, related_name='approvals'
    )
    expense = models.ForeignKey(
        Expense, on_delete=models.CASCADE, null=True, blank=True, related_name='approvals'
    )

    # Position in approver discovery order; display only
    level = models.PositiveIntegerField()
    approver = models.ForeignKey(User, on_delete=models.CASCADE, related_name='approvals')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    comments = models.TextField(blank=True)
    decided_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ApprovalQuerySet.as_manager()

    class Meta:
        ordering = ['level', 'created_at']
        verbose_name = "Approval"
        verbose_name_plural = "Approvals"
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(type='BUDGET', budget__isnull=False, expense__isnull=True)
                    | Q(type='EXPENSE', expense__isnull=False, budget__isnull=True)
                ),
                name='approval_single_subject',
            ),
        ]

    def __str__(self):
        return f"{self.type} approval L{self.level} by {self.approver} ({self.status})"


class Notification(models.Model):
    """Notifications for users about approval requests and outcomes"""
    TYPE_BUDGET_APPROVAL = 'BUDGET_APPROVAL'
    TYPE_BUDGET_APPROVED = 'BUDGET_APPROVED'
    TYPE_BUDGET_REJECTED = 'BUDGET_REJECTED'
    TYPE_EXPENSE_APPROVAL = 'EXPENSE_APPROVAL'
    TYPE_EXPENSE_APPROVED = 'EXPENSE_APPROVED'
    TYPE_EXPENSE_REJECTED = 'EXPENSE_REJECTED'

    TYPE_CHOICES = [
        (TYPE_BUDGET_APPROVAL, 'Budget Approval Request'),
        (TYPE_BUDGET_APPROVED, 'Budget Approved'),
        (TYPE_BUDGET_REJECTED, 'Budget Rejected'),
        (TYPE_EXPENSE_APPROVAL, 'Expense Approval Request'),
        (TYPE_EXPENSE_APPROVED, 'Expense Approved'),
        (TYPE_EXPENSE_REJECTED, 'Expense Rejected'),
    ]

    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    title = models.CharField(max_length=255)
    title_local = models.CharField(max_length=255, blank=True)
    message = models.TextField()
    message_local = models.TextField(blank=True)
    link = models.CharField(max_length=255, blank=True)

    # Status
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.type} -> {self.recipient_id}"
