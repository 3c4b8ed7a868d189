"""
Budget, allocation and expense operations.

Every public function takes the acting user first and returns an
``ActionResult`` through ``@operation``. Writes that consume budget capacity
lock the budget row before checking it (see ``ledger``).
"""
import logging

from django.db import transaction
from django.db.models import Q, Sum

from apps.admin_panel.utils import log_activity
from apps.user_accounts.models import Division
from .exceptions import (
    DuplicateCode,
    InsufficientFunds,
    InvalidState,
    Unauthorized,
    ValidationFailed,
)
from .forms import (
    BudgetAllocationForm,
    BudgetForm,
    BudgetUpdateForm,
    ExpenseDocumentForm,
    ExpenseForm,
    bound_form,
    validate,
)
from .ledger import ensure_allocation_capacity, ensure_expense_capacity, lock_budget
from .managers import ZERO
from .models import (
    Activity,
    Budget,
    BudgetAllocation,
    BudgetCategory,
    Expense,
    ExpenseDocument,
    Output,
    Plan,
)
from .permissions import (
    require_actor,
    require_admin,
    require_division_access,
    require_editor,
    require_owner_or_admin,
)
from .results import operation
from .utils import (
    current_fiscal_year,
    fiscal_year_dates,
    format_amount,
    generate_code,
    get_or_not_found,
)

logger = logging.getLogger(__name__)


# Serialization

def _money(value):
    return str(value if value is not None else ZERO)


def _date(value):
    return value.isoformat() if value else None


def _classification(row):
    return {'id': row.pk, 'code': row.code, 'name': row.name, 'name_local': row.name_local}


def serialize_budget(budget):
    allocated_to_projects = getattr(budget, 'allocated_to_projects', None)
    if allocated_to_projects is None:
        allocated_to_projects = budget.get_allocated_to_projects()
    spent = getattr(budget, 'spent_amount', None)
    if spent is None:
        spent = budget.get_spent_amount()
    return {
        'id': str(budget.pk),
        'code': budget.code,
        'name': budget.name,
        'name_local': budget.name_local,
        'description': budget.description,
        'description_local': budget.description_local,
        'fiscal_year': budget.fiscal_year,
        'division': {'id': budget.division_id, 'name': budget.division.name,
                     'name_local': budget.division.name_local},
        'category': _classification(budget.category),
        'plan': _classification(budget.plan),
        'output': _classification(budget.output),
        'activity': _classification(budget.activity),
        'allocated_amount': _money(budget.allocated_amount),
        'allocated_to_projects': _money(allocated_to_projects),
        'remaining_amount': _money(budget.allocated_amount - allocated_to_projects),
        'spent_amount': _money(spent),
        'start_date': _date(budget.start_date),
        'end_date': _date(budget.end_date),
        'status': budget.status,
        'created_by': {'id': budget.created_by_id, 'name': budget.created_by.name},
        'created_at': budget.created_at.isoformat(),
    }


def serialize_allocation(allocation):
    spent = getattr(allocation, 'spent_amount', None)
    if spent is None:
        spent = allocation.get_spent_amount()
    return {
        'id': str(allocation.pk),
        'code': allocation.code,
        'name': allocation.name,
        'name_local': allocation.name_local,
        'description_local': allocation.description_local,
        'budget_id': str(allocation.budget_id),
        'budget_code': allocation.budget.code,
        'allocated_amount': _money(allocation.allocated_amount),
        'spent_amount': _money(spent),
        'remaining_amount': _money(allocation.allocated_amount - spent),
        'status': allocation.status,
        'start_date': _date(allocation.start_date),
        'end_date': _date(allocation.end_date),
        'created_by': {'id': allocation.created_by_id, 'name': allocation.created_by.name},
        'created_at': allocation.created_at.isoformat(),
    }


def serialize_expense(expense):
    return {
        'id': str(expense.pk),
        'code': expense.code,
        'title': expense.title,
        'title_local': expense.title_local,
        'description': expense.description,
        'description_local': expense.description_local,
        'amount': _money(expense.amount),
        'expense_date': _date(expense.expense_date),
        'category_id': expense.category_id,
        'division_id': expense.division_id,
        'budget_id': str(expense.budget_id),
        'budget_allocation_id': str(expense.budget_allocation_id) if expense.budget_allocation_id else None,
        'status': expense.status,
        'created_by': {'id': expense.created_by_id, 'name': expense.created_by.name},
        'created_at': expense.created_at.isoformat(),
    }


def serialize_document(document):
    return {
        'id': document.pk,
        'expense_id': str(document.expense_id),
        'file_name': document.file_name,
        'file_format': document.file_format,
        'file_size': document.file_size,
        'file_size_display': document.get_file_size_display(),
        'url': document.document.url,
        'uploaded_at': document.uploaded_at.isoformat(),
    }


def _serialize_approvals(approvals):
    return [
        {
            'id': str(a.pk),
            'level': a.level,
            'status': a.status,
            'approver': {'id': a.approver_id, 'name': a.approver.name, 'email': a.approver.email},
            'comments': a.comments,
            'decided_at': _date(a.decided_at),
        }
        for a in approvals
    ]


def _budget_queryset():
    return Budget.objects.select_related(
        'division', 'category', 'plan', 'output', 'activity', 'created_by'
    )


# Budgets

def _resolve_classification(cleaned_data):
    """Existing plan/output/activity, or new rows for the custom names"""
    plan = cleaned_data.get('plan')
    if plan is None:
        name = cleaned_data['custom_plan_name']
        plan = Plan.objects.create(code=generate_code('PLN', Plan), name=name, name_local=name)

    output = cleaned_data.get('output')
    if output is None:
        name = cleaned_data['custom_output_name']
        output = Output.objects.create(
            code=generate_code('OUT', Output), name=name, name_local=name, plan=plan
        )

    activity = cleaned_data.get('activity')
    if activity is None:
        name = cleaned_data['custom_activity_name']
        activity = Activity.objects.create(
            code=generate_code('ACT', Activity), name=name, name_local=name, output=output
        )
    return plan, output, activity


def _budget_name(plan, activity):
    return f"{plan.name_local or plan.name} - {activity.name_local or activity.name}"


@operation("Failed to create budget")
def create_budget(actor, data):
    require_editor(actor)
    if actor.division_id is None:
        raise Unauthorized("User is not assigned to a division")
    cleaned_data = validate(BudgetForm(data))

    fiscal_year = cleaned_data['fiscal_year']
    start_date, end_date = fiscal_year_dates(fiscal_year)
    with transaction.atomic():
        plan, output, activity = _resolve_classification(cleaned_data)
        name = _budget_name(plan, activity)
        budget = Budget.objects.create(
            code=generate_code('BUD', Budget, fiscal_year),
            name=name,
            name_local=name,
            description=cleaned_data.get('description') or '',
            description_local=cleaned_data.get('description_local') or '',
            fiscal_year=fiscal_year,
            division_id=actor.division_id,
            category=cleaned_data['category'],
            plan=plan,
            output=output,
            activity=activity,
            allocated_amount=cleaned_data['allocated_amount'],
            start_date=start_date,
            end_date=end_date,
            created_by=actor,
        )
        log_activity(actor, 'CREATE', f"Created budget {budget.code}", model_name='Budget', record_id=budget.pk)

    logger.info("Budget %s created by %s for %s", budget.code, actor.pk, format_amount(budget.allocated_amount))
    return serialize_budget(budget)


@operation("Failed to update budget")
def update_budget(actor, budget_id, data):
    require_actor(actor)
    with transaction.atomic():
        budget = lock_budget(budget_id)
        require_owner_or_admin(actor, budget.created_by_id)

        previous_amount = budget.allocated_amount
        form = bound_form(BudgetUpdateForm, budget, data)
        cleaned_data = validate(form)

        if cleaned_data['allocated_amount'] != previous_amount:
            committed = budget.get_allocated_to_projects()
            if cleaned_data['allocated_amount'] < committed:
                raise InsufficientFunds(
                    f"Allocated amount cannot be less than the amount already allocated "
                    f"to projects ({format_amount(committed)})",
                    available=committed,
                )

        budget = form.save(commit=False)
        if 'plan' in data or 'activity' in data:
            budget.name = budget.name_local = _budget_name(budget.plan, budget.activity)
        budget.save()
        log_activity(actor, 'UPDATE', f"Updated budget {budget.code}", model_name='Budget', record_id=budget.pk)

    return serialize_budget(budget)


@operation("Failed to delete budget")
def delete_budget(actor, budget_id):
    require_actor(actor)
    with transaction.atomic():
        budget = lock_budget(budget_id)
        require_admin(actor)
        if budget.expenses.exists():
            raise InvalidState("Cannot delete budget with existing expenses")
        code = budget.code
        budget.delete()
        log_activity(actor, 'DELETE', f"Deleted budget {code}", model_name='Budget', record_id=budget_id)
    logger.info("Budget %s deleted by %s", code, actor.pk)
    return None


@operation("Failed to fetch budgets")
def get_budgets(actor, division_id=None, fiscal_year=None, search=None):
    require_actor(actor)
    budgets = _budget_queryset().with_ledger()

    if not actor.is_admin:
        budgets = budgets.filter(division_id=actor.division_id)
    elif division_id:
        budgets = budgets.filter(division_id=division_id)

    if fiscal_year:
        budgets = budgets.filter(fiscal_year=fiscal_year)

    if search:
        budgets = budgets.filter(
            Q(code__icontains=search) | Q(name__icontains=search) | Q(name_local__icontains=search)
        )
    return [serialize_budget(b) for b in budgets.order_by('-created_at')]


@operation("Failed to fetch budget")
def get_budget(actor, budget_id):
    require_actor(actor)
    budget = get_or_not_found(_budget_queryset().with_ledger(), "Budget not found", pk=budget_id)
    require_division_access(actor, budget.division_id)

    data = serialize_budget(budget)
    data['allocations'] = [
        serialize_allocation(a)
        for a in budget.allocations.with_ledger().select_related('budget', 'created_by')
    ]
    data['approvals'] = _serialize_approvals(budget.approvals.select_related('approver').order_by('level'))
    return data


@operation("Failed to fetch statistics")
def get_budget_statistics(actor, fiscal_year=None):
    require_actor(actor)
    fiscal_year = fiscal_year or current_fiscal_year()
    budgets = Budget.objects.filter(fiscal_year=fiscal_year)
    if not actor.is_admin:
        budgets = budgets.filter(division_id=actor.division_id)

    total_budget = budgets.aggregate(total=Sum('allocated_amount'))['total'] or ZERO
    total_spent = Expense.objects.filter(budget__in=budgets).consuming().total_amount()
    return {
        'fiscal_year': fiscal_year,
        'total_budget': _money(total_budget),
        'total_spent': _money(total_spent),
        'remaining': _money(total_budget - total_spent),
        'budget_count': budgets.count(),
    }


# Lookups

@operation("Failed to fetch divisions")
def get_divisions(actor):
    require_actor(actor)
    return [
        {'id': d.pk, 'name': d.name, 'name_local': d.name_local}
        for d in Division.objects.filter(is_active=True).order_by('name_local')
    ]


@operation("Failed to fetch categories")
def get_budget_categories(actor):
    require_actor(actor)
    return [_classification(c) for c in BudgetCategory.objects.filter(is_active=True)]


@operation("Failed to fetch plans")
def get_plans(actor):
    require_actor(actor)
    return [_classification(p) for p in Plan.objects.filter(is_active=True)]


@operation("Failed to fetch outputs")
def get_outputs(actor):
    require_actor(actor)
    return [
        {**_classification(o), 'plan_id': o.plan_id}
        for o in Output.objects.filter(is_active=True)
    ]


@operation("Failed to fetch activities")
def get_activities(actor):
    require_actor(actor)
    return [
        {**_classification(a), 'output_id': a.output_id}
        for a in Activity.objects.filter(is_active=True)
    ]


@operation("Failed to fetch fiscal years")
def get_fiscal_years(actor):
    require_actor(actor)
    return list(
        Budget.objects.order_by('-fiscal_year').values_list('fiscal_year', flat=True).distinct()
    )


@operation("Failed to fetch active budgets")
def get_active_budgets(actor, division_id=None):
    """Budgets that can take expenses, with what is left of each"""
    require_actor(actor)
    budgets = Budget.objects.filter(
        status__in=[Budget.STATUS_APPROVED, Budget.STATUS_ACTIVE]
    ).with_ledger()
    if division_id:
        budgets = budgets.filter(division_id=division_id)
    return [
        {
            'id': str(b.pk),
            'code': b.code,
            'name': b.name,
            'name_local': b.name_local,
            'allocated_amount': _money(b.allocated_amount),
            'spent_amount': _money(b.spent_amount),
            'remaining_amount': _money(b.allocated_amount - b.spent_amount),
            'category_id': b.category_id,
        }
        for b in budgets.order_by('code')
    ]


# Allocations

def _allocation_queryset():
    return BudgetAllocation.objects.select_related('budget', 'created_by')


@operation("Failed to create budget allocation")
def create_budget_allocation(actor, data):
    require_editor(actor)
    if not data.get('budget_id'):
        raise ValidationFailed("Budget is required")
    form = BudgetAllocationForm(data)
    cleaned_data = validate(form)

    with transaction.atomic():
        budget = lock_budget(data['budget_id'])
        if cleaned_data['status'] == BudgetAllocation.STATUS_ACTIVE:
            ensure_allocation_capacity(budget, cleaned_data['allocated_amount'])

        allocation = form.save(commit=False)
        allocation.budget = budget
        allocation.code = generate_code('ALLOC', BudgetAllocation, budget.fiscal_year)
        allocation.created_by = actor
        allocation.save()
        log_activity(actor, 'CREATE', f"Created allocation {allocation.code} under {budget.code}",
                     model_name='BudgetAllocation', record_id=allocation.pk)

    logger.info("Allocation %s of %s created on budget %s", allocation.code, allocation.allocated_amount, budget.code)
    return serialize_allocation(allocation)


@operation("Failed to update budget allocation")
def update_budget_allocation(actor, allocation_id, data):
    require_actor(actor)
    allocation = get_or_not_found(_allocation_queryset(), "Budget allocation not found", pk=allocation_id)
    require_owner_or_admin(actor, allocation.created_by_id)

    with transaction.atomic():
        budget = lock_budget(allocation.budget_id)
        allocation = get_or_not_found(_allocation_queryset(), "Budget allocation not found", pk=allocation_id)
        previous = (allocation.allocated_amount, allocation.status)

        form = bound_form(BudgetAllocationForm, allocation, data)
        cleaned_data = validate(form)
        if (cleaned_data['status'] == BudgetAllocation.STATUS_ACTIVE
                and (cleaned_data['allocated_amount'], cleaned_data['status']) != previous):
            ensure_allocation_capacity(budget, cleaned_data['allocated_amount'], exclude=allocation)

        allocation = form.save()
        log_activity(actor, 'UPDATE', f"Updated allocation {allocation.code}",
                     model_name='BudgetAllocation', record_id=allocation.pk)

    return serialize_allocation(allocation)


@operation("Failed to delete budget allocation")
def delete_budget_allocation(actor, allocation_id):
    require_actor(actor)
    allocation = get_or_not_found(BudgetAllocation.objects.all(), "Budget allocation not found", pk=allocation_id)
    require_admin(actor)
    with transaction.atomic():
        lock_budget(allocation.budget_id)
        if allocation.expenses.exists():
            raise InvalidState("Cannot delete budget allocation with existing expenses")
        code = allocation.code
        allocation.delete()
        log_activity(actor, 'DELETE', f"Deleted allocation {code}",
                     model_name='BudgetAllocation', record_id=allocation_id)
    return None


@operation("Failed to fetch budget allocations")
def get_budget_allocations(actor, budget_id=None, status=None):
    require_actor(actor)
    allocations = _allocation_queryset().with_ledger()
    if not actor.is_admin:
        allocations = allocations.filter(budget__division_id=actor.division_id)
    if budget_id:
        allocations = allocations.filter(budget_id=budget_id)
    if status:
        allocations = allocations.filter(status=status)
    return [serialize_allocation(a) for a in allocations.order_by('-created_at')]


@operation("Failed to fetch budget allocation")
def get_budget_allocation(actor, allocation_id):
    require_actor(actor)
    allocation = get_or_not_found(
        _allocation_queryset().with_ledger(), "Budget allocation not found", pk=allocation_id
    )
    require_division_access(actor, allocation.budget.division_id)
    data = serialize_allocation(allocation)
    data['expenses'] = [
        serialize_expense(e) for e in allocation.expenses.select_related('created_by')
    ]
    return data


# Expenses

def _expense_queryset():
    return Expense.objects.select_related('budget', 'budget_allocation', 'created_by')


def _resolve_allocation(budget, allocation_id):
    if not allocation_id:
        return None
    allocation = get_or_not_found(BudgetAllocation.objects.all(), "Budget allocation not found", pk=allocation_id)
    if allocation.budget_id != budget.pk:
        raise ValidationFailed("Allocation does not belong to the selected budget")
    return allocation


@operation("Failed to create expense")
def create_expense(actor, data):
    require_editor(actor)
    if not data.get('budget_id'):
        raise ValidationFailed("Budget is required")
    form = ExpenseForm(data)
    if data.get('code') and Expense.objects.filter(code=data['code']).exists():
        raise DuplicateCode("Expense code already exists")
    cleaned_data = validate(form)

    with transaction.atomic():
        budget = lock_budget(data['budget_id'])
        allocation = _resolve_allocation(budget, data.get('budget_allocation_id'))
        ensure_expense_capacity(budget, cleaned_data['amount'], allocation=allocation)

        expense = form.save(commit=False)
        expense.budget = budget
        expense.budget_allocation = allocation
        expense.division_id = budget.division_id
        expense.created_by = actor
        expense.save()
        log_activity(actor, 'CREATE', f"Created expense {expense.code} on {budget.code}",
                     model_name='Expense', record_id=expense.pk)

    logger.info("Expense %s of %s created on budget %s", expense.code, expense.amount, budget.code)
    return serialize_expense(expense)


@operation("Failed to update expense")
def update_expense(actor, expense_id, data):
    require_actor(actor)
    expense = get_or_not_found(_expense_queryset(), "Expense not found", pk=expense_id)
    require_owner_or_admin(actor, expense.created_by_id)
    if expense.status in (Expense.STATUS_APPROVED, Expense.STATUS_PAID) and not actor.is_admin:
        raise InvalidState("Cannot edit approved or paid expenses")
    if data.get('code') and Expense.objects.filter(code=data['code']).exclude(pk=expense.pk).exists():
        raise DuplicateCode("Expense code already exists")

    with transaction.atomic():
        budget = lock_budget(expense.budget_id)
        expense = get_or_not_found(_expense_queryset(), "Expense not found", pk=expense_id)
        previous_amount = expense.amount
        form = bound_form(ExpenseForm, expense, data)
        cleaned_data = validate(form)

        if cleaned_data['amount'] != previous_amount and expense.status not in (
            Expense.STATUS_REJECTED, Expense.STATUS_CANCELLED
        ):
            ensure_expense_capacity(
                budget, cleaned_data['amount'], allocation=expense.budget_allocation, exclude=expense
            )

        expense = form.save()
        log_activity(actor, 'UPDATE', f"Updated expense {expense.code}", model_name='Expense', record_id=expense.pk)

    return serialize_expense(expense)


@operation("Failed to delete expense")
def delete_expense(actor, expense_id):
    require_actor(actor)
    expense = get_or_not_found(Expense.objects.all(), "Expense not found", pk=expense_id)
    require_owner_or_admin(actor, expense.created_by_id)
    if expense.status != Expense.STATUS_DRAFT:
        raise InvalidState("Only draft expenses can be deleted")

    with transaction.atomic():
        code = expense.code
        expense.delete()
        log_activity(actor, 'DELETE', f"Deleted expense {code}", model_name='Expense', record_id=expense_id)
    return None


@operation("Failed to fetch expenses")
def get_expenses(actor, budget_id=None, status=None):
    require_actor(actor)
    expenses = _expense_queryset()
    if not actor.is_admin:
        expenses = expenses.filter(division_id=actor.division_id)
    if budget_id:
        expenses = expenses.filter(budget_id=budget_id)
    if status:
        expenses = expenses.filter(status=status)
    return [serialize_expense(e) for e in expenses.order_by('-created_at')]


@operation("Failed to fetch expense")
def get_expense(actor, expense_id):
    require_actor(actor)
    expense = get_or_not_found(_expense_queryset(), "Expense not found", pk=expense_id)
    require_division_access(actor, expense.division_id)
    data = serialize_expense(expense)
    data['documents'] = [serialize_document(d) for d in expense.documents.all()]
    data['approvals'] = _serialize_approvals(expense.approvals.select_related('approver').order_by('level'))
    return data


@operation("Failed to add document")
def add_expense_document(actor, expense_id, uploaded_file):
    require_actor(actor)
    expense = get_or_not_found(Expense.objects.select_related('budget'), "Expense not found", pk=expense_id)
    require_owner_or_admin(actor, expense.created_by_id)

    form = ExpenseDocumentForm(files={'document': uploaded_file})
    validate(form)
    with transaction.atomic():
        document = form.save(commit=False)
        document.expense = expense
        document.file_name = uploaded_file.name
        document.uploaded_by = actor
        document.save()
        log_activity(actor, 'UPLOAD', f"Attached {document.file_name} to expense {expense.code}",
                     model_name='ExpenseDocument', record_id=document.pk)
    return serialize_document(document)


@operation("Failed to delete document")
def delete_expense_document(actor, document_id):
    require_actor(actor)
    document = get_or_not_found(
        ExpenseDocument.objects.select_related('expense'), "Document not found", pk=document_id
    )
    require_owner_or_admin(actor, document.expense.created_by_id)

    with transaction.atomic():
        file_name = document.file_name
        document.document.delete(save=False)
        document.delete()
        log_activity(actor, 'DELETE', f"Removed {file_name} from expense {document.expense.code}",
                     model_name='ExpenseDocument', record_id=document_id)
    return None