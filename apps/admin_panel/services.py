"""
Division and user administration.

Same contract as ``apps.budgets.services``: the acting user comes first and
every public function returns an ``ActionResult``.
"""
import logging

from django.db import transaction
from django.db.models import Count, Q, Sum

from apps.budgets.exceptions import DuplicateCode, InsufficientPermission, InvalidState, ValidationFailed
from apps.budgets.forms import bound_form, validate
from apps.budgets.managers import ZERO
from apps.budgets.models import Expense
from apps.budgets.permissions import (
    require_actor,
    require_admin,
    require_division_access,
    require_super_admin,
)
from apps.budgets.results import operation
from apps.budgets.utils import get_or_not_found
from apps.user_accounts.models import Division, User
from .forms import DivisionForm, UserForm, UserUpdateForm
from .models import AuditTrail
from .utils import log_activity

logger = logging.getLogger(__name__)

AUDIT_TRAIL_LIMIT = 200

# Only administrators may change these on a user
ADMIN_ONLY_USER_FIELDS = ('role', 'division', 'is_active')


def serialize_division(division):
    data = {
        'id': division.pk,
        'name': division.name,
        'name_local': division.name_local,
        'description_local': division.description_local,
        'is_active': division.is_active,
        'created_at': division.created_at.isoformat(),
    }
    for counter in ('user_count', 'budget_count', 'expense_count'):
        if hasattr(division, counter):
            data[counter] = getattr(division, counter)
    return data


def serialize_user(user):
    division = user.division
    data = {
        'id': user.pk,
        'email': user.email,
        'name': user.name,
        'name_local': user.name_local,
        'role': user.role,
        'is_active': user.is_active,
        'division': {'id': division.pk, 'name_local': division.name_local} if division else None,
        'date_joined': user.date_joined.isoformat(),
    }
    for counter in ('budget_count', 'expense_count', 'approval_count'):
        if hasattr(user, counter):
            data[counter] = getattr(user, counter)
    return data


def _email_taken(email, exclude=None):
    users = User.objects.filter(email__iexact=email)
    if exclude is not None:
        users = users.exclude(pk=exclude.pk)
    return users.exists()


# Divisions

@operation("Failed to create division")
def create_division(actor, data):
    require_admin(actor)
    form = DivisionForm(data)
    validate(form)
    with transaction.atomic():
        division = form.save()
        log_activity(actor, 'CREATE', f"Created division {division}", model_name='Division', record_id=division.pk)
    return serialize_division(division)


@operation("Failed to update division")
def update_division(actor, division_id, data):
    require_admin(actor)
    division = get_or_not_found(Division.objects.all(), "Division not found", pk=division_id)
    form = bound_form(DivisionForm, division, data)
    validate(form)
    with transaction.atomic():
        division = form.save()
        log_activity(actor, 'UPDATE', f"Updated division {division}", model_name='Division', record_id=division.pk)
    return serialize_division(division)


@operation("Failed to delete division")
def delete_division(actor, division_id):
    require_super_admin(actor, "Only Super Admin can delete divisions")
    division = get_or_not_found(
        Division.objects.annotate(
            user_count=Count('users', distinct=True),
            budget_count=Count('budgets', distinct=True),
            expense_count=Count('expenses', distinct=True),
        ),
        "Division not found",
        pk=division_id,
    )
    if division.user_count:
        raise InvalidState("Cannot delete division with users")
    if division.budget_count:
        raise InvalidState("Cannot delete division with budgets")
    if division.expense_count:
        raise InvalidState("Cannot delete division with expenses")

    with transaction.atomic():
        label = str(division)
        division.delete()
        log_activity(actor, 'DELETE', f"Deleted division {label}", model_name='Division', record_id=division_id)
    logger.info("Division %s deleted by %s", label, actor.pk)
    return None


@operation("Failed to fetch statistics")
def get_division_statistics(actor, division_id):
    require_actor(actor)
    division = get_or_not_found(Division.objects.all(), "Division not found", pk=division_id)
    require_division_access(actor, division.pk)

    total_allocated = division.budgets.aggregate(total=Sum('allocated_amount'))['total'] or ZERO
    total_spent = Expense.objects.filter(budget__division=division).consuming().total_amount()
    utilization = (total_spent / total_allocated * 100) if total_allocated else ZERO
    return {
        'division_name': division.name_local or "Unknown Division",
        'total_users': division.users.count(),
        'total_budgets': division.budgets.count(),
        'total_expenses': division.expenses.count(),
        'total_allocated': str(total_allocated),
        'total_spent': str(total_spent),
        'remaining': str(total_allocated - total_spent),
        'utilization_rate': round(float(utilization), 2),
    }


# Users

def _user_queryset():
    return User.objects.select_related('division')


@operation("Failed to fetch users")
def get_users(actor, division_id=None):
    require_admin(actor)
    users = _user_queryset().annotate(
        budget_count=Count('created_budgets', distinct=True),
        expense_count=Count('created_expenses', distinct=True),
        approval_count=Count('approvals', distinct=True),
    )
    if division_id:
        users = users.filter(division_id=division_id)
    return [serialize_user(u) for u in users.order_by('-date_joined')]


@operation("Failed to fetch users")
def get_users_not_in_division(actor, division_id):
    """Active users that could be moved into the division"""
    require_admin(actor)
    users = _user_queryset().filter(is_active=True).filter(
        Q(division__isnull=True) | ~Q(division_id=division_id)
    )
    return [serialize_user(u) for u in users.order_by('name')]


@operation("Failed to create user")
def create_user(actor, data):
    require_admin(actor)
    if data.get('email') and _email_taken(data['email']):
        raise DuplicateCode("Email already exists")
    if not data.get('password'):
        raise ValidationFailed("Password is required")

    form = UserForm({'role': User.ROLE_STAFF, 'is_active': True, **data})
    validate(form)
    with transaction.atomic():
        user = form.save()
        log_activity(actor, 'CREATE', f"Created user {user.email}", model_name='User', record_id=user.pk)
    logger.info("User %s created by %s with role %s", user.email, actor.pk, user.role)
    return serialize_user(user)


@operation("Failed to update user")
def update_user(actor, user_id, data):
    require_actor(actor)
    user = get_or_not_found(_user_queryset(), "User not found", pk=user_id)
    if not actor.is_admin and actor.pk != user.pk:
        raise InsufficientPermission()

    if not actor.is_admin:
        data = {key: value for key, value in data.items() if key not in ADMIN_ONLY_USER_FIELDS}
    if data.get('email') and _email_taken(data['email'], exclude=user):
        raise DuplicateCode("Email already exists")

    form = bound_form(UserUpdateForm, user, data)
    validate(form)
    with transaction.atomic():
        user = form.save()
        log_activity(actor, 'UPDATE', f"Updated user {user.email}", model_name='User', record_id=user.pk)
    return serialize_user(user)


@operation("Failed to delete user")
def delete_user(actor, user_id):
    require_super_admin(actor, "Only Super Admin can delete users")
    user = get_or_not_found(User.objects.all(), "User not found", pk=user_id)
    if user.created_budgets.exists():
        raise InvalidState("Cannot delete user with created budgets")
    if user.created_expenses.exists():
        raise InvalidState("Cannot delete user with created expenses")
    if user.pk == actor.pk:
        raise InvalidState("Cannot delete your own account")

    with transaction.atomic():
        email = user.email
        user.delete()
        log_activity(actor, 'DELETE', f"Deleted user {email}", model_name='User', record_id=user_id)
    logger.info("User %s deleted by %s", email, actor.pk)
    return None


@operation("Failed to toggle user status")
def toggle_user_status(actor, user_id):
    require_admin(actor)
    user = get_or_not_found(_user_queryset(), "User not found", pk=user_id)
    if user.pk == actor.pk:
        raise InvalidState("Cannot deactivate your own account")

    with transaction.atomic():
        user.is_active = not user.is_active
        user.save(update_fields=['is_active'])
        status = "Activated" if user.is_active else "Deactivated"
        log_activity(actor, 'UPDATE', f"{status} user {user.email}", model_name='User', record_id=user.pk)
    return serialize_user(user)


@operation("Failed to assign user to division")
def assign_user_to_division(actor, user_id, division_id):
    require_admin(actor)
    user = get_or_not_found(_user_queryset(), "User not found", pk=user_id)
    division = get_or_not_found(Division.objects.all(), "Division not found", pk=division_id)

    with transaction.atomic():
        user.division = division
        user.save(update_fields=['division'])
        log_activity(actor, 'UPDATE', f"Assigned {user.email} to division {division}",
                     model_name='User', record_id=user.pk)
    return serialize_user(user)


# Audit trail

@operation("Failed to fetch audit trail")
def get_audit_trail(actor, model_name=None, action=None, user_id=None):
    require_admin(actor)
    entries = AuditTrail.objects.select_related('user')
    if model_name:
        entries = entries.filter(model_name=model_name)
    if action:
        entries = entries.filter(action=action)
    if user_id:
        entries = entries.filter(user_id=user_id)
    return [
        {
            'id': entry.pk,
            'user': entry.user.email if entry.user else None,
            'action': entry.action,
            'model_name': entry.model_name,
            'record_id': entry.record_id,
            'detail': entry.detail,
            'ip_address': entry.ip_address,
            'timestamp': entry.timestamp.isoformat(),
        }
        for entry in entries[:AUDIT_TRAIL_LIMIT]
    ]
