"""
Multi-approver workflow for budgets and expenses.

Submitting a subject fans out one PENDING approval to every eligible approver
of its division. The round is unanimous: one rejection rejects every other
pending approval of the subject, and the subject completes only once all of
its approvals are APPROVED.
"""
import logging
from dataclasses import dataclass
from typing import ClassVar, Union

from django.db import transaction
from django.utils import timezone

from apps.admin_panel.utils import log_activity
from apps.user_accounts.models import User
from .exceptions import (
    AccessDenied,
    AlreadyDecided,
    InsufficientPermission,
    InvalidState,
    ValidationFailed,
)
from .models import Approval, Budget, Expense, Notification
from .notifications import build_link, notify
from .permissions import require_actor
from .results import operation
from .utils import get_or_not_found

logger = logging.getLogger(__name__)

AUTO_REJECT_MESSAGE = "Auto-rejected due to rejection by another approver"

DECISION_APPROVE = 'APPROVE'
DECISION_REJECT = 'REJECT'


class ApprovalSubject:
    """What an approval round is about. Use ``subject_of`` to obtain one."""
    approval_type: ClassVar[str]
    link_kind: ClassVar[str]
    request_notification: ClassVar[str]
    approved_notification: ClassVar[str]
    rejected_notification: ClassVar[str]

    @property
    def instance(self):
        raise NotImplementedError

    @property
    def division_id(self):
        return self.instance.division_id

    @property
    def creator(self):
        return self.instance.created_by

    @property
    def link(self):
        return build_link(self.link_kind, self.instance.pk)

    def approvals(self):
        return Approval.objects.for_reference(self.approval_type, self.instance.pk)

    def approval_fields(self):
        raise NotImplementedError

    def request_context(self):
        raise NotImplementedError

    def locked(self):
        """Same subject, re-read with a row lock for the current transaction"""
        model = type(self.instance)
        return type(self)(model.objects.select_for_update().get(pk=self.instance.pk))

    def on_fully_approved(self):
        pass

    def on_rejected(self):
        pass


@dataclass(frozen=True)
class BudgetSubject(ApprovalSubject):
    budget: Budget

    approval_type = Approval.TYPE_BUDGET
    link_kind = 'budgets'
    request_notification = Notification.TYPE_BUDGET_APPROVAL
    approved_notification = Notification.TYPE_BUDGET_APPROVED
    rejected_notification = Notification.TYPE_BUDGET_REJECTED

    @property
    def instance(self):
        return self.budget

    def approval_fields(self):
        return {'budget': self.budget}

    def request_context(self):
        return {
            'code': self.budget.code,
            'name': self.budget.name,
            'name_local': self.budget.name_local,
        }

    # A fully approved budget keeps its status; only its creator is told.


@dataclass(frozen=True)
class ExpenseSubject(ApprovalSubject):
    expense: Expense

    approval_type = Approval.TYPE_EXPENSE
    link_kind = 'expenses'
    request_notification = Notification.TYPE_EXPENSE_APPROVAL
    approved_notification = Notification.TYPE_EXPENSE_APPROVED
    rejected_notification = Notification.TYPE_EXPENSE_REJECTED

    @property
    def instance(self):
        return self.expense

    def approval_fields(self):
        return {'expense': self.expense}

    def request_context(self):
        return {
            'code': self.expense.code,
            'title': self.expense.title,
            'title_local': self.expense.title_local or self.expense.title,
        }

    def on_fully_approved(self):
        self._set_status(Expense.STATUS_APPROVED)

    def on_rejected(self):
        self._set_status(Expense.STATUS_REJECTED)

    def _set_status(self, status):
        self.expense.status = status
        self.expense.save(update_fields=['status', 'updated_at'])


Subject = Union[BudgetSubject, ExpenseSubject]


def subject_of(approval) -> Subject:
    if approval.type == Approval.TYPE_BUDGET:
        return BudgetSubject(approval.budget)
    return ExpenseSubject(approval.expense)


def eligible_approvers(division_id):
    """Active approvers of the division, oldest account first"""
    return User.objects.filter(
        division_id=division_id,
        role__in=User.APPROVER_ROLES,
        is_active=True,
    ).order_by('date_joined', 'id')


def fan_out(subject):
    """
    Create one PENDING approval and one request notification per eligible
    approver. Must run inside the caller's transaction.
    """
    approvers = list(eligible_approvers(subject.division_id))
    if not approvers:
        logger.warning(
            "No eligible approvers in division %s for %s %s; it cannot be decided",
            subject.division_id, subject.approval_type, subject.instance.pk,
        )
        return []

    context = subject.request_context()
    approvals = []
    for index, approver in enumerate(approvers):
        approvals.append(Approval.objects.create(
            type=subject.approval_type,
            reference_id=subject.instance.pk,
            level=index + 1,
            approver=approver,
            **subject.approval_fields()
        ))
        notify(approver, subject.request_notification, subject.link, **context)

    logger.info(
        "%s %s sent to %s approver(s)", subject.approval_type, subject.instance.pk, len(approvals)
    )
    return approvals


def serialize_approval(approval):
    data = {
        'id': str(approval.pk),
        'type': approval.type,
        'reference_id': str(approval.reference_id),
        'level': approval.level,
        'status': approval.status,
        'approver_id': approval.approver_id,
        'comments': approval.comments,
        'decided_at': approval.decided_at.isoformat() if approval.decided_at else None,
        'created_at': approval.created_at.isoformat(),
    }
    if approval.type == Approval.TYPE_BUDGET:
        budget = approval.budget
        data['subject'] = {
            'code': budget.code,
            'name': budget.name,
            'name_local': budget.name_local,
            'amount': str(budget.allocated_amount),
            'division': budget.division.name,
            'created_by': budget.created_by.name,
        }
    else:
        expense = approval.expense
        data['subject'] = {
            'code': expense.code,
            'title': expense.title,
            'title_local': expense.title_local,
            'amount': str(expense.amount),
            'division': expense.division.name,
            'created_by': expense.created_by.name,
        }
    return data


@operation("Failed to submit budget for approval")
def submit_budget_for_approval(actor, budget_id):
    require_actor(actor)
    with transaction.atomic():
        budget = get_or_not_found(Budget.objects.select_for_update(), "Budget not found", pk=budget_id)
        if budget.approvals.exists():
            logger.warning("Budget %s submitted again; starting another approval round", budget.code)
        approvals = fan_out(BudgetSubject(budget))
        log_activity(actor, 'SUBMIT', f"Submitted budget {budget.code} for approval",
                     model_name='Budget', record_id=budget.pk)
    return {'approvals': len(approvals)}


@operation("Failed to submit expense for approval")
def submit_expense_for_approval(actor, expense_id):
    require_actor(actor)
    with transaction.atomic():
        expense = get_or_not_found(Expense.objects.select_for_update(), "Expense not found", pk=expense_id)
        if expense.status != Expense.STATUS_DRAFT:
            raise InvalidState("Only draft expenses can be submitted")
        expense.status = Expense.STATUS_PENDING_APPROVAL
        expense.save(update_fields=['status', 'updated_at'])
        approvals = fan_out(ExpenseSubject(expense))
        log_activity(actor, 'SUBMIT', f"Submitted expense {expense.code} for approval",
                     model_name='Expense', record_id=expense.pk)
    return {'approvals': len(approvals)}


def _check_decidable(actor, approval, approval_type):
    if approval.approver_id != actor.pk:
        raise AccessDenied()
    if approval.status != Approval.STATUS_PENDING:
        raise AlreadyDecided()
    if approval.type != approval_type:
        raise ValidationFailed("Invalid approval type")


def decide(actor, approval_id, approval_type, decision, comments=None):
    """
    Record ``actor``'s decision on one approval and apply its cascade.

    Lock order is subject row, then the subject's approval rows, so two
    approvers finishing the same round serialize on the subject and the
    second one sees the first one's vote.
    """
    require_actor(actor)
    comments = (comments or '').strip()
    if decision == DECISION_REJECT and not comments:
        raise ValidationFailed("Comments required for rejection")

    approval = get_or_not_found(
        Approval.objects.select_related('budget', 'expense'), "Approval not found", pk=approval_id
    )
    _check_decidable(actor, approval, approval_type)

    with transaction.atomic():
        subject = subject_of(approval).locked()
        round_approvals = {a.pk: a for a in subject.approvals().select_for_update()}
        approval = round_approvals[approval.pk]
        _check_decidable(actor, approval, approval_type)

        now = timezone.now()
        approval.comments = comments
        approval.decided_at = now

        if decision == DECISION_REJECT:
            approval.status = Approval.STATUS_REJECTED
            approval.save(update_fields=['status', 'comments', 'decided_at'])
            cascaded = subject.approvals().pending().exclude(pk=approval.pk).update(
                status=Approval.STATUS_REJECTED,
                comments=AUTO_REJECT_MESSAGE,
                decided_at=now,
            )
            subject.on_rejected()
            notify(subject.creator, subject.rejected_notification, subject.link,
                   code=subject.instance.code, comments=comments)
            completed = True
            logger.info("%s %s rejected by %s; %s other approval(s) auto-rejected",
                        approval_type, subject.instance.pk, actor.pk, cascaded)
        else:
            approval.status = Approval.STATUS_APPROVED
            approval.save(update_fields=['status', 'comments', 'decided_at'])
            completed = all(
                a.status == Approval.STATUS_APPROVED or a.pk == approval.pk
                for a in round_approvals.values()
            )
            if completed:
                subject.on_fully_approved()
                notify(subject.creator, subject.approved_notification, subject.link,
                       code=subject.instance.code)
                logger.info("%s %s fully approved", approval_type, subject.instance.pk)

        log_activity(
            actor,
            decision,
            f"{approval.get_status_display()} {approval_type.lower()} {subject.instance.code} (level {approval.level})",
            model_name=type(subject.instance).__name__,
            record_id=subject.instance.pk,
        )

    return {
        'approval': str(approval.pk),
        'status': approval.status,
        'completed': completed,
    }


@operation("Failed to approve budget")
def approve_budget(actor, approval_id, comments=None):
    return decide(actor, approval_id, Approval.TYPE_BUDGET, DECISION_APPROVE, comments)


@operation("Failed to reject budget")
def reject_budget(actor, approval_id, comments):
    return decide(actor, approval_id, Approval.TYPE_BUDGET, DECISION_REJECT, comments)


@operation("Failed to approve expense")
def approve_expense(actor, approval_id, comments=None):
    return decide(actor, approval_id, Approval.TYPE_EXPENSE, DECISION_APPROVE, comments)


@operation("Failed to reject expense")
def reject_expense(actor, approval_id, comments):
    return decide(actor, approval_id, Approval.TYPE_EXPENSE, DECISION_REJECT, comments)


@operation("Failed to fetch pending approvals")
def get_pending_approvals(actor):
    require_actor(actor)
    if not actor.can_approve:
        raise InsufficientPermission()
    approvals = (
        actor.approvals.pending()
        .select_related('budget__division', 'budget__created_by',
                        'expense__division', 'expense__created_by')
        .order_by('-created_at')
    )
    return [serialize_approval(a) for a in approvals]


@operation("Failed to count pending approvals")
def get_pending_approval_count(actor):
    require_actor(actor)
    if not actor.can_approve:
        return 0
    return actor.approvals.pending().count()
