import logging

from django.conf import settings
from django.db import transaction

from .models import Notification
from .permissions import require_actor
from .results import operation
from .utils import get_or_not_found

logger = logging.getLogger(__name__)

NOTIFICATION_LIMIT = 50

# type -> (title, title_local, message, message_local)
TEMPLATES = {
    Notification.TYPE_BUDGET_APPROVAL: (
        "New Budget Approval Request",
        "คำขออนุมัติงบประมาณใหม่",
        "Budget {code} - {name} requires your approval",
        "งบประมาณ {code} - {name_local} ต้องการการอนุมัติของคุณ",
    ),
    Notification.TYPE_BUDGET_APPROVED: (
        "Budget Approved",
        "งบประมาณได้รับการอนุมัติ",
        "Your budget {code} has been approved",
        "งบประมาณของคุณ {code} ได้รับการอนุมัติแล้ว",
    ),
    Notification.TYPE_BUDGET_REJECTED: (
        "Budget Rejected",
        "งบประมาณถูกปฏิเสธ",
        "Your budget {code} has been rejected: {comments}",
        "งบประมาณของคุณ {code} ถูกปฏิเสธ: {comments}",
    ),
    Notification.TYPE_EXPENSE_APPROVAL: (
        "New Expense Approval Request",
        "คำขออนุมัติค่าใช้จ่ายใหม่",
        "Expense {code} - {title} requires your approval",
        "ค่าใช้จ่าย {code} - {title_local} ต้องการการอนุมัติของคุณ",
    ),
    Notification.TYPE_EXPENSE_APPROVED: (
        "Expense Approved",
        "ค่าใช้จ่ายได้รับการอนุมัติ",
        "Your expense {code} has been approved",
        "ค่าใช้จ่ายของคุณ {code} ได้รับการอนุมัติแล้ว",
    ),
    Notification.TYPE_EXPENSE_REJECTED: (
        "Expense Rejected",
        "ค่าใช้จ่ายถูกปฏิเสธ",
        "Your expense {code} has been rejected: {comments}",
        "ค่าใช้จ่ายของคุณ {code} ถูกปฏิเสธ: {comments}",
    ),
}


def build_link(kind, object_id):
    """kind is 'budgets' or 'expenses'"""
    return f"{settings.BUDGET_NOTIFICATION_LINK_PREFIX}/{kind}/{object_id}"


def notify(recipient, notification_type, link, **context):
    """Create one notification; joins the caller's transaction"""
    title, title_local, message, message_local = TEMPLATES[notification_type]
    return Notification.objects.create(
        recipient=recipient,
        type=notification_type,
        title=title,
        title_local=title_local,
        message=message.format(**context),
        message_local=message_local.format(**context),
        link=link,
    )


def serialize_notification(notification):
    return {
        'id': notification.pk,
        'type': notification.type,
        'title': notification.title,
        'title_local': notification.title_local,
        'message': notification.message,
        'message_local': notification.message_local,
        'link': notification.link,
        'is_read': notification.is_read,
        'created_at': notification.created_at.isoformat(),
    }


@operation("Failed to fetch notifications")
def get_notifications(actor, unread_only=False):
    require_actor(actor)
    notifications = actor.notifications.all()
    if unread_only:
        notifications = notifications.filter(is_read=False)
    return [serialize_notification(n) for n in notifications[:NOTIFICATION_LIMIT]]


@operation("Failed to mark notification as read")
def mark_notification_as_read(actor, notification_id):
    require_actor(actor)
    with transaction.atomic():
        notification = get_or_not_found(
            actor.notifications.select_for_update(), "Notification not found", pk=notification_id
        )
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=['is_read'])
    return serialize_notification(notification)


@operation("Failed to mark notifications as read")
def mark_all_notifications_as_read(actor):
    require_actor(actor)
    updated = actor.notifications.filter(is_read=False).update(is_read=True)
    logger.debug("Marked %s notifications read for user %s", updated, actor.pk)
    return {'updated': updated}
