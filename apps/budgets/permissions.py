"""Authorization checks as plain functions of (actor, resource)."""
from apps.user_accounts.models import User

from .exceptions import AccessDenied, InsufficientPermission, Unauthorized


def require_actor(actor):
    if actor is None or not getattr(actor, 'is_authenticated', False) or not actor.is_active:
        raise Unauthorized()
    return actor


def require_admin(actor, message=None):
    require_actor(actor)
    if not actor.is_admin:
        raise InsufficientPermission(message)
    return actor


def require_super_admin(actor, message=None):
    require_actor(actor)
    if not actor.is_super_admin:
        raise InsufficientPermission(message)
    return actor


def require_editor(actor):
    """Viewers are read-only; every other role may create budgets, allocations and expenses"""
    require_actor(actor)
    if actor.role == User.ROLE_VIEWER:
        raise InsufficientPermission()
    return actor


def require_owner_or_admin(actor, created_by_id):
    require_actor(actor)
    if not actor.is_admin and created_by_id != actor.pk:
        raise AccessDenied()
    return actor


def require_division_access(actor, division_id):
    require_actor(actor)
    if not actor.is_admin and division_id != actor.division_id:
        raise AccessDenied()
    return actor
