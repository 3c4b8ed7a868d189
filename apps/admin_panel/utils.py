from .models import AuditTrail


def log_activity(user, action, detail, model_name=None, record_id=None, request=None):
    """Append an audit row; runs inside the caller's transaction when there is one"""
    ip = request.META.get('REMOTE_ADDR') if request else None
    AuditTrail.objects.create(
        user=user,
        action=action,
        detail=detail,
        model_name=model_name or '',
        record_id=str(record_id) if record_id is not None else None,
        ip_address=ip
    )
