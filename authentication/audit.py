import logging

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def log_action(request, action, entity_type, entity_id='', entity_name='', description='', changes=None, user=None):
    """Record an audit trail entry for the acting user"""
    user = user or getattr(request, 'user', None)
    if user is not None and not user.is_authenticated:
        user = None

    branch_id = None
    if user is not None:
        branch_id = user.branch_id or getattr(request, 'active_branch_id', None)

    entry = AuditLog.objects.create(
        user=user,
        username=user.username if user else '',
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id or ''),
        entity_name=str(entity_name or '')[:255],
        description=description,
        changes=changes or {},
        ip_address=get_client_ip(request),
        user_agent=request.META.get('HTTP_USER_AGENT', ''),
        branch_id=branch_id,
    )
    logger.info(f"Audit: {entry.username or 'anonymous'} {action} {entity_type} {entity_id}")
    return entry
