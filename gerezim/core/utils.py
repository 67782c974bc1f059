"""Helpers shared by the API views: audit trail, change diffs, error payloads"""
import logging

from rest_framework.response import Response

from .exceptions import ValidationError
from .models import AuditLog

logger = logging.getLogger(__name__)

NULL_IDS = (None, '', 'none', 'null')


def get_client_ip(request):
    """First hop of X-Forwarded-For, falling back to REMOTE_ADDR"""
    meta = getattr(request, 'META', None)
    if not meta:
        return None
    forwarded = meta.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return meta.get('REMOTE_ADDR') or None


def snapshot(instance, fields):
    """Stringified values of `fields` on a model instance, for diffing before and after a save"""
    values = {}
    for field in fields:
        value = getattr(instance, field, None)
        values[field] = value if value is None or isinstance(value, (bool, int)) else str(value)
    return values


def field_changes(before, after):
    """{'field': {'old': ..., 'new': ...}} for every key whose value differs"""
    return {
        field: {'old': before.get(field), 'new': after.get(field)}
        for field in after
        if before.get(field) != after.get(field)
    }


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None):
    """
    Record who did what to which object.

    The acting user comes from `user` when given, otherwise from `request.user`.
    Anonymous users are stored as NULL. Returns the AuditLog, or None when a
    required field is missing or the insert fails; the caller's operation has
    already happened by then and must not be undone by a logging problem.
    """
    if not (action and model_name and object_id is not None):
        logger.warning(f"Skipping audit log: action={action} model={model_name} object_id={object_id}")
        return None

    actor = user if user is not None else getattr(request, 'user', None)
    if actor is not None and not actor.is_authenticated:
        actor = None

    entry = AuditLog(
        user=actor,
        action=action,
        model_name=model_name,
        object_id=str(object_id),
        object_name=object_name,
        changes=changes or {},
        ip_address=get_client_ip(request),
    )
    try:
        entry.save()
    except Exception as e:
        logger.error(f"Could not write audit log for {model_name}#{object_id} ({action}): {e}")
        return None
    return entry


def error_response(error):
    """Response for a GerezimError, using the status code the error class declares"""
    return Response({'error': error.message}, status=error.status_code)


def parse_optional_id(value):
    """
    Parse an optional foreign key coming from a form or query string.
    '', 'none' and 'null' mean no reference.
    """
    if value in NULL_IDS:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Identificador inválido: {value}")
