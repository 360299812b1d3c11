"""Utility functions for audit logging, document numbering and pagination"""
import logging
from datetime import date, datetime
from decimal import Decimal

from django.core.paginator import Paginator
from django.db import transaction
from django_filters.utils import translate_validation

from .models import AuditLog, DocumentSequence

logger = logging.getLogger(__name__)

AUDIT_SKIP_FIELDS = {'id', 'tenant_id', 'tenant', 'created_at', 'updated_at'}


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('HTTP_X_REAL_IP') or request.META.get('REMOTE_ADDR')
    return ip or None


def to_json_value(value):
    """Make a model value safe to store in a JSONField"""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    return value


def compute_changes(old_values, new_values):
    """
    Diff two value dicts.

    Returns {field: {'old': ..., 'new': ...}} for every field whose value
    differs, skipping identity and timestamp fields.
    """
    old_values = old_values or {}
    new_values = new_values or {}
    changes = {}
    for key in set(old_values) | set(new_values):
        if key in AUDIT_SKIP_FIELDS:
            continue
        old = to_json_value(old_values.get(key))
        new = to_json_value(new_values.get(key))
        if old != new:
            changes[key] = {'old': old, 'new': new}
    return changes


def create_audit_log(request=None, action=None, resource_type=None, resource_id=None,
                     resource_name=None, old_values=None, new_values=None, changes=None,
                     notes=None, user=None, tenant=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, IP and user agent) - optional if user is provided
        action: Action type (create, update, delete, confirm, receive, ...)
        resource_type: Kind of record acted upon (product, purchase_order, ...)
        resource_id: ID of the record
        resource_name: Human-readable name (e.g., SKU, PO number)
        old_values / new_values: Snapshots before and after the change
        changes: Field diff; computed from old/new values when omitted
        notes: Free text
        user: Optional user override (defaults to request.user if request provided)
        tenant: Optional tenant override (defaults to the user's tenant)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user
        if audit_user is not None and not audit_user.is_authenticated:
            audit_user = None

        if not action or not resource_type:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, resource_type={resource_type})")
            return None

        if changes is None and old_values is not None and new_values is not None:
            changes = compute_changes(old_values, new_values)

        return AuditLog.objects.create(
            tenant=tenant or (audit_user.tenant if audit_user else None),
            user=audit_user,
            user_name=audit_user.name if audit_user else None,
            user_email=audit_user.email if audit_user else None,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_name=resource_name,
            old_values=to_json_value(old_values),
            new_values=to_json_value(new_values),
            changes=to_json_value(changes),
            notes=notes,
            ip_address=get_client_ip(request) if request else None,
            user_agent=request.META.get('HTTP_USER_AGENT') if request and hasattr(request, 'META') else None,
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def next_document_number(tenant, prefix, width=6):
    """Allocate the next PREFIX-000001 number for a tenant"""
    with transaction.atomic():
        sequence, _ = DocumentSequence.objects.select_for_update().get_or_create(tenant=tenant, prefix=prefix)
        sequence.last_value += 1
        sequence.save(update_fields=['last_value'])
    return f"{prefix}-{str(sequence.last_value).zfill(width)}"


def apply_filters(filterset_class, request, queryset, data=None):
    """Run a FilterSet over the query string; malformed values raise a 400 ValidationError"""
    filterset = filterset_class(request.query_params if data is None else data, queryset=queryset, request=request)
    if not filterset.is_valid():
        raise translate_validation(filterset.errors)
    return filterset.qs


def paginate(request, queryset, serializer_class, default_limit=20, context=None):
    """Page a queryset the way every list endpoint does"""
    try:
        page = int(request.query_params.get('page', 1))
        limit = int(request.query_params.get('limit', default_limit))
    except (TypeError, ValueError):
        page, limit = 1, default_limit
    limit = max(1, min(limit, 200))

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }


def model_snapshot(instance, fields):
    """Collect the given attribute values of a model instance for audit old/new values"""
    snapshot = {}
    for field in fields:
        value = getattr(instance, field, None)
        if hasattr(value, 'pk'):
            value = value.pk
        snapshot[field] = to_json_value(value)
    return snapshot


def document_snapshot(document, fields, line_fields):
    """model_snapshot of a header plus its lines"""
    snapshot = model_snapshot(document, fields)
    snapshot['lines'] = [model_snapshot(line, line_fields) for line in document.lines.all()]
    return snapshot
