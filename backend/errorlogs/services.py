"""Error grouping and the deduplicating upsert used by every error source"""
import hashlib
import logging
import re
import traceback

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .models import ErrorLog

logger = logging.getLogger('backend.errorlogs')

LINE_COLUMN_RE = re.compile(r':\d+:\d+')
HASH_LENGTH = 16


def _hash(value):
    return hashlib.sha256(value.encode('utf-8')).hexdigest()[:HASH_LENGTH]


def generate_error_hash(message, stack_trace=None):
    """Groups errors by message and the first stack frame"""
    first_line = (stack_trace or '').split('\n')[0]
    return _hash(f"{message}:{first_line}")


def generate_fingerprint(message, stack_trace=None, url=None):
    """Exact deduplication key: message, top three frames without line/column, url"""
    clean_stack = '|'.join(
        LINE_COLUMN_RE.sub('', line) for line in (stack_trace or '').split('\n')[:3]
    ) if stack_trace else ''
    return _hash(f"{message}:{clean_stack}:{url or ''}")


def upsert_error_log(message, stack_trace=None, error_type='unknown', severity='error', url=None,
                     method=None, status_code=None, user_agent=None, ip_address=None, user=None,
                     tenant=None, metadata=None, tags=None):
    """
    Record one occurrence of an error.

    An open or investigating row with the same fingerprint is bumped;
    otherwise a new row is inserted.
    """
    error_hash = generate_error_hash(message, stack_trace)
    fingerprint = generate_fingerprint(message, stack_trace, url)
    now = timezone.now()

    with transaction.atomic():
        existing = (
            ErrorLog.objects.select_for_update()
            .filter(fingerprint=fingerprint, status__in=['open', 'investigating'])
            .order_by('-last_seen_at')
            .first()
        )
        if existing:
            existing.occurrence_count = F('occurrence_count') + 1
            existing.last_seen_at = now
            existing.url = url or existing.url
            existing.user_agent = user_agent or existing.user_agent
            existing.ip_address = ip_address or existing.ip_address
            existing.user = user or existing.user
            existing.tenant = tenant or existing.tenant
            existing.save(update_fields=[
                'occurrence_count', 'last_seen_at', 'url', 'user_agent', 'ip_address', 'user', 'tenant',
            ])
            existing.refresh_from_db()
            return existing

        return ErrorLog.objects.create(
            error_hash=error_hash,
            fingerprint=fingerprint,
            error_type=error_type or 'unknown',
            severity=severity or 'error',
            message=message,
            stack_trace=stack_trace,
            url=url,
            method=method,
            status_code=status_code,
            user_agent=user_agent,
            ip_address=ip_address,
            user=user,
            tenant=tenant,
            metadata=metadata or {},
            tags=tags or [],
            first_seen_at=now,
            last_seen_at=now,
        )


def log_server_error(message, stack_trace=None, error_type='server', severity='error', url=None,
                     method=None, status_code=None, user=None, tenant=None, metadata=None, tags=None,
                     ip_address=None, user_agent=None):
    """Server-side error logger. Never raises."""
    try:
        return upsert_error_log(
            message=message,
            stack_trace=stack_trace,
            error_type=error_type,
            severity=severity,
            url=url,
            method=method,
            status_code=status_code,
            user_agent=user_agent,
            ip_address=ip_address,
            user=user,
            tenant=tenant,
            metadata=metadata,
            tags=tags,
        )
    except Exception as e:
        # Logging an error must not raise another one
        logger.error(f"Failed to log server error: {str(e)}")
        return None


def log_request_exception(request, exc):
    """Record an unexpected exception raised while serving an API request"""
    user = getattr(request, 'user', None)
    if user is not None and not user.is_authenticated:
        user = None
    return log_server_error(
        message=str(exc) or exc.__class__.__name__,
        stack_trace=''.join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        error_type='server',
        severity='error',
        url=request.build_absolute_uri() if hasattr(request, 'build_absolute_uri') else None,
        method=request.method,
        status_code=500,
        user=user,
        tenant=user.tenant if user else None,
        user_agent=request.META.get('HTTP_USER_AGENT'),
    )
