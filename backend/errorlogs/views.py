import logging
from datetime import timedelta
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.db.models import Count
from django.db.models.functions import TruncDate
from django.shortcuts import get_object_or_404
from django.utils import timezone
from backend.core.permissions import IsPlatformAdmin
from backend.core.utils import apply_filters, get_client_ip, paginate
from .filters import ErrorLogFilter
from .models import ErrorLog
from .serializers import (
    ErrorLogSerializer, ClientErrorSerializer, ErrorStatusSerializer,
    BulkErrorStatusSerializer, BulkDeleteSerializer
)
from .services import upsert_error_log

logger = logging.getLogger('backend.errorlogs')

ERROR_PAGE_SIZE = 50
CLOSED_STATUSES = ('resolved', 'ignored')


@api_view(['POST'])
@permission_classes([AllowAny])
def report_error(request):
    """Public endpoint the frontend posts errors to; authentication is optional"""
    serializer = ClientErrorSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    user = request.user if request.user and request.user.is_authenticated else None
    error_log = upsert_error_log(
        message=data['message'],
        stack_trace=data.get('stack_trace') or None,
        error_type=data['error_type'],
        severity=data['severity'],
        url=data.get('url') or None,
        method=data.get('method') or None,
        status_code=data.get('status_code'),
        user_agent=request.META.get('HTTP_USER_AGENT'),
        ip_address=get_client_ip(request),
        user=user,
        tenant=user.tenant if user else None,
        metadata=data.get('metadata'),
        tags=data.get('tags'),
    )
    return Response({'success': True, 'id': error_log.id}, status=status.HTTP_201_CREATED)


def _apply_status(error_log, new_status, note, user):
    error_log.status = new_status
    if new_status in CLOSED_STATUSES:
        error_log.resolved_by = user
        error_log.resolved_at = timezone.now()
        error_log.resolution_note = note or None
    else:
        error_log.resolved_by = None
        error_log.resolved_at = None
        error_log.resolution_note = None


@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def error_log_list(request):
    queryset = ErrorLog.objects.select_related('tenant', 'user', 'resolved_by').order_by('-last_seen_at')
    queryset = apply_filters(ErrorLogFilter, request, queryset)
    return Response(paginate(request, queryset, ErrorLogSerializer, default_limit=ERROR_PAGE_SIZE))


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsPlatformAdmin])
def error_log_detail(request, pk):
    error_log = get_object_or_404(ErrorLog.objects.select_related('tenant', 'user', 'resolved_by'), pk=pk)

    if request.method == 'GET':
        return Response(ErrorLogSerializer(error_log).data)

    if request.method == 'PATCH':
        serializer = ErrorStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        _apply_status(error_log, serializer.validated_data['status'],
                      serializer.validated_data.get('resolution_note'), request.user)
        error_log.save(update_fields=['status', 'resolved_by', 'resolved_at', 'resolution_note'])
        logger.info(f"Error log {error_log.id} set to {error_log.status} by {request.user.email}")
        return Response(ErrorLogSerializer(error_log).data)

    error_log.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def error_log_bulk_status(request):
    serializer = BulkErrorStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    updates = {'status': data['status']}
    if data['status'] in CLOSED_STATUSES:
        updates.update(resolved_by=request.user, resolved_at=timezone.now(),
                       resolution_note=data.get('resolution_note') or None)
    else:
        updates.update(resolved_by=None, resolved_at=None, resolution_note=None)
    updated = ErrorLog.objects.filter(id__in=data['ids']).update(**updates)
    return Response({'success': True, 'updated': updated})


@api_view(['POST'])
@permission_classes([IsPlatformAdmin])
def error_log_bulk_delete(request):
    serializer = BulkDeleteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    deleted, _ = ErrorLog.objects.filter(id__in=serializer.validated_data['ids']).delete()
    return Response({'success': True, 'deleted': deleted})


@api_view(['GET'])
@permission_classes([IsPlatformAdmin])
def error_log_stats(request):
    """Totals by status, severity and type, plus a daily trend over the last 7 days"""
    def grouped(field):
        return {row[field]: row['count'] for row in ErrorLog.objects.values(field).annotate(count=Count('id')).order_by()}

    today = timezone.localdate()
    start = today - timedelta(days=6)
    per_day = {
        row['day']: row['count']
        for row in ErrorLog.objects.filter(last_seen_at__date__gte=start)
        .annotate(day=TruncDate('last_seen_at'))
        .values('day').annotate(count=Count('id')).order_by()
    }
    trend = []
    for offset in range(7):
        day = start + timedelta(days=offset)
        trend.append({'date': day.isoformat(), 'count': per_day.get(day, 0)})

    return Response({
        'total': ErrorLog.objects.count(),
        'by_status': grouped('status'),
        'by_severity': grouped('severity'),
        'by_type': grouped('error_type'),
        'trend': trend,
    })
