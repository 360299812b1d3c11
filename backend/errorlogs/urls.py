from django.urls import path
from .views import (
    report_error, error_log_list, error_log_detail,
    error_log_bulk_status, error_log_bulk_delete, error_log_stats
)

urlpatterns = [
    path('errors/', report_error, name='report-error'),

    # Platform admin endpoints
    path('admin/errors/', error_log_list, name='error-log-list'),
    path('admin/errors/stats/', error_log_stats, name='error-log-stats'),
    path('admin/errors/bulk-status/', error_log_bulk_status, name='error-log-bulk-status'),
    path('admin/errors/bulk-delete/', error_log_bulk_delete, name='error-log-bulk-delete'),
    path('admin/errors/<int:pk>/', error_log_detail, name='error-log-detail'),
]
