from rest_framework import serializers
from .models import ErrorLog


class ErrorLogSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source='tenant.name', read_only=True, default=None)
    user_email = serializers.CharField(source='user.email', read_only=True, default=None)
    resolved_by_email = serializers.CharField(source='resolved_by.email', read_only=True, default=None)

    class Meta:
        model = ErrorLog
        fields = ['id', 'tenant', 'tenant_name', 'error_hash', 'fingerprint', 'error_type', 'severity', 'message',
                  'stack_trace', 'url', 'method', 'status_code', 'user_agent', 'ip_address', 'user', 'user_email',
                  'metadata', 'tags', 'occurrence_count', 'first_seen_at', 'last_seen_at', 'status',
                  'resolved_by', 'resolved_by_email', 'resolved_at', 'resolution_note', 'created_at']
        read_only_fields = fields


class ClientErrorSerializer(serializers.Serializer):
    """Error report posted by the frontend"""
    message = serializers.CharField()
    stack_trace = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    error_type = serializers.ChoiceField(choices=ErrorLog.TYPE_CHOICES, default='client')
    severity = serializers.ChoiceField(choices=ErrorLog.SEVERITY_CHOICES, default='error')
    url = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    method = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=10)
    status_code = serializers.IntegerField(required=False, allow_null=True)
    metadata = serializers.DictField(required=False, default=dict)
    tags = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class ErrorStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ErrorLog.STATUS_CHOICES)
    resolution_note = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class BulkErrorStatusSerializer(ErrorStatusSerializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class BulkDeleteSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
