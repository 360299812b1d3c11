from rest_framework import serializers
from .models import Document


class DocumentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Document
        fields = ['id', 'entity_type', 'entity_id', 'file_name', 'file_size', 'mime_type', 'version', 'notes',
                  'uploaded_by', 'uploaded_by_name', 'created_at', 'updated_at']
        read_only_fields = fields


class DocumentUploadSerializer(serializers.Serializer):
    """Multipart upload; size, type and count limits are checked by the document service"""
    entity_type = serializers.CharField(required=False, allow_blank=True)
    entity_id = serializers.IntegerField(required=False, allow_null=True)
    file = serializers.FileField(required=False, allow_null=True, allow_empty_file=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
