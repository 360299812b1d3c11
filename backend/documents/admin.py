from django.contrib import admin
from .models import Document


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    list_display = ['file_name', 'version', 'entity_type', 'entity_id', 'mime_type', 'file_size', 'uploaded_by_name', 'created_at']
    list_filter = ['entity_type', 'mime_type', 'tenant']
    search_fields = ['file_name', 'notes']
    ordering = ['-created_at']
    readonly_fields = ['storage_path', 'created_at', 'updated_at']
