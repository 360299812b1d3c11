import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from django.conf import settings
from django.core import signing
from django.core.files.storage import default_storage
from django.http import FileResponse, Http404
from django.shortcuts import get_object_or_404
from backend.core.permissions import IsTenantMember
from backend.core.utils import create_audit_log
from .models import Document
from .serializers import DocumentSerializer, DocumentUploadSerializer
from .services import DocumentError, upload_document, delete_document, get_download_url, read_download_token

logger = logging.getLogger('backend.documents')


@api_view(['GET', 'POST'])
@permission_classes([IsTenantMember])
def document_list_upload(request):
    """List one record's documents (?entity_type=&entity_id=) or upload a new file"""
    tenant = request.user.tenant
    if request.method == 'GET':
        entity_type = request.query_params.get('entity_type')
        entity_id = request.query_params.get('entity_id')
        if not entity_type or not entity_id or not entity_id.isdigit():
            return Response({'error': 'entity_type and entity_id are required'}, status=status.HTTP_400_BAD_REQUEST)
        documents = Document.objects.filter(tenant=tenant, entity_type=entity_type, entity_id=int(entity_id))
        return Response(DocumentSerializer(documents, many=True).data)

    serializer = DocumentUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data
    try:
        document = upload_document(tenant, request.user, data.get('entity_type'), data.get('entity_id'),
                                   data.get('file'), notes=data.get('notes'))
    except DocumentError as e:
        logger.warning(f"Document upload rejected: {e}")
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='upload', resource_type='document', resource_id=document.id,
                     resource_name=document.file_name,
                     new_values={'entity_type': document.entity_type, 'entity_id': document.entity_id,
                                 'file_name': document.file_name, 'file_size': document.file_size,
                                 'version': document.version})
    return Response(DocumentSerializer(document).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsTenantMember])
def document_detail(request, pk):
    """Document metadata, or delete the file and its record"""
    tenant = request.user.tenant
    document = get_object_or_404(Document, pk=pk, tenant=tenant)
    if request.method == 'GET':
        return Response(DocumentSerializer(document).data)

    old_values = {'entity_type': document.entity_type, 'entity_id': document.entity_id,
                  'file_name': document.file_name, 'version': document.version}
    delete_document(document)
    create_audit_log(request=request, action='delete', resource_type='document', resource_id=pk,
                     resource_name=old_values['file_name'], old_values=old_values)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsTenantMember])
def document_download_url(request, pk):
    """Short-lived signed download URL"""
    document = get_object_or_404(Document, pk=pk, tenant=request.user.tenant)
    return Response({'url': get_download_url(request, document), 'expires_in': settings.DOCUMENT_URL_MAX_AGE})


@api_view(['GET'])
@permission_classes([AllowAny])
def document_download(request, pk):
    """Stream a document; the signed token stands in for authentication"""
    token = request.query_params.get('token', '')
    try:
        tenant_id, document_id = read_download_token(token)
    except signing.SignatureExpired:
        return Response({'error': 'Download link has expired'}, status=status.HTTP_403_FORBIDDEN)
    except signing.BadSignature:
        return Response({'error': 'Invalid download link'}, status=status.HTTP_403_FORBIDDEN)
    if document_id != pk:
        return Response({'error': 'Invalid download link'}, status=status.HTTP_403_FORBIDDEN)

    document = get_object_or_404(Document, pk=pk, tenant_id=tenant_id)
    if not default_storage.exists(document.storage_path):
        logger.error(f"Stored file missing for document {document.id}: {document.storage_path}")
        raise Http404('File not found')
    return FileResponse(default_storage.open(document.storage_path, 'rb'), as_attachment=True,
                        filename=document.file_name, content_type=document.mime_type)
