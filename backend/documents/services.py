"""
Document storage.

Files go through Django's default storage under
{tenant_id}/{entity_type}/{entity_id}/{uuid}_{filename}; the Document row
holds the metadata. Downloads use short-lived signed URLs.
"""
import logging
import os
import uuid
from urllib.parse import urlencode

from django.conf import settings
from django.core import signing
from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models import Max
from django.urls import reverse

from backend.core.exceptions import InventoryError
from .models import Document

logger = logging.getLogger('backend.documents')

ALLOWED_MIME_TYPES = {
    'application/pdf',
    'application/msword',
    'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'application/vnd.ms-excel',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'text/csv',
    'text/plain',
    'text/xml',
    'application/xml',
    'image/jpeg',
    'image/png',
    'image/webp',
}

SIGNER_SALT = 'documents.download'


class DocumentError(InventoryError):
    pass


def build_storage_path(tenant_id, entity_type, entity_id, file_name):
    safe_name = os.path.basename(file_name).replace(' ', '_')
    return f"{tenant_id}/{entity_type}/{entity_id}/{uuid.uuid4().hex}_{safe_name}"


def validate_upload(tenant, entity_type, entity_id, uploaded_file):
    if not entity_type or not entity_id or uploaded_file is None:
        raise DocumentError('Missing required fields')
    if entity_type not in dict(Document.ENTITY_TYPE_CHOICES):
        raise DocumentError('Invalid entity type')
    if uploaded_file.size > settings.DOCUMENT_MAX_SIZE:
        raise DocumentError(f'File exceeds {settings.DOCUMENT_MAX_SIZE // (1024 * 1024)}MB limit')
    if uploaded_file.content_type not in ALLOWED_MIME_TYPES:
        raise DocumentError('File type not allowed')
    existing = Document.objects.filter(tenant=tenant, entity_type=entity_type, entity_id=entity_id).count()
    if existing >= settings.DOCUMENT_MAX_PER_ENTITY:
        raise DocumentError(f'Maximum {settings.DOCUMENT_MAX_PER_ENTITY} documents per entity')


def upload_document(tenant, user, entity_type, entity_id, uploaded_file, notes=None):
    """
    Store a file and record it.

    Raises DocumentError for invalid uploads. When the row cannot be
    written the stored file is removed again.
    """
    validate_upload(tenant, entity_type, entity_id, uploaded_file)

    storage_path = default_storage.save(
        build_storage_path(tenant.id, entity_type, entity_id, uploaded_file.name), uploaded_file
    )
    try:
        with transaction.atomic():
            latest = Document.objects.filter(
                tenant=tenant, entity_type=entity_type, entity_id=entity_id, file_name=uploaded_file.name
            ).aggregate(version=Max('version'))['version']
            document = Document.objects.create(
                tenant=tenant,
                entity_type=entity_type,
                entity_id=entity_id,
                file_name=uploaded_file.name,
                file_size=uploaded_file.size,
                mime_type=uploaded_file.content_type,
                storage_path=storage_path,
                version=(latest or 0) + 1,
                notes=notes or None,
                uploaded_by=user,
                uploaded_by_name=user.name if user else None,
            )
    except Exception:
        logger.error(f"Failed to record document {storage_path}, removing stored file", exc_info=True)
        default_storage.delete(storage_path)
        raise

    logger.info(f"Uploaded {document.file_name} v{document.version} for {entity_type} {entity_id}")
    return document


def delete_document(document):
    """Remove the stored file, then the row"""
    if default_storage.exists(document.storage_path):
        default_storage.delete(document.storage_path)
    document.delete()


def delete_entity_documents(tenant, entity_type, entity_id):
    """Remove every document attached to one record; returns how many were removed"""
    documents = list(Document.objects.filter(tenant=tenant, entity_type=entity_type, entity_id=entity_id))
    for document in documents:
        delete_document(document)
    if documents:
        logger.info(f"Removed {len(documents)} documents of {entity_type} {entity_id}")
    return len(documents)


def delete_tenant_documents(tenant):
    """Drop every document row of a tenant; stored files go once the transaction commits"""
    documents = Document.objects.filter(tenant=tenant)
    paths = list(documents.values_list('storage_path', flat=True))
    documents.delete()

    def remove_files():
        for path in paths:
            if default_storage.exists(path):
                default_storage.delete(path)

    transaction.on_commit(remove_files)
    return len(paths)


def make_download_token(document):
    return signing.TimestampSigner(salt=SIGNER_SALT).sign(f"{document.tenant_id}:{document.id}")


def read_download_token(token):
    """
    Return (tenant_id, document_id) for a valid token.

    Raises signing.SignatureExpired or signing.BadSignature.
    """
    value = signing.TimestampSigner(salt=SIGNER_SALT).unsign(token, max_age=settings.DOCUMENT_URL_MAX_AGE)
    tenant_id, document_id = value.split(':', 1)
    return int(tenant_id), int(document_id)


def get_download_url(request, document):
    path = reverse('document-download', kwargs={'pk': document.id})
    url = f"{path}?{urlencode({'token': make_download_token(document)})}"
    return request.build_absolute_uri(url) if request is not None else url
