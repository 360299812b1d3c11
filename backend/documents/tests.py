"""
Test suite for Documents module
Tests: upload limits, versioning, listing, signed download links and deletion
"""
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status
from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.documents.models import Document
from backend.documents.services import make_download_token


def pdf_file(name='invoice.pdf', content=b'%PDF-1.4 test'):
    return SimpleUploadedFile(name, content, content_type='application/pdf')


class DocumentAPITests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.user = TestDataFactory.create_user(self.tenant, name='Uploader')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product(self.tenant)

    def _upload(self, file=None, entity_type='product', entity_id=None, **extra):
        data = {'entity_type': entity_type, 'entity_id': entity_id or self.product.id, 'file': file or pdf_file()}
        data.update(extra)
        return self.client.post('/api/v1/documents/', data, format='multipart')

    def test_upload(self):
        response = self._upload(notes='Supplier invoice')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['file_name'], 'invoice.pdf')
        self.assertEqual(response.data['mime_type'], 'application/pdf')
        self.assertEqual(response.data['version'], 1)
        self.assertEqual(response.data['uploaded_by_name'], 'Uploader')

        document = Document.objects.get(pk=response.data['id'])
        self.assertTrue(document.storage_path.startswith(f'{self.tenant.id}/product/{self.product.id}/'))
        self.assertTrue(default_storage.exists(document.storage_path))
        self.assertTrue(AuditLog.objects.filter(action='upload', resource_type='document').exists())

    def test_same_name_gets_next_version(self):
        self._upload()
        response = self._upload()
        self.assertEqual(response.data['version'], 2)
        response = self._upload(file=pdf_file('other.pdf'))
        self.assertEqual(response.data['version'], 1)

    def test_missing_file_rejected(self):
        response = self.client.post('/api/v1/documents/', {'entity_type': 'product', 'entity_id': self.product.id},
                                    format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Missing required fields')

    def test_unknown_entity_type_rejected(self):
        response = self._upload(entity_type='planet')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_disallowed_type_rejected(self):
        response = self._upload(file=SimpleUploadedFile('run.exe', b'MZ', content_type='application/x-msdownload'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'File type not allowed')

    @override_settings(DOCUMENT_MAX_SIZE=5)
    def test_size_limit(self):
        response = self._upload()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(response.data['error'].startswith('File exceeds'))
        self.assertEqual(Document.objects.count(), 0)

    @override_settings(DOCUMENT_MAX_PER_ENTITY=2)
    def test_per_entity_limit(self):
        self._upload()
        self._upload()
        response = self._upload()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Maximum 2 documents per entity')
        # Other records are unaffected
        other = TestDataFactory.create_product(self.tenant)
        self.assertEqual(self._upload(entity_id=other.id).status_code, status.HTTP_201_CREATED)

    def test_list_requires_entity(self):
        response = self.client.get('/api/v1/documents/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_for_entity(self):
        self._upload()
        other = TestDataFactory.create_product(self.tenant)
        self._upload(entity_id=other.id)
        response = self.client.get(f'/api/v1/documents/?entity_type=product&entity_id={self.product.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_download_with_signed_url(self):
        document_id = self._upload().data['id']
        response = self.client.get(f'/api/v1/documents/{document_id}/url/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token=', response.data['url'])
        self.assertEqual(response.data['expires_in'], 60)

        self.client.logout()
        token = make_download_token(Document.objects.get(pk=document_id))
        response = self.client.get(f'/api/v1/documents/{document_id}/download/', {'token': token})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('invoice.pdf', response['Content-Disposition'])
        self.assertEqual(b''.join(response.streaming_content), b'%PDF-1.4 test')

    def test_download_with_bad_token(self):
        document_id = self._upload().data['id']
        response = self.client.get(f'/api/v1/documents/{document_id}/download/', {'token': 'forged'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_token_bound_to_document(self):
        first = Document.objects.get(pk=self._upload().data['id'])
        second_id = self._upload(file=pdf_file('second.pdf')).data['id']
        response = self.client.get(f'/api/v1/documents/{second_id}/download/', {'token': make_download_token(first)})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_removes_file(self):
        document = Document.objects.get(pk=self._upload().data['id'])
        response = self.client.delete(f'/api/v1/documents/{document.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Document.objects.filter(pk=document.id).exists())
        self.assertFalse(default_storage.exists(document.storage_path))

    def test_deleting_draft_document_record_removes_attachments(self):
        location = TestDataFactory.create_location(self.tenant)
        po = TestDataFactory.create_purchase_order(self.tenant, location=location,
                                                   lines=[(self.product, '1', '1.00')])
        self._upload(entity_type='purchase_order', entity_id=po.id)
        response = self.client.delete(f'/api/v1/purchase-orders/{po.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Document.objects.filter(entity_type='purchase_order', entity_id=po.id).exists())

    def test_other_tenant_document_not_found(self):
        document_id = self._upload().data['id']
        outsider = TestDataFactory.create_user(TestDataFactory.create_tenant())
        self.client.authenticate_user(outsider)
        response = self.client.get(f'/api/v1/documents/{document_id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
