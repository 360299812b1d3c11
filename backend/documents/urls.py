from django.urls import path
from .views import document_list_upload, document_detail, document_download_url, document_download

urlpatterns = [
    path('documents/', document_list_upload, name='document-list-upload'),
    path('documents/<int:pk>/', document_detail, name='document-detail'),
    path('documents/<int:pk>/url/', document_download_url, name='document-download-url'),
    path('documents/<int:pk>/download/', document_download, name='document-download'),
]
