from django.urls import path
from .views import return_list_create, return_detail, return_process, return_cancel

urlpatterns = [
    path('returns/', return_list_create, name='return-list-create'),
    path('returns/<int:pk>/', return_detail, name='return-detail'),
    path('returns/<int:pk>/process/', return_process, name='return-process'),
    path('returns/<int:pk>/cancel/', return_cancel, name='return-cancel'),
]
