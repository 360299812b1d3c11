from django.urls import path
from .views import supplier_list_create, supplier_detail, customer_list_create, customer_detail

urlpatterns = [
    path('suppliers/', supplier_list_create, name='supplier-list-create'),
    path('suppliers/<int:pk>/', supplier_detail, name='supplier-detail'),
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
]
