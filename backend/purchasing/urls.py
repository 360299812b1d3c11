from django.urls import path
from .views import (
    purchase_order_list_create, purchase_order_detail, purchase_order_confirm,
    purchase_order_receive, purchase_order_cancel
)

urlpatterns = [
    path('purchase-orders/', purchase_order_list_create, name='purchase-order-list-create'),
    path('purchase-orders/<int:pk>/', purchase_order_detail, name='purchase-order-detail'),
    path('purchase-orders/<int:pk>/confirm/', purchase_order_confirm, name='purchase-order-confirm'),
    path('purchase-orders/<int:pk>/receive/', purchase_order_receive, name='purchase-order-receive'),
    path('purchase-orders/<int:pk>/cancel/', purchase_order_cancel, name='purchase-order-cancel'),
]
