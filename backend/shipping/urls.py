from django.urls import path
from .views import shipment_list_create, shipment_detail, shipment_confirm, shipment_ship, shipment_cancel

urlpatterns = [
    path('shipments/', shipment_list_create, name='shipment-list-create'),
    path('shipments/<int:pk>/', shipment_detail, name='shipment-detail'),
    path('shipments/<int:pk>/confirm/', shipment_confirm, name='shipment-confirm'),
    path('shipments/<int:pk>/ship/', shipment_ship, name='shipment-ship'),
    path('shipments/<int:pk>/cancel/', shipment_cancel, name='shipment-cancel'),
]
