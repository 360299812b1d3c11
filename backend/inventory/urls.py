from django.urls import path
from .views import (
    stock_balance_list, stock_at_location, depleted_stock_list, movement_history,
    adjustment_list_create, adjustment_detail, adjustment_approve, adjustment_post, adjustment_cancel,
    transfer_list_create, transfer_detail, transfer_send, transfer_receive, transfer_cancel,
    cycle_count_list_create, cycle_count_detail, cycle_count_enter, cycle_count_post, cycle_count_cancel
)

urlpatterns = [
    # Stock endpoints
    path('stock/', stock_balance_list, name='stock-list'),
    path('stock/depleted/', depleted_stock_list, name='stock-depleted'),
    path('stock/movements/', movement_history, name='stock-movements'),
    path('stock/locations/<int:location_id>/', stock_at_location, name='stock-at-location'),

    # Adjustment endpoints
    path('adjustments/', adjustment_list_create, name='adjustment-list-create'),
    path('adjustments/<int:pk>/', adjustment_detail, name='adjustment-detail'),
    path('adjustments/<int:pk>/approve/', adjustment_approve, name='adjustment-approve'),
    path('adjustments/<int:pk>/post/', adjustment_post, name='adjustment-post'),
    path('adjustments/<int:pk>/cancel/', adjustment_cancel, name='adjustment-cancel'),

    # Transfer endpoints
    path('transfers/', transfer_list_create, name='transfer-list-create'),
    path('transfers/<int:pk>/', transfer_detail, name='transfer-detail'),
    path('transfers/<int:pk>/send/', transfer_send, name='transfer-send'),
    path('transfers/<int:pk>/receive/', transfer_receive, name='transfer-receive'),
    path('transfers/<int:pk>/cancel/', transfer_cancel, name='transfer-cancel'),

    # Cycle count endpoints
    path('cycle-counts/', cycle_count_list_create, name='cycle-count-list-create'),
    path('cycle-counts/<int:pk>/', cycle_count_detail, name='cycle-count-detail'),
    path('cycle-counts/<int:pk>/counts/', cycle_count_enter, name='cycle-count-enter'),
    path('cycle-counts/<int:pk>/post/', cycle_count_post, name='cycle-count-post'),
    path('cycle-counts/<int:pk>/cancel/', cycle_count_cancel, name='cycle-count-cancel'),
]
