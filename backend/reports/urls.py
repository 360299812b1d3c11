from django.urls import path
from . import views

urlpatterns = [
    path('reports/low-stock/', views.low_stock_report, name='report-low-stock'),
    path('reports/expiring/', views.expiring_report, name='report-expiring'),
    path('reports/valuation/', views.valuation_report, name='report-valuation'),
    path('reports/movements/', views.movement_report, name='report-movements'),
    path('reports/dashboard/', views.dashboard_summary, name='report-dashboard'),
]
