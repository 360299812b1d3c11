"""
URL configuration for backend project.

Every app mounts its API under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Inventory Management Admin Panel"
admin.site.site_title = "Inventory Management Admin Portal"
admin.site.index_title = "Welcome to the Inventory Management Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.tenants.urls')),
    path('api/v1/', include('backend.locations.urls')),
    path('api/v1/', include('backend.catalog.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.inventory.urls')),
    path('api/v1/', include('backend.purchasing.urls')),
    path('api/v1/', include('backend.shipping.urls')),
    path('api/v1/', include('backend.returns.urls')),
    path('api/v1/', include('backend.documents.urls')),
    path('api/v1/', include('backend.errorlogs.urls')),
    path('api/v1/', include('backend.reports.urls')),
]
