from django.urls import path
from .views import (
    invitation_list_create, invitation_cancel, invitation_resend, tenant_user_stats,
    invitation_by_token, invitation_accept,
    tenant_list_create, tenant_detail, tenant_invite_user
)

urlpatterns = [
    # Tenant invitation endpoints
    path('invitations/', invitation_list_create, name='invitation-list-create'),
    path('invitations/stats/', tenant_user_stats, name='tenant-user-stats'),
    path('invitations/<int:pk>/', invitation_cancel, name='invitation-cancel'),
    path('invitations/<int:pk>/resend/', invitation_resend, name='invitation-resend'),

    # Public accept flow
    path('invitations/token/<str:token>/', invitation_by_token, name='invitation-by-token'),
    path('invitations/token/<str:token>/accept/', invitation_accept, name='invitation-accept'),

    # Platform admin endpoints
    path('admin/tenants/', tenant_list_create, name='tenant-list-create'),
    path('admin/tenants/<int:pk>/', tenant_detail, name='tenant-detail'),
    path('admin/tenants/<int:pk>/invite/', tenant_invite_user, name='tenant-invite-user'),
]
