from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, user_me, logout,
    user_list_create, user_detail, user_toggle_active, user_assignable_roles,
    profile_update, organization_settings,
    audit_log_list, audit_log_detail,
    i18n_messages
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/logout/', logout, name='logout'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/assignable-roles/', user_assignable_roles, name='user-assignable-roles'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/active/', user_toggle_active, name='user-toggle-active'),

    # Settings endpoints
    path('settings/profile/', profile_update, name='profile-update'),
    path('settings/organization/', organization_settings, name='organization-settings'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),

    path('i18n/messages/', i18n_messages, name='i18n-messages'),
]
