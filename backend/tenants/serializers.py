from rest_framework import serializers
from backend.core.permissions import ALL_ROLES
from .models import Tenant, UserInvitation


class TenantSerializer(serializers.ModelSerializer):
    user_count = serializers.IntegerField(read_only=True)
    pending_invitations = serializers.IntegerField(read_only=True)

    class Meta:
        model = Tenant
        fields = ['id', 'name', 'settings', 'max_users', 'user_count', 'pending_invitations', 'created_at', 'updated_at']
        read_only_fields = ['settings', 'created_at', 'updated_at']


class TenantCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    max_users = serializers.IntegerField(min_value=1, max_value=1000)
    admin_email = serializers.EmailField()


class TenantUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    max_users = serializers.IntegerField(min_value=1, max_value=1000)


class UserInvitationSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source='tenant.name', read_only=True)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = UserInvitation
        fields = ['id', 'tenant', 'tenant_name', 'email', 'role', 'invited_by', 'invited_by_name',
                  'expires_at', 'accepted_at', 'is_expired', 'created_at']
        read_only_fields = fields


class InviteUserSerializer(serializers.Serializer):
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=ALL_ROLES)

    def validate_email(self, value):
        return value.lower()


class AcceptInvitationSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    password = serializers.CharField(min_length=8, write_only=True)
