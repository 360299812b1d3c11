from rest_framework import serializers
from .models import User, AuditLog
from .permissions import ALL_ROLES
from .utils import next_document_number


class UserSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source='tenant.name', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'role', 'is_active', 'tenant', 'tenant_name', 'is_platform_admin', 'created_at', 'updated_at']
        read_only_fields = ['email', 'tenant', 'is_platform_admin', 'created_at', 'updated_at']


class UserCreateSerializer(serializers.Serializer):
    email = serializers.EmailField()
    name = serializers.CharField(max_length=100)
    role = serializers.ChoiceField(choices=ALL_ROLES)
    active = serializers.BooleanField(default=True)
    password = serializers.CharField(write_only=True, min_length=6)

    def validate_email(self, value):
        value = value.lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('Email is already registered')
        return value


class UserUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)
    role = serializers.ChoiceField(choices=ALL_ROLES)
    active = serializers.BooleanField(default=True)


class ProfileSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)


class OrganizationSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=1, max_length=100)
    default_currency = serializers.CharField(min_length=1, max_length=10)
    require_adjustment_approval = serializers.BooleanField()


class AuditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AuditLog
        fields = ['id', 'tenant', 'user', 'user_name', 'user_email', 'action', 'resource_type', 'resource_id',
                  'resource_name', 'old_values', 'new_values', 'changes', 'notes', 'ip_address', 'user_agent',
                  'created_at']


class TenantScopedSerializer(serializers.ModelSerializer):
    """
    Base for tenant-owned models. Views pass the tenant in the serializer
    context; related rows must belong to that tenant.
    """

    @property
    def tenant(self):
        return self.context['tenant']

    def check_same_tenant(self, obj, message='Not found'):
        if obj is not None and obj.tenant_id != self.tenant.id:
            raise serializers.ValidationError(message)
        return obj

    def create(self, validated_data):
        validated_data['tenant'] = self.tenant
        return super().create(validated_data)


class DocumentLineSerializer(serializers.ModelSerializer):
    """Line of a stock document; the product must belong to the document's tenant"""
    product_sku = serializers.CharField(source='product.sku', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    base_uom = serializers.CharField(source='product.base_uom', read_only=True)

    # Name of the quantity field checked against the product's unit of measure
    qty_field = 'qty'

    def validate_product(self, value):
        tenant = self.context.get('tenant')
        if tenant is not None and value.tenant_id != tenant.id:
            raise serializers.ValidationError('Product not found')
        return value

    def validate_lot_number(self, value):
        return (value or '').strip() or None

    def validate(self, attrs):
        product = attrs.get('product')
        qty = attrs.get(self.qty_field)
        if product is not None and qty is not None and not product.is_valid_qty(qty):
            raise serializers.ValidationError({self.qty_field: [f'{product.sku} only accepts whole-number quantities']})
        return attrs


class DocumentSerializer(TenantScopedSerializer):
    """
    Header + lines document (purchase order, shipment, transfer, ...).

    Subclasses set number_field/number_prefix and declare a nested `lines`
    serializer. Lines are replaced wholesale on update.
    """
    number_field = None
    number_prefix = None
    line_parent_field = None

    def validate_lines(self, value):
        if not value:
            raise serializers.ValidationError('At least one line is required')
        return value

    def create(self, validated_data):
        lines = validated_data.pop('lines', [])
        validated_data[self.number_field] = next_document_number(self.tenant, self.number_prefix)
        validated_data['created_by'] = self.context.get('user')
        document = super().create(validated_data)
        self._create_lines(document, lines)
        return document

    def update(self, instance, validated_data):
        lines = validated_data.pop('lines', None)
        instance = super().update(instance, validated_data)
        if lines is not None:
            instance.lines.all().delete()
            self._create_lines(instance, lines)
        return instance

    def _create_lines(self, document, lines):
        line_model = self.fields['lines'].child.Meta.model
        line_model.objects.bulk_create([
            line_model(**{self.line_parent_field: document}, **line) for line in lines
        ])
