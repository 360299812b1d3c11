from decimal import Decimal
from rest_framework import serializers
from backend.core.serializers import TenantScopedSerializer
from .models import Category, Product


class CategorySerializer(TenantScopedSerializer):
    parent_name = serializers.CharField(source='parent.name', read_only=True, default=None)
    product_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Category
        fields = ['id', 'name', 'parent', 'parent_name', 'product_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        queryset = Category.objects.filter(tenant=self.tenant, name__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Category name already exists')
        return value

    def validate_parent(self, value):
        self.check_same_tenant(value, 'Parent category not found')
        if value is not None and self.instance is not None and value.pk == self.instance.pk:
            raise serializers.ValidationError('Category cannot be its own parent')
        return value


class ProductSerializer(TenantScopedSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)
    allow_decimal_qty = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = ['id', 'sku', 'name', 'barcode', 'category', 'category_name', 'base_uom', 'pack_uom_name',
                  'pack_qty_in_base', 'current_cost', 'reorder_point', 'reorder_qty', 'track_expiry',
                  'track_lot', 'active', 'allow_decimal_qty', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {
            'current_cost': {'min_value': Decimal('0')},
            'reorder_point': {'min_value': Decimal('0')},
            'reorder_qty': {'min_value': Decimal('0')},
        }

    def validate_sku(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('SKU is required')
        queryset = Product.objects.filter(tenant=self.tenant, sku=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('SKU already exists')
        return value

    def validate_barcode(self, value):
        if not value:
            return None
        return value.strip() or None

    def validate_category(self, value):
        return self.check_same_tenant(value, 'Category not found')

    def validate(self, attrs):
        pack_name = attrs.get('pack_uom_name', getattr(self.instance, 'pack_uom_name', None))
        pack_qty = attrs.get('pack_qty_in_base', getattr(self.instance, 'pack_qty_in_base', None))
        if bool(pack_name) != (pack_qty is not None):
            raise serializers.ValidationError({
                'pack_uom_name': ['Pack unit name and pack quantity must be set together']
            })
        if pack_qty is not None and pack_qty <= 0:
            raise serializers.ValidationError({'pack_qty_in_base': ['Pack quantity must be greater than 0']})
        return attrs


class ProductListSerializer(serializers.ModelSerializer):
    """Lightweight product serializer for list views"""
    category_name = serializers.CharField(source='category.name', read_only=True, default=None)

    class Meta:
        model = Product
        fields = ['id', 'sku', 'name', 'barcode', 'category', 'category_name', 'base_uom',
                  'current_cost', 'reorder_point', 'track_expiry', 'track_lot', 'active']
