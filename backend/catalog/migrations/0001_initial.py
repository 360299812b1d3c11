# Generated manually

import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='children', to='catalog.category')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='categories', to='tenants.tenant')),
            ],
            options={
                'db_table': 'categories',
                'verbose_name_plural': 'categories',
                'ordering': ['name'],
                'constraints': [models.UniqueConstraint(fields=('tenant', 'name'), name='uniq_category_tenant_name')],
            },
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('sku', models.CharField(db_index=True, max_length=50)),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('barcode', models.CharField(blank=True, db_index=True, max_length=50, null=True)),
                ('base_uom', models.CharField(choices=[('EA', 'Each'), ('KG', 'Kilogram'), ('G', 'Gram'), ('L', 'Liter'), ('ML', 'Milliliter'), ('M', 'Meter'), ('CM', 'Centimeter'), ('BOX', 'Box'), ('PACK', 'Pack')], default='EA', max_length=10)),
                ('pack_uom_name', models.CharField(blank=True, max_length=20, null=True)),
                ('pack_qty_in_base', models.DecimalField(blank=True, decimal_places=3, max_digits=12, null=True)),
                ('current_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=12)),
                ('reorder_point', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12)),
                ('reorder_qty', models.DecimalField(decimal_places=3, default=Decimal('0'), max_digits=12)),
                ('track_expiry', models.BooleanField(default=False)),
                ('track_lot', models.BooleanField(default=False)),
                ('active', models.BooleanField(db_index=True, default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='products', to='catalog.category')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='products', to='tenants.tenant')),
            ],
            options={
                'db_table': 'products',
                'ordering': ['name'],
                'constraints': [models.UniqueConstraint(fields=('tenant', 'sku'), name='uniq_product_tenant_sku')],
                'indexes': [models.Index(fields=['tenant', 'active'], name='idx_product_tenant_active')],
            },
        ),
    ]
