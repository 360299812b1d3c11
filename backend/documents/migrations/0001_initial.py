# Generated manually

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('entity_type', models.CharField(choices=[('product', 'Product'), ('category', 'Category'), ('location', 'Location'), ('supplier', 'Supplier'), ('customer', 'Customer'), ('purchase_order', 'Purchase Order'), ('shipment', 'Shipment'), ('transfer', 'Transfer'), ('adjustment', 'Adjustment'), ('cycle_count', 'Cycle Count'), ('return', 'Return')], max_length=20)),
                ('entity_id', models.BigIntegerField()),
                ('file_name', models.CharField(max_length=255)),
                ('file_size', models.PositiveBigIntegerField()),
                ('mime_type', models.CharField(max_length=100)),
                ('storage_path', models.CharField(max_length=500)),
                ('version', models.PositiveIntegerField(default=1)),
                ('notes', models.TextField(blank=True, null=True)),
                ('uploaded_by_name', models.CharField(blank=True, max_length=100, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='tenants.tenant')),
                ('uploaded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='documents', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'documents',
                'ordering': ['-created_at', '-id'],
                'indexes': [models.Index(fields=['tenant', 'entity_type', 'entity_id'], name='idx_document_entity')],
            },
        ),
    ]
