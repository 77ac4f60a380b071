# Generated manually
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Supplier',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('contact_email', models.EmailField(max_length=255)),
                ('contact_phone', models.CharField(max_length=20)),
                ('address', models.CharField(max_length=500)),
                ('contact_person_name', models.CharField(blank=True, max_length=100, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'suppliers',
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['is_active'], name='idx_supplier_active'),
                    models.Index(fields=['name'], name='idx_supplier_name'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SupplierCapability',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_type', models.CharField(choices=[('LMR', 'LMR'), ('FFV', 'FFV')], max_length=10)),
                ('max_monthly_capacity', models.PositiveIntegerField(default=0)),
                ('current_commitments', models.PositiveIntegerField(default=0)),
                ('quality_rating', models.DecimalField(decimal_places=2, default=Decimal('3.00'), max_digits=3, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('5'))])),
                ('lead_time_days', models.PositiveIntegerField(default=0)),
                ('estimated_unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('certifications', models.CharField(blank=True, max_length=500, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('supplier', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='capabilities', to='suppliers.supplier')),
            ],
            options={
                'db_table': 'supplier_capabilities',
                'ordering': ['supplier', 'product_type'],
                'indexes': [
                    models.Index(fields=['product_type', 'is_active'], name='idx_capability_type_active'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('supplier', 'product_type'), name='uniq_supplier_product_type'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SupplierPerformanceMetrics',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('on_time_delivery_rate', models.FloatField(default=0.0, validators=[django.core.validators.MinValueValidator(0.0), django.core.validators.MaxValueValidator(1.0)])),
                ('quality_score', models.FloatField(default=0.0, validators=[django.core.validators.MinValueValidator(0.0), django.core.validators.MaxValueValidator(5.0)])),
                ('total_orders_completed', models.PositiveIntegerField(default=0)),
                ('total_orders_on_time', models.PositiveIntegerField(default=0)),
                ('total_orders_late', models.PositiveIntegerField(default=0)),
                ('total_orders_cancelled', models.PositiveIntegerField(default=0)),
                ('average_delivery_days', models.FloatField(blank=True, null=True)),
                ('customer_satisfaction_rate', models.FloatField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(0.0), django.core.validators.MaxValueValidator(1.0)])),
                ('last_updated', models.DateTimeField(default=django.utils.timezone.now)),
                ('supplier', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='performance', to='suppliers.supplier')),
            ],
            options={
                'db_table': 'supplier_performance_metrics',
                'verbose_name_plural': 'supplier performance metrics',
            },
        ),
    ]
