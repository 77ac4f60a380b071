# Generated manually
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CustomerOrder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_number', models.CharField(max_length=50, unique=True)),
                ('customer_id', models.CharField(max_length=100)),
                ('customer_name', models.CharField(max_length=200)),
                ('product_type', models.CharField(choices=[('LMR', 'LMR'), ('FFV', 'FFV')], max_length=10)),
                ('requested_delivery_date', models.DateField()),
                ('status', models.CharField(choices=[('Submitted', 'Submitted'), ('UnderReview', 'Under Review'), ('PlanningInProgress', 'Planning In Progress'), ('PurchaseOrdersCreated', 'Purchase Orders Created'), ('AwaitingSupplierConfirmation', 'Awaiting Supplier Confirmation'), ('InProduction', 'In Production'), ('ReadyForDelivery', 'Ready For Delivery'), ('Delivered', 'Delivered'), ('Cancelled', 'Cancelled')], default='Submitted', max_length=40)),
                ('notes', models.TextField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_planner', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='planned_orders', to=settings.AUTH_USER_MODEL)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='customer_orders', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'customer_orders',
                'ordering': ['requested_delivery_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='idx_order_status'),
                    models.Index(fields=['customer_id'], name='idx_order_customer'),
                    models.Index(fields=['requested_delivery_date'], name='idx_order_delivery_date'),
                    models.Index(fields=['product_type', 'status'], name='idx_order_type_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('product_code', models.CharField(max_length=50)),
                ('description', models.CharField(max_length=500)),
                ('quantity', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('unit', models.CharField(max_length=20)),
                ('specifications', models.CharField(blank=True, max_length=1000, null=True)),
                ('unit_price', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, validators=[django.core.validators.MinValueValidator(Decimal('0'))])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='orders.customerorder')),
            ],
            options={
                'db_table': 'order_items',
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='OrderStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(blank=True, choices=[('Submitted', 'Submitted'), ('UnderReview', 'Under Review'), ('PlanningInProgress', 'Planning In Progress'), ('PurchaseOrdersCreated', 'Purchase Orders Created'), ('AwaitingSupplierConfirmation', 'Awaiting Supplier Confirmation'), ('InProduction', 'In Production'), ('ReadyForDelivery', 'Ready For Delivery'), ('Delivered', 'Delivered'), ('Cancelled', 'Cancelled')], max_length=40, null=True)),
                ('to_status', models.CharField(choices=[('Submitted', 'Submitted'), ('UnderReview', 'Under Review'), ('PlanningInProgress', 'Planning In Progress'), ('PurchaseOrdersCreated', 'Purchase Orders Created'), ('AwaitingSupplierConfirmation', 'Awaiting Supplier Confirmation'), ('InProduction', 'In Production'), ('ReadyForDelivery', 'Ready For Delivery'), ('Delivered', 'Delivered'), ('Cancelled', 'Cancelled')], max_length=40)),
                ('changed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('notes', models.CharField(blank=True, max_length=1000, null=True)),
                ('reason', models.CharField(blank=True, max_length=500, null=True)),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='order_status_changes', to=settings.AUTH_USER_MODEL)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='orders.customerorder')),
            ],
            options={
                'db_table': 'order_status_history',
                'ordering': ['changed_at', 'id'],
                'verbose_name_plural': 'order status history',
            },
        ),
        migrations.CreateModel(
            name='OrderMilestone',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('description', models.CharField(blank=True, max_length=500)),
                ('target_date', models.DateTimeField(blank=True, null=True)),
                ('actual_date', models.DateTimeField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('completed', 'Completed'), ('overdue', 'Overdue'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('notes', models.CharField(blank=True, max_length=1000, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='milestones', to='orders.customerorder')),
            ],
            options={
                'db_table': 'order_milestones',
                'ordering': ['target_date', 'id'],
            },
        ),
    ]
