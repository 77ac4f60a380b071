from rest_framework import serializers

from backend.core.choices import PRODUCT_TYPE_CHOICES
from backend.core.models import User
from .models import CustomerOrder, OrderItem, OrderStatus, OrderStatusHistory, OrderMilestone


class OrderItemSerializer(serializers.ModelSerializer):
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ['id', 'product_code', 'description', 'quantity', 'unit', 'specifications',
                  'unit_price', 'total_price']


class CustomerOrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)
    total_value = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    assigned_planner_username = serializers.CharField(source='assigned_planner.username', read_only=True, default=None)

    class Meta:
        model = CustomerOrder
        fields = [
            'id', 'order_number', 'customer_id', 'customer_name', 'product_type',
            'requested_delivery_date', 'status', 'notes', 'items', 'total_quantity', 'total_value',
            'is_overdue', 'created_by', 'created_by_username', 'assigned_planner',
            'assigned_planner_username', 'created_at', 'updated_at'
        ]


class CustomerOrderListSerializer(serializers.ModelSerializer):
    """Optimized serializer for order lists"""
    total_quantity = serializers.IntegerField(read_only=True)
    item_count = serializers.SerializerMethodField()
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = CustomerOrder
        fields = [
            'id', 'order_number', 'customer_id', 'customer_name', 'product_type',
            'requested_delivery_date', 'status', 'total_quantity', 'item_count', 'is_overdue', 'created_at'
        ]

    def get_item_count(self, obj):
        return len(obj.items.all())


class OrderItemInputSerializer(serializers.Serializer):
    product_code = serializers.CharField(max_length=50)
    description = serializers.CharField(max_length=500)
    quantity = serializers.IntegerField(min_value=1)
    unit = serializers.CharField(max_length=20)
    specifications = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                          required=False, allow_null=True)


class OrderCreateSerializer(serializers.Serializer):
    customer_id = serializers.CharField(max_length=100, required=False)
    customer_name = serializers.CharField(max_length=200)
    product_type = serializers.ChoiceField(choices=PRODUCT_TYPE_CHOICES)
    requested_delivery_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    items = OrderItemInputSerializer(many=True, allow_empty=True)


class OrderUpdateSerializer(serializers.Serializer):
    customer_name = serializers.CharField(max_length=200, required=False)
    product_type = serializers.ChoiceField(choices=PRODUCT_TYPE_CHOICES, required=False)
    requested_delivery_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    assigned_planner = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.all(), required=False, allow_null=True
    )
    items = OrderItemInputSerializer(many=True, required=False)


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.CHOICES)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, allow_null=True)
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    changed_by_username = serializers.CharField(source='changed_by.username', read_only=True, default=None)

    class Meta:
        model = OrderStatusHistory
        fields = ['id', 'from_status', 'to_status', 'changed_at', 'changed_by', 'changed_by_username',
                  'notes', 'reason']


class OrderMilestoneSerializer(serializers.ModelSerializer):
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = OrderMilestone
        fields = ['id', 'name', 'description', 'target_date', 'actual_date', 'status', 'notes',
                  'is_overdue', 'created_at']
        read_only_fields = ['actual_date', 'status', 'created_at']
