from rest_framework import serializers

from .models import PurchaseOrder, PurchaseOrderItem, PurchaseOrderStatus


class PurchaseOrderItemSerializer(serializers.ModelSerializer):
    total_price = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = PurchaseOrderItem
        fields = [
            'id', 'order_item', 'product_code', 'description', 'allocated_quantity', 'unit',
            'packaging_details', 'delivery_method', 'estimated_delivery_date', 'unit_price',
            'total_price', 'specifications', 'supplier_notes', 'updated_at'
        ]


class PurchaseOrderSerializer(serializers.ModelSerializer):
    items = PurchaseOrderItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    customer_order_number = serializers.CharField(source='customer_order.order_number', read_only=True)
    customer_name = serializers.CharField(source='customer_order.customer_name', read_only=True)
    product_type = serializers.CharField(source='customer_order.product_type', read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)
    days_until_delivery = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'purchase_order_number', 'customer_order', 'customer_order_number', 'customer_name',
            'product_type', 'supplier', 'supplier_name', 'status', 'required_delivery_date',
            'total_quantity', 'total_value', 'notes', 'supplier_notes', 'rejection_reason', 'items',
            'is_overdue', 'days_until_delivery', 'confirmed_at', 'rejected_at', 'shipped_at',
            'delivered_at', 'created_at', 'updated_at'
        ]


class PurchaseOrderListSerializer(serializers.ModelSerializer):
    """Optimized serializer for purchase order lists"""
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    customer_order_number = serializers.CharField(source='customer_order.order_number', read_only=True)
    total_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            'id', 'purchase_order_number', 'customer_order', 'customer_order_number', 'supplier',
            'supplier_name', 'status', 'required_delivery_date', 'total_quantity', 'total_value', 'created_at'
        ]


class AllocationInputSerializer(serializers.Serializer):
    supplier_id = serializers.IntegerField()
    allocated_quantity = serializers.IntegerField()


class DistributionPlanSerializer(serializers.Serializer):
    allocations = AllocationInputSerializer(many=True, allow_empty=True)


class CreatePurchaseOrdersSerializer(serializers.Serializer):
    customer_order_id = serializers.IntegerField()
    allocations = AllocationInputSerializer(many=True, allow_empty=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ItemUpdateSerializer(serializers.Serializer):
    purchase_order_item_id = serializers.IntegerField(required=False)
    packaging_details = serializers.CharField(max_length=500, required=False, allow_blank=True)
    delivery_method = serializers.CharField(max_length=100, required=False, allow_blank=True)
    estimated_delivery_date = serializers.DateField(required=False, allow_null=True)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    supplier_notes = serializers.CharField(required=False, allow_blank=True)
    specifications = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class SupplierItemUpdateSerializer(ItemUpdateSerializer):
    purchase_order_item_id = serializers.IntegerField()


class ConfirmPurchaseOrderSerializer(serializers.Serializer):
    supplier_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    item_updates = SupplierItemUpdateSerializer(many=True, required=False)


class RejectPurchaseOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ItemUpdatesSerializer(serializers.Serializer):
    item_updates = SupplierItemUpdateSerializer(many=True, allow_empty=True)


class PurchaseOrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PurchaseOrderStatus.CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class DeliveryDateValidationSerializer(serializers.Serializer):
    estimated_delivery_dates = serializers.DictField(child=serializers.DateField(), allow_empty=False)

    def validate_estimated_delivery_dates(self, value):
        try:
            return {int(item_id): estimated for item_id, estimated in value.items()}
        except (TypeError, ValueError):
            raise serializers.ValidationError("Keys must be purchase order item IDs")
