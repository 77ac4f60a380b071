from rest_framework import serializers

from backend.core.choices import PRODUCT_TYPE_CHOICES
from .models import Supplier, SupplierCapability, SupplierPerformanceMetrics


class SupplierCapabilitySerializer(serializers.ModelSerializer):
    available_capacity = serializers.IntegerField(read_only=True)
    capacity_utilization_rate = serializers.FloatField(read_only=True)

    class Meta:
        model = SupplierCapability
        fields = [
            'id', 'product_type', 'max_monthly_capacity', 'current_commitments', 'available_capacity',
            'capacity_utilization_rate', 'quality_rating', 'lead_time_days', 'estimated_unit_cost',
            'certifications', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']


class SupplierPerformanceSerializer(serializers.ModelSerializer):
    overall_performance_score = serializers.FloatField(read_only=True)
    is_reliable_supplier = serializers.BooleanField(read_only=True)
    is_preferred_supplier = serializers.BooleanField(read_only=True)
    cancellation_rate = serializers.FloatField(read_only=True)

    class Meta:
        model = SupplierPerformanceMetrics
        fields = [
            'on_time_delivery_rate', 'quality_score', 'total_orders_completed', 'total_orders_on_time',
            'total_orders_late', 'total_orders_cancelled', 'average_delivery_days',
            'customer_satisfaction_rate', 'overall_performance_score', 'is_reliable_supplier',
            'is_preferred_supplier', 'cancellation_rate', 'last_updated'
        ]


class SupplierSerializer(serializers.ModelSerializer):
    capabilities = SupplierCapabilitySerializer(many=True, read_only=True)
    performance = SupplierPerformanceSerializer(read_only=True)

    class Meta:
        model = Supplier
        fields = [
            'id', 'name', 'contact_email', 'contact_phone', 'address', 'contact_person_name', 'notes',
            'is_active', 'capabilities', 'performance', 'created_at', 'updated_at'
        ]


class SupplierListSerializer(serializers.ModelSerializer):
    """Compact representation for lists"""
    overall_performance_score = serializers.SerializerMethodField()
    product_types = serializers.SerializerMethodField()

    class Meta:
        model = Supplier
        fields = ['id', 'name', 'contact_email', 'contact_phone', 'is_active',
                  'product_types', 'overall_performance_score']

    def get_overall_performance_score(self, obj):
        performance = getattr(obj, 'performance', None)
        return performance.overall_performance_score if performance else None

    def get_product_types(self, obj):
        return [c.product_type for c in obj.capabilities.all() if c.is_active]


class CapabilityInputSerializer(serializers.Serializer):
    product_type = serializers.ChoiceField(choices=PRODUCT_TYPE_CHOICES)
    max_monthly_capacity = serializers.IntegerField(min_value=0)
    current_commitments = serializers.IntegerField(min_value=0, required=False)
    quality_rating = serializers.DecimalField(max_digits=3, decimal_places=2, min_value=0, max_value=5, required=False)
    lead_time_days = serializers.IntegerField(min_value=0, required=False)
    estimated_unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                                   required=False, allow_null=True)
    certifications = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)
    is_active = serializers.BooleanField(required=False)


class SupplierCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    contact_email = serializers.EmailField(max_length=255)
    contact_phone = serializers.CharField(max_length=20)
    address = serializers.CharField(max_length=500)
    contact_person_name = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    is_active = serializers.BooleanField(default=True)
    capabilities = CapabilityInputSerializer(many=True, required=False)
    initial_on_time_delivery_rate = serializers.FloatField(min_value=0, max_value=1, required=False)
    initial_quality_score = serializers.FloatField(min_value=0, max_value=5, required=False)


class SupplierUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200, required=False)
    contact_email = serializers.EmailField(max_length=255, required=False)
    contact_phone = serializers.CharField(max_length=20, required=False)
    address = serializers.CharField(max_length=500, required=False)
    contact_person_name = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    is_active = serializers.BooleanField(required=False)


class CapacityUpdateSerializer(serializers.Serializer):
    max_monthly_capacity = serializers.IntegerField(min_value=0)
    current_commitments = serializers.IntegerField(min_value=0, required=False)
    quality_rating = serializers.DecimalField(max_digits=3, decimal_places=2, min_value=0, max_value=5, required=False)
    lead_time_days = serializers.IntegerField(min_value=0, required=False)
    estimated_unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0,
                                                   required=False, allow_null=True)
    certifications = serializers.CharField(max_length=500, required=False, allow_blank=True, allow_null=True)
    is_active = serializers.BooleanField(required=False)

    def validate(self, attrs):
        current = attrs.get('current_commitments')
        if current is not None and current > attrs['max_monthly_capacity']:
            raise serializers.ValidationError(
                {"current_commitments": "Current commitments cannot exceed maximum monthly capacity"}
            )
        return attrs


class PerformanceUpdateSerializer(serializers.Serializer):
    on_time = serializers.BooleanField(required=False, allow_null=True, default=None)
    quality_score = serializers.FloatField(min_value=0, max_value=5, required=False, allow_null=True)
    delivery_days = serializers.FloatField(min_value=0, required=False, allow_null=True)
    customer_satisfaction_rate = serializers.FloatField(min_value=0, max_value=1, required=False, allow_null=True)
