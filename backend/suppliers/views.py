from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.exceptions import ServiceError, ValidationFailedError, error_response
from backend.core.permissions import IsPlanner
from . import services
from .serializers import (
    SupplierSerializer, SupplierListSerializer, SupplierCreateSerializer, SupplierUpdateSerializer,
    SupplierCapabilitySerializer, SupplierPerformanceSerializer, CapacityUpdateSerializer,
    PerformanceUpdateSerializer
)


def _parse_bool(value):
    if value is None or value == '':
        return None
    return str(value).lower() in ('true', '1', 'yes')


def _int_param(request, name, default=0):
    value = request.query_params.get(name)
    if value in (None, ''):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailedError(f"{name} must be an integer")


def _float_param(request, name, default):
    value = request.query_params.get(name)
    if value in (None, ''):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationFailedError(f"{name} must be a number")


def _require_product_type(request):
    product_type = request.query_params.get('product_type')
    if not product_type:
        raise ValidationFailedError("product_type is required")
    return product_type


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_list_create(request):
    """List suppliers or create a supplier with its capabilities"""
    if request.method == 'GET':
        try:
            filters = {
                'is_active': _parse_bool(request.query_params.get('is_active')),
                'product_type': request.query_params.get('product_type'),
                'search': request.query_params.get('search'),
                'min_capacity': _int_param(request, 'min_capacity', None),
            }
            suppliers = services.list_suppliers(filters)
        except ServiceError as e:
            return error_response(e)
        return Response(SupplierListSerializer(suppliers, many=True).data)

    serializer = SupplierCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        supplier = services.create_supplier(serializer.validated_data, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierSerializer(supplier).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_detail(request, pk):
    try:
        if request.method == 'GET':
            supplier = services.get_supplier(pk)
        else:
            serializer = SupplierUpdateSerializer(data=request.data, partial=True)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            supplier = services.update_supplier(pk, serializer.validated_data, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierSerializer(supplier).data)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_capacity(request, pk, product_type):
    """Read or set a supplier's capacity for one product type"""
    if request.method == 'GET':
        try:
            supplier = services.get_supplier(pk)
        except ServiceError as e:
            return error_response(e)
        capability = supplier.get_capability(product_type)
        if capability is None:
            return Response(
                {'error': f"Supplier {pk} has no capability for product type {product_type}", 'code': 'not_found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(SupplierCapabilitySerializer(capability).data)

    serializer = CapacityUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = dict(serializer.validated_data)
    try:
        capability = services.update_supplier_capacity(
            pk, product_type,
            data.pop('max_monthly_capacity'),
            data.pop('current_commitments', None),
            user=request.user, request=request, **data
        )
    except ServiceError as e:
        services.log_rejected_supplier_action('supplier_capacity_update', pk, e.message,
                                              user=request.user, request=request)
        return error_response(e)
    return Response(SupplierCapabilitySerializer(capability).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_performance(request, pk):
    """Read performance metrics or record a delivery / rating"""
    try:
        if request.method == 'GET':
            performance = services.get_supplier_performance(pk)
        else:
            serializer = PerformanceUpdateSerializer(data=request.data)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            performance = services.update_supplier_performance(
                pk, user=request.user, request=request, **serializer.validated_data
            )
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierPerformanceSerializer(performance).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_activate(request, pk):
    try:
        supplier = services.activate_supplier(pk, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierSerializer(supplier).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_deactivate(request, pk):
    try:
        supplier = services.deactivate_supplier(pk, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierSerializer(supplier).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_eligibility(request, pk):
    try:
        product_type = _require_product_type(request)
        quantity = _int_param(request, 'quantity', 1)
        result = services.validate_supplier_eligibility(pk, product_type, quantity)
    except ServiceError as e:
        return error_response(e)
    return Response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def available_suppliers(request):
    """Active suppliers able to take `required_capacity` units of a product type"""
    try:
        product_type = _require_product_type(request)
        required_capacity = _int_param(request, 'required_capacity', 0)
        suppliers = services.get_available_suppliers(product_type, required_capacity)
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierSerializer(suppliers, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def suppliers_by_performance(request):
    try:
        product_type = _require_product_type(request)
        suppliers = services.get_suppliers_by_performance(
            product_type,
            min_on_time_rate=_float_param(request, 'min_on_time_rate', 0.8),
            min_quality_score=_float_param(request, 'min_quality_score', 3.0),
        )
    except ServiceError as e:
        return error_response(e)
    return Response(SupplierSerializer(suppliers, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def total_available_capacity(request, product_type):
    try:
        total = services.get_total_available_capacity(product_type)
    except ServiceError as e:
        return error_response(e)
    return Response({'product_type': product_type, 'total_available_capacity': total})
