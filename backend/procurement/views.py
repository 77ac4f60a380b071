import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.exceptions import ServiceError, error_response
from backend.core.permissions import IsPlanner, IsSupplierUser
from backend.core.utils import get_page_params, paginate
from . import distribution, portal, services
from .serializers import (
    PurchaseOrderSerializer, PurchaseOrderListSerializer, PurchaseOrderItemSerializer,
    DistributionPlanSerializer, CreatePurchaseOrdersSerializer, ItemUpdateSerializer,
    ConfirmPurchaseOrderSerializer, RejectPurchaseOrderSerializer, ItemUpdatesSerializer,
    PurchaseOrderStatusUpdateSerializer, DeliveryDateValidationSerializer
)

logger = logging.getLogger(__name__)


def _plain_allocations(allocations):
    return [dict(allocation) for allocation in allocations]


def _plain_updates(updates):
    return [dict(update) for update in updates or []]


# Planner procurement views

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def distribution_suggestion(request, order_id):
    """Suggested supplier split for a customer order (?strategy=even|performance_based|capacity_based|balanced)"""
    strategy = request.query_params.get('strategy') or distribution.STRATEGY_BALANCED
    try:
        suggestion = services.suggest_distribution(order_id, strategy)
    except ServiceError as e:
        return error_response(e)
    return Response(suggestion.to_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def validate_distribution(request, order_id):
    serializer = DistributionPlanSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    result = services.validate_distribution_plan(order_id, _plain_allocations(serializer.validated_data['allocations']))
    return Response(result.to_dict())


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def purchase_order_list_create(request):
    """List purchase orders or create them from a distribution plan"""
    if request.method == 'GET':
        page, page_size = get_page_params(request)
        queryset = services.purchase_order_queryset().order_by('-created_at')
        status_filter = request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        supplier_id = request.query_params.get('supplier_id')
        if supplier_id and supplier_id.isdigit():
            queryset = queryset.filter(supplier_id=supplier_id)
        return Response(paginate(queryset, page, page_size, PurchaseOrderListSerializer))

    serializer = CreatePurchaseOrdersSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_orders = services.create_purchase_orders(
            serializer.validated_data['customer_order_id'],
            _plain_allocations(serializer.validated_data['allocations']),
            user=request.user,
            notes=serializer.validated_data.get('notes'),
            request=request,
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_orders, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def supplier_purchase_orders(request, supplier_id):
    try:
        purchase_orders = services.get_purchase_orders_by_supplier(
            supplier_id, request.query_params.get('status') or None
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderListSerializer(purchase_orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def customer_order_purchase_orders(request, order_id):
    try:
        purchase_orders = services.get_purchase_orders_by_customer_order(order_id)
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def purchase_order_detail(request, pk):
    try:
        purchase_order = services.get_purchase_order(pk)
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def purchase_order_confirm(request, pk):
    """Record a supplier confirmation received outside the portal"""
    serializer = ConfirmPurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = services.confirm_purchase_order(
            pk,
            user=request.user,
            supplier_notes=serializer.validated_data.get('supplier_notes'),
            item_updates=_plain_updates(serializer.validated_data.get('item_updates')),
            request=request,
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def purchase_order_reject(request, pk):
    serializer = RejectPurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = services.reject_purchase_order(
            pk, user=request.user, reason=serializer.validated_data.get('reason'), request=request
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsPlanner])
def purchase_order_status(request, pk):
    serializer = PurchaseOrderStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = services.update_purchase_order_status(
            pk,
            serializer.validated_data['status'],
            user=request.user,
            notes=serializer.validated_data.get('notes'),
            request=request,
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsPlanner])
def purchase_order_item_update(request, item_id):
    serializer = ItemUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        item = services.update_purchase_order_item(
            item_id, dict(serializer.validated_data), user=request.user, request=request
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderItemSerializer(item).data)


# Supplier portal views, scoped to request.user.supplier_id

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_dashboard(request):
    try:
        summary = portal.get_supplier_dashboard_summary(request.user.supplier_id)
    except ServiceError as e:
        return error_response(e)
    return Response(summary)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_order_list(request):
    try:
        purchase_orders = portal.get_supplier_purchase_orders(
            request.user.supplier_id, request.query_params.get('status') or None
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderListSerializer(purchase_orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_order_history(request):
    """Paged, filterable order history (?sort_by=-total_value etc.)"""
    page, page_size = get_page_params(request)
    try:
        queryset, page, page_size = portal.get_supplier_order_history(
            request.user.supplier_id, request.query_params, page, page_size
        )
    except ServiceError as e:
        return error_response(e)
    return Response(paginate(queryset, page, page_size, PurchaseOrderListSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_order_detail(request, pk):
    try:
        purchase_order = portal.get_supplier_purchase_order(
            pk, request.user.supplier_id, user=request.user, request=request
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_order_confirm(request, pk):
    serializer = ConfirmPurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = portal.confirm_purchase_order(
            pk,
            request.user.supplier_id,
            user=request.user,
            notes=serializer.validated_data.get('supplier_notes'),
            item_updates=_plain_updates(serializer.validated_data.get('item_updates')),
            request=request,
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_order_reject(request, pk):
    serializer = RejectPurchaseOrderSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = portal.reject_purchase_order(
            pk, request.user.supplier_id, user=request.user,
            reason=serializer.validated_data.get('reason'), request=request
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_order_items(request, pk):
    serializer = ItemUpdatesSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        purchase_order = portal.update_purchase_order_items(
            pk, request.user.supplier_id, user=request.user,
            item_updates=_plain_updates(serializer.validated_data['item_updates']), request=request
        )
    except ServiceError as e:
        return error_response(e)
    return Response(PurchaseOrderSerializer(purchase_order).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSupplierUser])
def portal_validate_delivery_dates(request, pk):
    serializer = DeliveryDateValidationSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        portal.get_supplier_purchase_order(pk, request.user.supplier_id, user=request.user, request=request)
        result = portal.validate_delivery_dates(pk, serializer.validated_data['estimated_delivery_dates'])
    except ServiceError as e:
        return error_response(e)
    return Response(result)
