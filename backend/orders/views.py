import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from backend.core.choices import ROLE_ADMINISTRATOR, ROLE_PLANNER
from backend.core.exceptions import ServiceError, error_response
from backend.core.permissions import IsPlanner, IsPlannerOrCustomer, get_customer_id, user_has_role
from backend.core.utils import get_page_params, paginate, parse_date
from backend.reports import dashboard
from . import services, tracking
from .serializers import (
    CustomerOrderSerializer, CustomerOrderListSerializer, OrderCreateSerializer, OrderUpdateSerializer,
    OrderStatusUpdateSerializer, OrderStatusHistorySerializer, OrderMilestoneSerializer
)

logger = logging.getLogger(__name__)


def _is_planner(user):
    return user_has_role(user, ROLE_ADMINISTRATOR, ROLE_PLANNER)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def order_list_create(request):
    """
    List orders (customers only see their own) or create an order.
    Customers always create orders under their own customer ID.
    """
    if request.method == 'GET':
        page, page_size = get_page_params(request)
        filters = request.query_params.copy()
        if not _is_planner(request.user):
            filters['customer_id'] = get_customer_id(request.user)
        try:
            queryset, page, page_size = services.list_orders(filters, page, page_size)
        except ServiceError as e:
            return error_response(e)
        return Response(paginate(queryset, page, page_size, CustomerOrderListSerializer))

    serializer = OrderCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = dict(serializer.validated_data)
    if not _is_planner(request.user):
        data['customer_id'] = get_customer_id(request.user)
    try:
        order = services.create_order(data, user=request.user, request=request)
    except ServiceError as e:
        return error_response(e)
    return Response(CustomerOrderSerializer(order).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsPlanner])
def order_detail(request, pk):
    """Retrieve, update or delete an order"""
    try:
        if request.method == 'GET':
            order = services.get_order(pk)
        elif request.method == 'PATCH':
            serializer = OrderUpdateSerializer(data=request.data, partial=True)
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
            order = services.update_order(pk, serializer.validated_data, user=request.user, request=request)
        else:  # DELETE
            services.delete_order(pk, user=request.user, request=request)
            return Response(status=status.HTTP_204_NO_CONTENT)
    except ServiceError as e:
        return error_response(e)
    return Response(CustomerOrderSerializer(order).data)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsPlanner])
def order_status(request, pk):
    """GET reports the allowed transitions; PATCH moves the order"""
    if request.method == 'GET':
        try:
            result = tracking.validate_status_transition(pk, request.query_params.get('status'))
        except ServiceError as e:
            return error_response(e)
        return Response(result)

    serializer = OrderStatusUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    try:
        order = services.update_order_status(
            pk,
            serializer.validated_data['status'],
            user=request.user,
            notes=serializer.validated_data.get('notes'),
            reason=serializer.validated_data.get('reason'),
            request=request,
        )
    except ServiceError as e:
        return error_response(e)
    return Response(CustomerOrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def order_history(request, pk):
    try:
        history = tracking.get_order_status_history(pk)
    except ServiceError as e:
        return error_response(e)
    return Response(OrderStatusHistorySerializer(history, many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def order_milestones(request, pk):
    """List milestones or add a manual one"""
    try:
        if request.method == 'GET':
            milestones = tracking.get_order_milestones(pk)
            return Response(OrderMilestoneSerializer(milestones, many=True).data)

        serializer = OrderMilestoneSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        order = services.get_order(pk)
        milestone = tracking.add_order_milestone(
            order,
            serializer.validated_data['name'],
            description=serializer.validated_data.get('description', ''),
            target_date=serializer.validated_data.get('target_date'),
            notes=serializer.validated_data.get('notes'),
        )
    except ServiceError as e:
        return error_response(e)
    return Response(OrderMilestoneSerializer(milestone).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def orders_by_delivery_date(request):
    try:
        orders = services.get_orders_by_delivery_date(
            request.query_params.get('start_date'), request.query_params.get('end_date')
        )
    except ServiceError as e:
        return error_response(e)
    return Response(CustomerOrderListSerializer(orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def order_dashboard(request):
    """Cached planner dashboard summary"""
    try:
        summary = dashboard.get_dashboard_summary(
            product_type=request.query_params.get('product_type') or None,
            customer_id=request.query_params.get('customer_id') or None,
            start_date=parse_date(request.query_params.get('start_date'), 'start_date'),
            end_date=parse_date(request.query_params.get('end_date'), 'end_date'),
        )
    except ServiceError as e:
        return error_response(e)
    return Response(summary)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def at_risk_orders(request):
    orders = tracking.get_at_risk_orders()
    return Response(CustomerOrderListSerializer(orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlanner])
def orders_requiring_attention(request):
    orders = tracking.get_orders_requiring_attention()
    return Response(CustomerOrderListSerializer(orders, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPlanner])
def process_transitions(request):
    transitioned = tracking.process_automatic_status_transitions(user=request.user)
    return Response({'transitioned_count': len(transitioned), 'orders': transitioned})


# Customer tracking views, always scoped to the requesting customer

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_order_list(request):
    page, page_size = get_page_params(request)
    try:
        filters = {
            'start_date': parse_date(request.query_params.get('start_date'), 'start_date'),
            'end_date': parse_date(request.query_params.get('end_date'), 'end_date'),
            'status': request.query_params.get('status'),
            'product_type': request.query_params.get('product_type'),
            'is_at_risk': request.query_params.get('is_at_risk', '').lower() in ('true', '1'),
        }
    except ServiceError as e:
        return error_response(e)
    queryset, page, page_size = tracking.get_customer_orders(
        get_customer_id(request.user), filters, page, page_size
    )
    return Response(paginate(queryset, page, page_size, CustomerOrderListSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_order_detail(request, pk):
    try:
        order = tracking.get_customer_order(pk, get_customer_id(request.user))
    except ServiceError as e:
        return error_response(e)
    return Response(CustomerOrderSerializer(order).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_order_history(request, pk):
    customer_id = get_customer_id(request.user)
    try:
        history = tracking.get_order_status_history(pk, customer_id)
        milestones = tracking.get_order_milestones(pk, customer_id)
    except ServiceError as e:
        return error_response(e)
    return Response({
        'status_history': OrderStatusHistorySerializer(history, many=True).data,
        'milestones': OrderMilestoneSerializer(milestones, many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_order_timeline(request, pk):
    try:
        timeline = tracking.get_order_timeline(pk, get_customer_id(request.user))
    except ServiceError as e:
        return error_response(e)
    return Response(timeline)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_recent_orders(request):
    try:
        count = max(1, min(int(request.query_params.get('count', 5)), 50))
    except (TypeError, ValueError):
        count = 5
    orders = tracking.get_recent_orders(get_customer_id(request.user), count=count)
    return Response(CustomerOrderListSerializer(orders, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsPlannerOrCustomer])
def customer_order_summary(request):
    return Response(tracking.get_order_tracking_summary(get_customer_id(request.user)))
