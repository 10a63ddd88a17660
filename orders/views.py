import logging

from rest_framework import status, generics, permissions, filters
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from django.db.models import Q
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from authentication.audit import log_action
from authentication.mixins import BranchContextMixin, get_branch_object, resolve_branch_id
from authentication.permissions import MethodPermissionMixin, Permissions, require_permission
from bondpos.pagination import HistoryPagination
from .filters import OrderFilter
from .models import Table, Customer, Order
from .notifications import broadcast_web_order
from .receipts import render_receipt, render_kot
from .serializers import (
    TableSerializer, TableStatusSerializer, CustomerSerializer, BulkDeleteSerializer,
    OrderReadSerializer, OrderWriteSerializer, OrderItemReadSerializer, OrderStatusSerializer,
    PayOrderSerializer, PublicOrderSerializer
)
from . import services

logger = logging.getLogger(__name__)


def get_branch_order(request, pk):
    """Fetch an order, limited to the caller's branch when one is active"""
    queryset = Order.objects.select_related('table', 'branch', 'customer')
    branch_id = resolve_branch_id(request)
    if branch_id is not None:
        queryset = queryset.filter(branch_id=branch_id)
    return get_object_or_404(queryset, pk=pk)


# =============== TABLES ===============

class TableListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = Table.objects.all()
    serializer_class = TableSerializer
    permission_map = {'GET': Permissions.SALES_VIEW, 'POST': Permissions.SETTINGS_MANAGE}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['status']
    search_fields = ['table_number', 'description']
    ordering_fields = ['table_number', 'capacity']


class TableDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Table.objects.all()
    serializer_class = TableSerializer
    permission_map = {
        'GET': Permissions.SALES_VIEW,
        'PUT': Permissions.SETTINGS_MANAGE,
        'PATCH': Permissions.SETTINGS_MANAGE,
        'DELETE': Permissions.SETTINGS_MANAGE,
    }


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_VIEW)])
def table_current_order(request, pk):
    table = get_branch_object(request, Table.objects.all(), pk)
    order = table.current_order(branch_id=resolve_branch_id(request))
    if order is None:
        return Response({'error': True, 'message': 'No open order for this table'}, status=status.HTTP_404_NOT_FOUND)
    return Response(OrderReadSerializer(order).data)


@api_view(['PATCH'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_EDIT)])
def table_status(request, pk):
    table = get_branch_object(request, Table.objects.all(), pk)
    serializer = TableStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    table.status = serializer.validated_data['status']
    table.save(update_fields=['status'])
    return Response(TableSerializer(table).data)


# =============== CUSTOMERS ===============

class CustomerListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = Customer.objects.all()
    serializer_class = CustomerSerializer
    permission_map = {'GET': Permissions.SALES_VIEW, 'POST': Permissions.SALES_CREATE}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['name', 'phone', 'email']
    ordering_fields = ['name', 'created_at']


class CustomerDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Customer.objects.all()
    serializer_class = CustomerSerializer
    permission_map = {
        'GET': Permissions.SALES_VIEW,
        'PUT': Permissions.SALES_EDIT,
        'PATCH': Permissions.SALES_EDIT,
        'DELETE': Permissions.SALES_DELETE,
    }

    def perform_destroy(self, instance):
        log_action(self.request, 'delete', 'customer', entity_id=instance.id, entity_name=instance.name)
        instance.delete()


@swagger_auto_schema(
    method='post',
    request_body=openapi.Schema(
        type=openapi.TYPE_OBJECT,
        required=['ids'],
        properties={'ids': openapi.Schema(type=openapi.TYPE_ARRAY, items=openapi.Schema(type=openapi.TYPE_INTEGER))}
    ),
    responses={200: 'Number of customers deleted'}
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_DELETE)])
def customers_bulk_delete(request):
    serializer = BulkDeleteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    ids = serializer.validated_data['ids']

    deleted, _ = Customer.objects.filter(pk__in=ids).delete()
    log_action(request, 'delete', 'customer', description=f"Bulk deleted {deleted} customers",
               changes={'ids': ids})
    return Response({'deleted': deleted})


class CustomerOrderHistoryView(MethodPermissionMixin, generics.ListAPIView):
    """A customer's orders, newest first; takes the order list filters plus ``page`` and ``limit``"""
    serializer_class = OrderReadSerializer
    permission_map = {'GET': Permissions.SALES_VIEW}
    pagination_class = HistoryPagination
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter

    def get_queryset(self):
        if getattr(self, 'swagger_fake_view', False):
            return Order.objects.none()
        customer = get_branch_object(self.request, Customer.objects.all(), self.kwargs['pk'])
        orders = customer.orders.select_related('table', 'branch', 'created_by').prefetch_related('items')
        branch_id = resolve_branch_id(self.request)
        if branch_id is not None:
            orders = orders.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))
        return orders.order_by('-created_at')


# =============== ORDERS ===============

class OrderListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    """List orders with filters, or create an order with its items"""
    queryset = Order.objects.select_related('table', 'branch', 'created_by').prefetch_related('items')
    permission_map = {'GET': Permissions.SALES_VIEW, 'POST': Permissions.SALES_CREATE}
    include_shared = False
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = OrderFilter
    ordering_fields = ['created_at', 'total', 'order_number']

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderWriteSerializer
        return OrderReadSerializer

    @swagger_auto_schema(
        manual_parameters=[
            openapi.Parameter('status', openapi.IN_QUERY, description="Filter by order status", type=openapi.TYPE_STRING),
            openapi.Parameter('payment_status', openapi.IN_QUERY, description="Filter by payment status", type=openapi.TYPE_STRING),
            openapi.Parameter('order_source', openapi.IN_QUERY, description="pos, qr, web or due-management", type=openapi.TYPE_STRING),
            openapi.Parameter('search', openapi.IN_QUERY, description="Order number, customer or table", type=openapi.TYPE_STRING),
            openapi.Parameter('date_filter', openapi.IN_QUERY, description="today, yesterday, this-week, this-month, last-month, custom, all", type=openapi.TYPE_STRING),
            openapi.Parameter('start_date', openapi.IN_QUERY, description="YYYY-MM-DD", type=openapi.TYPE_STRING),
            openapi.Parameter('end_date', openapi.IN_QUERY, description="YYYY-MM-DD", type=openapi.TYPE_STRING),
            openapi.Parameter('page', openapi.IN_QUERY, description="Page number; omit for an unpaged list", type=openapi.TYPE_INTEGER),
            openapi.Parameter('limit', openapi.IN_QUERY, description="Page size", type=openapi.TYPE_INTEGER),
        ]
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)

    @swagger_auto_schema(request_body=OrderWriteSerializer, responses={201: OrderReadSerializer, 400: 'Bad Request'})
    def post(self, request, *args, **kwargs):
        return super().post(request, *args, **kwargs)

    def perform_create(self, serializer):
        super().perform_create(serializer)
        order = serializer.instance
        log_action(self.request, 'create', 'order', entity_id=order.id, entity_name=order.order_number,
                   description=f"Order {order.order_number} created, total {order.total}")


class OrderDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Order.objects.select_related('table', 'branch', 'created_by').prefetch_related('items')
    permission_map = {
        'GET': Permissions.SALES_VIEW,
        'PUT': Permissions.SALES_EDIT,
        'PATCH': Permissions.SALES_EDIT,
        'DELETE': Permissions.SALES_DELETE,
    }
    include_shared = False

    def get_serializer_class(self):
        if self.request.method in ('PUT', 'PATCH'):
            return OrderWriteSerializer
        return OrderReadSerializer

    def perform_update(self, serializer):
        order = serializer.save()
        log_action(self.request, 'update', 'order', entity_id=order.id, entity_name=order.order_number,
                   description=f"Order {order.order_number} updated")

    def perform_destroy(self, instance):
        log_action(self.request, 'delete', 'order', entity_id=instance.id, entity_name=instance.order_number,
                   description=f"Order {instance.order_number} deleted")
        services.delete_order(instance)


class SourceOrderListView(BranchContextMixin, MethodPermissionMixin, generics.ListAPIView):
    """Orders narrowed to a fixed status or source"""
    queryset = Order.objects.select_related('table', 'branch').prefetch_related('items')
    serializer_class = OrderReadSerializer
    permission_map = {'GET': Permissions.SALES_VIEW}
    include_shared = False
    filter_backends = [DjangoFilterBackend]
    filterset_class = OrderFilter
    order_filter = {}

    def get_queryset(self):
        return super().get_queryset().filter(**self.order_filter)


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_VIEW)])
def order_items(request, pk):
    order = get_branch_order(request, pk)
    return Response(OrderItemReadSerializer(order.items.all(), many=True).data)


@swagger_auto_schema(method='patch', request_body=OrderStatusSerializer, responses={200: OrderReadSerializer})
@api_view(['PATCH'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_EDIT)])
def order_status(request, pk):
    order = get_branch_order(request, pk)
    serializer = OrderStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    previous = order.status
    order = services.set_status(order, serializer.validated_data['status'])
    log_action(request, 'update', 'order', entity_id=order.id, entity_name=order.order_number,
               description=f"Status {previous} -> {order.status}",
               changes={'status': [previous, order.status]})
    return Response(OrderReadSerializer(order).data)


@swagger_auto_schema(
    method='post',
    request_body=PayOrderSerializer,
    responses={200: 'Payment summary with change and remaining', 400: 'Payment does not cover the total'}
)
@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_EDIT)])
def pay_order(request, pk):
    order = get_branch_order(request, pk)
    serializer = PayOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    summary = services.pay_order(
        order,
        data.get('payment_method'),
        amount_paid=data.get('amount_paid'),
        splits=data.get('payment_splits'),
    )
    log_action(request, 'update', 'order', entity_id=order.id, entity_name=order.order_number,
               description=f"Order {order.order_number} paid via {order.payment_method}")

    return Response({
        'order': OrderReadSerializer(order).data,
        'total': summary['total'],
        'total_paid': summary['total_paid'],
        'change': summary['change'],
        'remaining': summary['remaining'],
    })


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_EDIT)])
def accept_order(request, pk):
    order = services.accept_web_order(get_branch_order(request, pk))
    log_action(request, 'update', 'order', entity_id=order.id, entity_name=order.order_number,
               description=f"Web order {order.order_number} accepted")
    return Response(OrderReadSerializer(order).data)


@api_view(['POST'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_EDIT)])
def reject_order(request, pk):
    order = services.reject_web_order(get_branch_order(request, pk))
    log_action(request, 'update', 'order', entity_id=order.id, entity_name=order.order_number,
               description=f"Web order {order.order_number} rejected")
    return Response(OrderReadSerializer(order).data)


@swagger_auto_schema(
    method='get',
    manual_parameters=[
        openapi.Parameter('template', openapi.IN_QUERY, description="classic, modern, compact, detailed or elegant", type=openapi.TYPE_STRING),
        openapi.Parameter('amount_paid', openapi.IN_QUERY, description="Cash tendered, for the change line", type=openapi.TYPE_NUMBER),
    ],
    responses={200: 'Receipt HTML'}
)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_VIEW)])
def order_receipt(request, pk):
    order = get_branch_order(request, pk)
    html = render_receipt(
        order,
        template=request.query_params.get('template'),
        amount_paid=request.query_params.get('amount_paid') or None,
    )
    return HttpResponse(html, content_type='text/html; charset=utf-8')


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_VIEW)])
def order_kot(request, pk):
    order = get_branch_order(request, pk)
    return HttpResponse(render_kot(order), content_type='text/html; charset=utf-8')


# =============== PUBLIC ORDERING ===============

@swagger_auto_schema(method='post', request_body=PublicOrderSerializer, responses={201: OrderReadSerializer})
@api_view(['POST'])
@permission_classes([permissions.AllowAny])
def public_create_order(request):
    """Web shop and QR menu checkout; staff terminals are notified over the websocket"""
    serializer = PublicOrderSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = serializer.save()

    data = OrderReadSerializer(order).data
    broadcast_web_order(data, branch_id=order.branch_id)
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([permissions.AllowAny])
def public_order_status(request, order_number):
    order = get_object_or_404(
        Order.objects.filter(Q(order_source=Order.SOURCE_WEB) | Q(order_source=Order.SOURCE_QR)),
        order_number=order_number
    )
    return Response({
        'order_number': order.order_number,
        'status': order.status,
        'payment_status': order.payment_status,
        'total': order.total,
    })
