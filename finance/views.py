import logging

from rest_framework import generics, status, permissions, filters
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend

from authentication.audit import log_action
from authentication.mixins import BranchContextMixin, get_branch_object, resolve_branch_id
from authentication.permissions import MethodPermissionMixin, Permissions, require_permission
from bondpos.pagination import HistoryPagination
from dashboard.exports import export_response
from orders.filters import date_range, filter_by_period
from orders.models import Customer
from .models import ExpenseCategory, Expense, DuePayment, PaymentAdjustment
from .serializers import (
    ExpenseCategorySerializer, ExpenseSerializer, DuePaymentSerializer, DuePaymentCreateSerializer,
    DuePaymentUpdateSerializer, DuePaymentAllocationSerializer, PaymentAdjustmentSerializer
)
from . import services

logger = logging.getLogger(__name__)

EXPENSE_COLUMNS = ['Date', 'Category', 'Description', 'Unit', 'Quantity', 'Amount', 'Total']


# =============== EXPENSES ===============

class ExpenseCategoryListCreateView(MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = ExpenseCategory.objects.all()
    serializer_class = ExpenseCategorySerializer
    permission_map = {'POST': Permissions.EXPENSES_MANAGE}
    pagination_class = None


class ExpenseCategoryDetailView(MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = ExpenseCategory.objects.all()
    serializer_class = ExpenseCategorySerializer
    permission_map = {
        'PUT': Permissions.EXPENSES_MANAGE,
        'PATCH': Permissions.EXPENSES_MANAGE,
        'DELETE': Permissions.EXPENSES_MANAGE,
    }

    def perform_destroy(self, instance):
        if instance.expenses.exists():
            raise ValidationError("Category still has expenses; move or delete them first")
        instance.delete()


class ExpenseQuerysetMixin(BranchContextMixin):
    queryset = Expense.objects.select_related('category')

    def get_queryset(self):
        queryset = super().get_queryset()
        category = self.request.query_params.get('category')
        if category:
            queryset = queryset.filter(category_id=category)
        return filter_by_period(queryset, self.request.query_params, field='expense_date')


class ExpenseListCreateView(ExpenseQuerysetMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    """
    get: List expenses (``date_filter``, ``start_date``, ``end_date``, ``category``)
    post: Record an expense
    """
    serializer_class = ExpenseSerializer
    permission_map = {'GET': Permissions.REPORTS_VIEW, 'POST': Permissions.EXPENSES_MANAGE}
    filter_backends = [filters.SearchFilter, filters.OrderingFilter]
    search_fields = ['description']
    ordering_fields = ['expense_date', 'total']

    def perform_create(self, serializer):
        super().perform_create(serializer)
        expense = serializer.instance
        log_action(self.request, 'create', 'expense', entity_id=expense.id, entity_name=expense.description,
                   description=f"Expense {expense.total}")


class ExpenseDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = Expense.objects.select_related('category')
    serializer_class = ExpenseSerializer
    permission_map = {
        'GET': Permissions.REPORTS_VIEW,
        'PUT': Permissions.EXPENSES_MANAGE,
        'PATCH': Permissions.EXPENSES_MANAGE,
        'DELETE': Permissions.EXPENSES_MANAGE,
    }

    def perform_destroy(self, instance):
        log_action(self.request, 'delete', 'expense', entity_id=instance.id, entity_name=instance.description)
        instance.delete()


class ExpenseStatsView(ExpenseQuerysetMixin, MethodPermissionMixin, generics.GenericAPIView):
    permission_map = {'GET': Permissions.REPORTS_VIEW}

    def get(self, request):
        return Response(services.expense_stats(self.get_queryset()))


class ExpenseExportView(ExpenseQuerysetMixin, MethodPermissionMixin, generics.GenericAPIView):
    """``?format=csv|excel|pdf`` plus the expense list filters"""
    permission_map = {'GET': Permissions.REPORTS_EXPORT}

    def get(self, request):
        export_format = request.query_params.get('format', 'csv')
        queryset = self.get_queryset()
        rows = services.expense_rows(queryset)
        stats = services.expense_stats(queryset)
        filename = f"expenses_{timezone.localdate():%Y%m%d}"
        totals = {'Total': float(stats['total_amount'])}

        return export_response(export_format, rows, EXPENSE_COLUMNS, filename, 'Expenses Report', totals=totals)


# =============== DUE PAYMENTS ===============

class DuePaymentListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    """
    get: List customer payments against due orders
    post: Record a payment with allocations ``[{order_id, amount}]``
    """
    queryset = DuePayment.objects.select_related('customer', 'recorded_by').prefetch_related('allocations__order')
    permission_map = {'GET': Permissions.DUE_VIEW, 'POST': Permissions.DUE_CREATE}
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_fields = ['customer', 'payment_method']
    search_fields = ['customer__name', 'reference', 'note']
    ordering_fields = ['payment_date', 'amount']

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return DuePaymentCreateSerializer
        return DuePaymentSerializer

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = dict(serializer.validated_data)
        allocations = data.pop('allocations', [])
        if data.get('branch') is None and self.get_branch_id() is not None:
            data['branch_id'] = self.get_branch_id()
            data.pop('branch', None)

        payment = services.record_payment_with_allocations(data, allocations, user=request.user)
        log_action(request, 'create', 'due_payment', entity_id=payment.id, entity_name=payment.customer.name,
                   description=f"Due payment {payment.amount} via {payment.payment_method}",
                   changes={'allocations': [
                       {'order_id': a['order'].pk, 'amount': str(a['amount'])} for a in allocations
                   ]})
        return Response(DuePaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class DuePaymentDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = DuePayment.objects.select_related('customer', 'recorded_by').prefetch_related('allocations__order')
    permission_map = {
        'GET': Permissions.DUE_VIEW,
        'PUT': Permissions.DUE_EDIT,
        'PATCH': Permissions.DUE_EDIT,
        'DELETE': Permissions.DUE_DELETE,
    }

    def get_serializer_class(self):
        if self.request.method in ('PUT', 'PATCH'):
            return DuePaymentUpdateSerializer
        return DuePaymentSerializer

    def perform_destroy(self, instance):
        log_action(self.request, 'delete', 'due_payment', entity_id=instance.id, entity_name=instance.customer.name,
                   description=f"Due payment {instance.amount} deleted")
        services.delete_due_payment(instance)


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.DUE_VIEW)])
def due_payment_allocations(request, pk):
    payment = get_object_or_404(DuePayment, pk=pk)
    return Response(DuePaymentAllocationSerializer(payment.allocations.select_related('order'), many=True).data)


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.DUE_VIEW)])
def customer_due_summary(request, pk):
    customer = get_object_or_404(Customer, pk=pk)
    return Response(services.customer_due_summary(customer))


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.DUE_VIEW)])
def customers_due_summary(request):
    summaries = services.customers_due_summary(
        branch_id=resolve_branch_id(request),
        search=request.query_params.get('search'),
    )
    return Response(summaries)


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.DUE_VIEW)])
def due_export(request):
    """``?format=csv|excel|pdf`` of the customers due summary"""
    summaries = services.customers_due_summary(
        branch_id=resolve_branch_id(request),
        search=request.query_params.get('search'),
    )
    rows = services.due_summary_rows(summaries)
    totals = {
        'Total Due': sum(row['Total Due'] for row in rows),
        'Balance': sum(row['Balance'] for row in rows),
    }
    filename = f"due_{timezone.localdate():%Y%m%d}"
    return export_response(
        request.query_params.get('format', 'csv'), rows, services.DUE_EXPORT_COLUMNS,
        filename, 'Customer Due Report', totals=totals,
    )


class CustomerTransactionsView(MethodPermissionMixin, generics.GenericAPIView):
    """Due entries and payments of one customer, newest first, a page at a time"""
    pagination_class = HistoryPagination
    permission_map = {'GET': Permissions.DUE_VIEW}

    def get(self, request, pk):
        customer = get_branch_object(request, Customer.objects.all(), pk)
        params = request.query_params
        start, end = date_range(params.get('date_filter'), params.get('start_date'), params.get('end_date'))
        transactions = services.customer_transactions(
            customer,
            branch_id=resolve_branch_id(request),
            search=params.get('search'),
            start=start,
            end=end,
        )
        page = self.paginate_queryset(transactions)
        return self.get_paginated_response(page)


# =============== PAYMENT ADJUSTMENTS ===============

class PaymentAdjustmentListCreateView(BranchContextMixin, MethodPermissionMixin, generics.ListCreateAPIView):
    queryset = PaymentAdjustment.objects.all()
    serializer_class = PaymentAdjustmentSerializer
    permission_map = {'GET': Permissions.REPORTS_VIEW, 'POST': Permissions.PAYMENTS_MANAGE}
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['payment_method', 'adjustment_type']
    ordering_fields = ['created_at', 'amount']

    def perform_create(self, serializer):
        super().perform_create(serializer)
        adjustment = serializer.instance
        log_action(self.request, 'create', 'payment_adjustment', entity_id=adjustment.id,
                   entity_name=adjustment.payment_method,
                   description=f"{adjustment.adjustment_type} {adjustment.amount} on {adjustment.payment_method}")


class PaymentAdjustmentDetailView(BranchContextMixin, MethodPermissionMixin, generics.RetrieveUpdateDestroyAPIView):
    queryset = PaymentAdjustment.objects.all()
    serializer_class = PaymentAdjustmentSerializer
    permission_map = {
        'GET': Permissions.REPORTS_VIEW,
        'PUT': Permissions.PAYMENTS_MANAGE,
        'PATCH': Permissions.PAYMENTS_MANAGE,
        'DELETE': Permissions.PAYMENTS_MANAGE,
    }
