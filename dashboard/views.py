import logging
from datetime import timedelta

from rest_framework import permissions
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response
from django.utils import timezone
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema

from authentication.mixins import resolve_branch_id
from authentication.models import BusinessSettings
from authentication.authentication import CentralApiKeyAuthentication
from authentication.permissions import HasCentralApiKey, Permissions, require_permission
from orders.filters import filter_by_period, date_range
from orders.models import Order
from orders.serializers import OrderReadSerializer
from . import reports
from .exports import export_response

logger = logging.getLogger(__name__)

PERIOD_PARAMETERS = [
    openapi.Parameter('date_filter', openapi.IN_QUERY, description="today, yesterday, this-week, this-month, last-month, custom, all", type=openapi.TYPE_STRING),
    openapi.Parameter('start_date', openapi.IN_QUERY, description="YYYY-MM-DD (custom)", type=openapi.TYPE_STRING),
    openapi.Parameter('end_date', openapi.IN_QUERY, description="YYYY-MM-DD (custom)", type=openapi.TYPE_STRING),
]


def period_sales(request):
    """Completed sales for the request's branch and period"""
    orders = reports.completed_sales(resolve_branch_id(request))
    params = request.query_params
    if params.get('payment_method'):
        orders = orders.filter(payment_method=params['payment_method'])
    if params.get('payment_status'):
        orders = orders.filter(payment_status=params['payment_status'])
    return filter_by_period(orders, params)


@swagger_auto_schema(method='get', manual_parameters=PERIOD_PARAMETERS, responses={200: 'Dashboard figures'})
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_VIEW)])
def dashboard_stats(request):
    params = request.query_params
    stats = reports.dashboard_stats(
        resolve_branch_id(request),
        params.get('date_filter'), params.get('start_date'), params.get('end_date'),
    )
    return Response(stats)


@swagger_auto_schema(method='get', manual_parameters=PERIOD_PARAMETERS)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_VIEW)])
def sales_by_category(request):
    return Response(reports.sales_by_category(period_sales(request)))


@swagger_auto_schema(method='get', manual_parameters=PERIOD_PARAMETERS)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_VIEW)])
def sales_by_payment_method(request):
    return Response(reports.sales_by_payment_method(period_sales(request)))


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_VIEW)])
def popular_products(request):
    limit = request.query_params.get('limit', '10')
    limit = int(limit) if limit.isdigit() else 10
    return Response(reports.item_report(period_sales(request))[:limit])


@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.SALES_VIEW)])
def recent_orders(request):
    orders = Order.objects.select_related('table').prefetch_related('items')
    branch_id = resolve_branch_id(request)
    if branch_id is not None:
        orders = orders.filter(branch_id=branch_id)
    return Response(OrderReadSerializer(orders.order_by('-created_at')[:10], many=True).data)


@swagger_auto_schema(
    method='get',
    manual_parameters=PERIOD_PARAMETERS + [
        openapi.Parameter('payment_method', openapi.IN_QUERY, type=openapi.TYPE_STRING),
        openapi.Parameter('payment_status', openapi.IN_QUERY, type=openapi.TYPE_STRING),
    ],
    responses={200: 'total_sales, total_revenue, total_due, total_paid, average_order_value'}
)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_VIEW)])
def sales_stats(request):
    return Response(reports.sales_stats(period_sales(request)))


@swagger_auto_schema(method='get', manual_parameters=PERIOD_PARAMETERS)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_VIEW)])
def item_report(request):
    return Response(reports.item_report(period_sales(request)))


@swagger_auto_schema(
    method='get',
    manual_parameters=PERIOD_PARAMETERS + [
        openapi.Parameter('format', openapi.IN_QUERY, description="csv, excel or pdf", type=openapi.TYPE_STRING),
    ],
    responses={200: 'Day book file'}
)
@api_view(['GET'])
@permission_classes([permissions.IsAuthenticated, require_permission(Permissions.REPORTS_EXPORT)])
def export_orders(request):
    """Day book: every completed sale in the period"""
    export_format = request.query_params.get('format', 'csv')
    orders = period_sales(request).order_by('created_at')
    rows = reports.daybook_rows(orders)
    stats = reports.sales_stats(orders)

    start, end = date_range(
        request.query_params.get('date_filter'),
        request.query_params.get('start_date'),
        request.query_params.get('end_date'),
    )
    period = "All time"
    if start or end:
        first = timezone.localtime(start).strftime('%Y-%m-%d') if start else '...'
        last = timezone.localtime(end - timedelta(days=1)).strftime('%Y-%m-%d') if end else '...'
        period = f"Period: {first} to {last}"

    title = f"{BusinessSettings.load().business_name} - Day Book Report"
    filename = f"daybook_report_{timezone.localdate():%Y%m%d}"
    totals = {'Total': float(stats['total_revenue'])}

    logger.info(f"Day book export ({export_format}): {len(rows)} orders")
    return export_response(export_format, rows, reports.DAYBOOK_COLUMNS, filename, title, period, totals)


# =============== CENTRAL DASHBOARD ===============

CENTRAL_PARAMETERS = [
    openapi.Parameter('X-API-Key', openapi.IN_HEADER, description="Central dashboard key", type=openapi.TYPE_STRING, required=True),
    openapi.Parameter('branchId', openapi.IN_QUERY, description="Limit to one branch", type=openapi.TYPE_STRING),
]


@swagger_auto_schema(method='get', manual_parameters=CENTRAL_PARAMETERS)
@api_view(['GET'])
@authentication_classes([CentralApiKeyAuthentication])
@permission_classes([HasCentralApiKey])
def central_stats(request):
    return Response(reports.central_stats(request.branch_id))


@swagger_auto_schema(method='get', manual_parameters=CENTRAL_PARAMETERS + PERIOD_PARAMETERS)
@api_view(['GET'])
@authentication_classes([CentralApiKeyAuthentication])
@permission_classes([HasCentralApiKey])
def central_sales_summary(request):
    params = request.query_params
    start, end = date_range(params.get('date_filter'), params.get('start_date'), params.get('end_date'))
    return Response(reports.central_sales_summary(request.branch_id, start, end))
