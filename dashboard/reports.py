"""
Figures behind the dashboard, the sales reports and the day book export.

Revenue counts completed orders only; orders raised from due management are
bookkeeping entries for earlier sales and are left out of sales figures.
"""

from django.db.models import Sum, Count, F, Q
from django.utils import timezone

from authentication.models import BusinessSettings
from finance.models import Expense
from hrm.models import StaffSalary
from inventory.models import Product, Purchase
from inventory.stock import low_stock_queryset
from orders.filters import date_range
from orders.models import Order, OrderItem, Table
from orders.pricing import money, ZERO, HUNDRED


def completed_sales(branch_id=None):
    queryset = Order.objects.filter(status='completed').exclude(order_source=Order.SOURCE_DUE)
    if branch_id is not None:
        queryset = queryset.filter(branch_id=branch_id)
    return queryset


def in_period(queryset, start, end, field='created_at'):
    if start is not None:
        queryset = queryset.filter(**{f"{field}__gte": start})
    if end is not None:
        queryset = queryset.filter(**{f"{field}__lt": end})
    return queryset


def percent_change(current, previous):
    if not previous:
        return 0.0
    return round(float((current - previous) / previous * HUNDRED), 1)


def _revenue(queryset):
    return money(queryset.aggregate(total=Sum('total'))['total'])


def dashboard_stats(branch_id=None, date_filter=None, start_date=None, end_date=None):
    """Today at a glance, with the change against yesterday and the period's profit and loss"""
    today_start, today_end = date_range('today')
    yesterday_start, yesterday_end = date_range('yesterday')

    sales = completed_sales(branch_id)
    today = in_period(sales, today_start, today_end)
    yesterday = in_period(sales, yesterday_start, yesterday_end)

    today_sales = _revenue(today)
    yesterday_sales = _revenue(yesterday)
    today_orders = today.count()
    yesterday_orders = yesterday.count()

    open_orders = Order.objects.filter(status__in=['pending', 'web-pending', 'preparing', 'ready', 'confirmed'])
    tables = Table.objects.filter(status='occupied')
    if branch_id is not None:
        open_orders = open_orders.filter(branch_id=branch_id)
        tables = tables.filter(branch_id=branch_id)

    threshold = BusinessSettings.load().stock_threshold
    low_stock = low_stock_queryset(threshold)
    if branch_id is not None:
        low_stock = low_stock.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))

    stats = {
        'today_sales': today_sales,
        'today_orders': today_orders,
        'yesterday_sales': yesterday_sales,
        'yesterday_orders': yesterday_orders,
        'revenue_change': percent_change(today_sales, yesterday_sales),
        'orders_change': percent_change(today_orders, yesterday_orders),
        'pending_orders': open_orders.count(),
        'web_pending_orders': open_orders.filter(status='web-pending').count(),
        'active_tables': tables.count(),
        'low_stock_count': low_stock.count(),
    }
    stats.update(profit_and_loss(branch_id, *date_range(date_filter or 'today', start_date, end_date)))
    return stats


def profit_and_loss(branch_id, start, end):
    """Sales less purchases, expenses and salaries over a period"""
    sales = in_period(completed_sales(branch_id), start, end)
    total_sales = _revenue(sales)

    purchases = Purchase.objects.all()
    expenses = Expense.objects.all()
    if branch_id is not None:
        purchases = purchases.filter(branch_id=branch_id)
        expenses = expenses.filter(branch_id=branch_id)
    purchases = in_period(purchases, start and start.date(), end and end.date(), field='purchase_date')
    total_purchase = money(purchases.aggregate(total=Sum(F('price') * F('quantity')))['total'])

    total_expenses = money(in_period(expenses, start, end, field='expense_date').aggregate(total=Sum('total'))['total'])
    salaries = in_period(StaffSalary.objects.all(), start and start.date(), end and end.date(), field='salary_date')
    total_staff_salary = money(salaries.aggregate(total=Sum('total_salary'))['total'])

    # order totals are already net of discounts
    total_revenue = total_sales - total_purchase
    return {
        'period_sales': total_sales,
        'period_orders': sales.count(),
        'total_revenue': total_revenue,
        'total_purchase': total_purchase,
        'total_expenses': total_expenses,
        'total_staff_salary': total_staff_salary,
        'profit_loss': total_revenue - total_expenses - total_staff_salary,
    }


def sales_stats(queryset):
    totals = queryset.aggregate(
        count=Count('id'),
        revenue=Sum('total'),
        due=Sum('due_amount'),
        paid=Sum('paid_amount'),
    )
    count = totals['count']
    revenue = money(totals['revenue'])
    return {
        'total_sales': count,
        'total_revenue': revenue,
        'total_due': money(totals['due']),
        'total_paid': money(totals['paid']),
        'average_order_value': money(revenue / count) if count else ZERO,
    }


def item_report(orders):
    """Quantity sold and revenue per product, best sellers first"""
    rows = (
        OrderItem.objects.filter(order__in=orders)
        .values('product_id', 'product_name')
        .annotate(quantity=Sum('quantity'), revenue=Sum('total'))
        .order_by('-quantity', 'product_name')
    )
    return [
        {
            'product_id': row['product_id'],
            'product_name': row['product_name'],
            'quantity': row['quantity'],
            'revenue': money(row['revenue']),
        }
        for row in rows
    ]


def central_stats(branch_id=None):
    """Headline figures for the central dashboard, across all branches unless one is given"""
    orders = Order.objects.all()
    products = Product.objects.all()
    if branch_id is not None:
        orders = orders.filter(branch_id=branch_id)
        products = products.filter(Q(branch_id=branch_id) | Q(branch__isnull=True))

    sales = sales_stats(completed_sales(branch_id))
    return {
        'business_name': BusinessSettings.load().business_name,
        'total_orders': orders.filter(status='completed').count(),
        'active_orders': orders.filter(status='draft').count(),
        'total_products': products.count(),
        'total_revenue': sales['total_revenue'],
        'average_order_value': sales['average_order_value'],
    }


def central_sales_summary(branch_id=None, start=None, end=None):
    """Per-product sales for the period, alphabetical"""
    orders = in_period(completed_sales(branch_id), start, end)
    items = sorted(item_report(orders), key=lambda row: row['product_name'].lower())
    return {'items': items, 'total': len(items)}


def sales_by_category(orders):
    rows = (
        OrderItem.objects.filter(order__in=orders, product__category__isnull=False)
        .values(category=F('product__category__name'))
        .annotate(revenue=Sum('total'))
        .order_by('-revenue')
    )
    return [{'category': row['category'], 'revenue': money(row['revenue'])} for row in rows]


def sales_by_payment_method(orders):
    rows = orders.values('payment_method').annotate(total=Sum('total'), count=Count('id')).order_by('-total')
    return [
        {'payment_method': row['payment_method'] or 'unknown', 'total': money(row['total']), 'count': row['count']}
        for row in rows
    ]


DAYBOOK_COLUMNS = ['Date', 'Invoice', 'Customer', 'Table', 'Dining', 'Items', 'Subtotal', 'Discount', 'Total', 'Payment', 'Status']


def daybook_rows(orders):
    invoice_prefix = BusinessSettings.load().invoice_prefix
    rows = []
    for order in orders.select_related('table').prefetch_related('items'):
        items = ", ".join(f"{item.quantity}x {item.product_name}" for item in order.items.all())
        rows.append({
            'Date': timezone.localtime(order.created_at).strftime('%Y-%m-%d %H:%M'),
            'Invoice': f"{invoice_prefix}{order.order_number}",
            'Customer': order.customer_name or 'Walk-in',
            'Table': order.table.table_number if order.table_id else '',
            'Dining': order.get_dining_option_display(),
            'Items': items,
            'Subtotal': float(order.subtotal),
            'Discount': float(order.discount_amount),
            'Total': float(order.total),
            'Payment': order.payment_method,
            'Status': order.status,
        })
    return rows
