"""
Due payment bookkeeping.

A due payment is split over a customer's open orders through allocations;
whatever is not allocated stays on the payment as credit.
"""
import logging

from django.db import transaction
from django.db.models import Count, Sum, Avg, Q
from rest_framework.exceptions import ValidationError

from orders.models import Order, Customer
from orders.pricing import money, ZERO
from .models import DuePayment, DuePaymentAllocation

logger = logging.getLogger(__name__)

DUE_PAYMENT_STATUSES = ('due', 'partial')


def _settle_order(order, paid_amount):
    """Set paid/partial from what has been paid so far against the order total"""
    order.paid_amount = money(paid_amount)
    order.due_amount = max(ZERO, money(order.total) - order.paid_amount)
    if order.paid_amount >= money(order.total):
        order.payment_status = 'paid'
    elif order.paid_amount > 0:
        order.payment_status = 'partial'
    else:
        order.payment_status = 'due'
    order.save(update_fields=['paid_amount', 'due_amount', 'payment_status', 'updated_at'])


@transaction.atomic
def record_payment_with_allocations(payment_data, allocations, user=None):
    """
    Record a customer payment and apply it to orders.

    ``allocations`` is a list of ``{'order': Order, 'amount': Decimal}``; the
    allocated sum may not exceed the payment.
    """
    amount = money(payment_data['amount'])
    allocated = sum((money(a['amount']) for a in allocations), ZERO)
    if allocated > amount:
        raise ValidationError(
            f"Allocations total ${allocated:.2f} but the payment is only ${amount:.2f}"
        )

    payment = DuePayment.objects.create(
        recorded_by=user,
        unapplied_amount=amount - allocated,
        **payment_data
    )

    for allocation in allocations:
        order = Order.objects.select_for_update().get(pk=allocation['order'].pk)
        share = money(allocation['amount'])
        DuePaymentAllocation.objects.create(payment=payment, order=order, amount=share)
        _settle_order(order, money(order.paid_amount) + share)

    logger.info(
        f"Due payment {payment.pk} from customer {payment.customer_id}: {amount} "
        f"({len(allocations)} allocations, unapplied {payment.unapplied_amount})"
    )
    return payment


@transaction.atomic
def delete_due_payment(payment):
    """Remove a payment and take its allocations back off the orders"""
    for allocation in payment.allocations.select_related('order'):
        order = Order.objects.select_for_update().get(pk=allocation.order_id)
        _settle_order(order, max(ZERO, money(order.paid_amount) - money(allocation.amount)))
    logger.info(f"Due payment {payment.pk} deleted")
    payment.delete()


def customer_due_summary(customer):
    """
    Totals across all of a customer's orders, plus the outstanding balance on
    due/partial orders and the unapplied credit from payments.
    """
    orders = Order.objects.filter(customer=customer)
    totals = orders.aggregate(total_due=Sum('total'), total_paid=Sum('paid_amount'))

    balance = ZERO
    orders_count = 0
    for total, paid in orders.filter(payment_status__in=DUE_PAYMENT_STATUSES).values_list('total', 'paid_amount'):
        balance += money(total) - money(paid)
        orders_count += 1

    credit = customer.due_payments.aggregate(credit=Sum('unapplied_amount'))['credit']

    return {
        'customer_id': customer.pk,
        'customer_name': customer.name,
        'customer_phone': customer.phone,
        'total_due': money(totals['total_due']),
        'total_paid': money(totals['total_paid']),
        'balance': money(balance),
        'credit': money(credit),
        'orders_count': orders_count,
    }


def customers_due_summary(branch_id=None, search=None):
    """Summaries for every customer who has an order with money outstanding"""
    orders = Order.objects.filter(payment_status__in=DUE_PAYMENT_STATUSES, customer__isnull=False)
    if branch_id is not None:
        orders = orders.filter(branch_id=branch_id)
    customers = Customer.objects.filter(pk__in=orders.values('customer_id'))
    if search:
        customers = customers.filter(name__icontains=search)
    return [customer_due_summary(customer) for customer in customers]


def customer_transactions(customer, branch_id=None, search=None, start=None, end=None):
    """
    Due history for one customer, newest first. Orders that were on credit
    (raised from due management, still due or partial, or paid off through
    allocations) show as 'due' entries, payments received as 'payment' entries.
    """
    orders = Order.objects.filter(customer=customer).filter(
        Q(order_source=Order.SOURCE_DUE)
        | Q(payment_status__in=DUE_PAYMENT_STATUSES)
        | Q(due_allocations__isnull=False)
    ).distinct()
    payments = customer.due_payments.all()

    if branch_id is not None:
        in_branch = Q(branch_id=branch_id) | Q(branch__isnull=True)
        orders = orders.filter(in_branch)
        payments = payments.filter(in_branch)
    if start is not None:
        orders = orders.filter(created_at__gte=start)
        payments = payments.filter(payment_date__gte=start)
    if end is not None:
        orders = orders.filter(created_at__lt=end)
        payments = payments.filter(payment_date__lt=end)

    transactions = [
        {
            'id': order.pk,
            'type': 'due',
            'date': order.created_at,
            'amount': money(order.total),
            'description': 'Due Entry' if order.order_source == Order.SOURCE_DUE else f"Order {order.order_number}",
            'payment_method': order.payment_method or None,
            'order_number': order.order_number,
            'payment_status': order.payment_status,
        }
        for order in orders
    ]
    transactions += [
        {
            'id': payment.pk,
            'type': 'payment',
            'date': payment.payment_date,
            'amount': money(payment.amount),
            'description': payment.note or 'Payment',
            'payment_method': payment.payment_method,
            'order_number': None,
            'reference': payment.reference,
        }
        for payment in payments
    ]

    if search:
        needle = search.strip().lower()
        transactions = [
            entry for entry in transactions
            if needle in entry['description'].lower()
            or needle in (entry['payment_method'] or '').lower()
            or needle in (entry['order_number'] or '').lower()
        ]

    transactions.sort(key=lambda entry: entry['date'], reverse=True)
    return transactions


DUE_EXPORT_COLUMNS = ['Customer', 'Phone', 'Orders', 'Total Due', 'Total Paid', 'Balance', 'Credit']


def due_summary_rows(summaries):
    return [
        {
            'Customer': summary['customer_name'],
            'Phone': summary['customer_phone'],
            'Orders': summary['orders_count'],
            'Total Due': float(summary['total_due']),
            'Total Paid': float(summary['total_paid']),
            'Balance': float(summary['balance']),
            'Credit': float(summary['credit']),
        }
        for summary in summaries
    ]


def expense_stats(queryset):
    stats = queryset.aggregate(
        total_amount=Sum('total'),
        count=Count('id'),
        avg_expense=Avg('total'),
        category_count=Count('category', distinct=True),
    )
    return {
        'total_amount': money(stats['total_amount']),
        'count': stats['count'],
        'avg_expense': money(stats['avg_expense']),
        'category_count': stats['category_count'],
    }


def expense_rows(queryset):
    """Flat rows for expense exports"""
    return [
        {
            'Date': expense.expense_date.strftime('%Y-%m-%d'),
            'Category': expense.category.name,
            'Description': expense.description,
            'Unit': expense.unit,
            'Quantity': float(expense.quantity),
            'Amount': float(expense.amount),
            'Total': float(expense.total),
        }
        for expense in queryset.select_related('category')
    ]
