"""
Order workflows: creation with items, editing, payment and web order review.

Every workflow runs in a single transaction; stock is deducted for the items
an order holds and restored when those items are replaced or the order is
removed.
"""
import logging

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from inventory.stock import deduct_stock, restore_stock
from .models import Customer, Order, OrderItem, Table
from .pricing import compute_totals, reconcile_payment, cash_change, money, ZERO

logger = logging.getLogger(__name__)

OPEN_STATUSES = ('draft', 'confirmed', 'pending', 'web-pending', 'preparing', 'ready')
CLOSED_STATUSES = ('completed', 'cancelled')


def find_or_create_customer(name, phone=None, branch_id=None):
    """
    Match a customer by name and phone, then by name alone; create one when
    neither matches. Walk-in sales have no customer record.
    """
    name = (name or '').strip()
    if not name or name == Customer.WALK_IN:
        return None

    customer = None
    if phone:
        customer = Customer.objects.filter(name=name, phone=phone).first()
    if customer is None:
        customer = Customer.objects.filter(name=name).first()

    if customer is None:
        return Customer.objects.create(name=name, phone=phone or '', branch_id=branch_id)

    if phone and customer.phone != phone:
        customer.phone = phone
        customer.save(update_fields=['phone'])
    return customer


def price_items(items, discount=ZERO, discount_type='amount'):
    """Resolve unit prices for item payloads and price the whole order"""
    lines = []
    for item in items:
        product = item['product']
        lines.append({
            'price': product.price_for_size(item.get('selected_size')),
            'quantity': item['quantity'],
            'item_discount': item.get('item_discount'),
            'item_discount_type': item.get('item_discount_type') or 'amount',
        })
    return compute_totals(lines, discount, discount_type)


def _write_items(order, items, totals):
    for item, line in zip(items, totals['lines']):
        OrderItem.objects.create(
            order=order,
            product=item['product'],
            product_name=item['product'].name,
            quantity=item['quantity'],
            price=line['price'],
            total=line['total'],
            item_discount=money(item.get('item_discount')),
            item_discount_type=item.get('item_discount_type') or 'amount',
            selected_size=item.get('selected_size') or '',
        )
    deduct_stock((item['product'].pk, item['quantity']) for item in items)


def _apply_due_defaults(order, explicit_fields):
    """Due and partial orders carry what is owed in due_amount"""
    if order.status == 'due' and order.payment_status not in ('due', 'partial'):
        order.payment_status = 'due'
    if order.payment_status in ('due', 'partial'):
        if 'paid_amount' not in explicit_fields:
            order.paid_amount = order.paid_amount or ZERO
        if 'due_amount' not in explicit_fields:
            order.due_amount = max(ZERO, money(order.total) - money(order.paid_amount))


def _set_table_status(table_id, status):
    if table_id:
        Table.objects.filter(pk=table_id).update(status=status)


@transaction.atomic
def create_order(data, items, user=None):
    """
    Create an order with its items.

    ``data`` holds order fields, ``items`` a list of dicts with ``product``,
    ``quantity`` and optional ``selected_size``/``item_discount``/
    ``item_discount_type``.
    """
    data = dict(data)
    explicit_fields = set(data)

    customer = data.get('customer')
    if customer is None and data.get('customer_name'):
        customer = find_or_create_customer(
            data.get('customer_name'), data.get('customer_phone'), getattr(data.get('branch'), 'pk', None)
        )
        data['customer'] = customer
        if customer is not None:
            data['customer_name'] = customer.name

    totals = price_items(items, data.get('discount', ZERO), data.get('discount_type', 'amount'))

    order = Order(created_by=user, **data)
    order.subtotal = totals['subtotal']
    order.total = totals['total']
    _apply_due_defaults(order, explicit_fields)
    order.save()

    _write_items(order, items, totals)

    if order.table_id and order.status in OPEN_STATUSES:
        _set_table_status(order.table_id, 'occupied')

    logger.info(f"Order {order.order_number} created: {len(items)} items, total {order.total}")
    return order


@transaction.atomic
def update_order(order, data, items=None):
    """Update order fields; when items are given they replace the current ones"""
    data = dict(data)
    previous_table_id = order.table_id

    if data.get('customer_name') and 'customer' not in data:
        data['customer'] = find_or_create_customer(
            data['customer_name'], data.get('customer_phone', order.customer_phone), order.branch_id
        )

    for attr, value in data.items():
        setattr(order, attr, value)

    if items is not None:
        old_items = list(order.items.values_list('product_id', 'quantity'))
        restore_stock(old_items)
        order.items.all().delete()

        totals = price_items(items, order.discount, order.discount_type)
        order.subtotal = totals['subtotal']
        order.total = totals['total']
        _write_items(order, items, totals)
    elif 'discount' in data or 'discount_type' in data:
        order.calculate_totals()

    _apply_due_defaults(order, set(data))
    if data.get('status') == 'completed':
        order.completed_at = order.completed_at or timezone.now()
    order.save()

    if previous_table_id != order.table_id:
        _set_table_status(previous_table_id, 'available')
        if order.status in OPEN_STATUSES:
            _set_table_status(order.table_id, 'occupied')
    if 'status' in data and order.status in CLOSED_STATUSES:
        _set_table_status(order.table_id, 'available')

    logger.info(f"Order {order.order_number} updated")
    return order


@transaction.atomic
def delete_order(order):
    restore_stock(order.items.values_list('product_id', 'quantity'))
    if order.table_id and order.status in OPEN_STATUSES:
        _set_table_status(order.table_id, 'available')
    logger.info(f"Order {order.order_number} deleted")
    order.delete()


@transaction.atomic
def set_status(order, status):
    order.status = status
    if status == 'completed':
        order.completed_at = order.completed_at or timezone.now()
    order.save()

    if order.table_id and status in CLOSED_STATUSES:
        _set_table_status(order.table_id, 'available')
    return order


@transaction.atomic
def pay_order(order, payment_method, amount_paid=None, splits=None):
    """
    Settle an order.

    With ``splits`` the parts must add up to at least the total; otherwise
    ``amount_paid`` (defaulting to the total) is tendered in one method.
    Returns the payment summary including change and remaining.
    """
    total = money(order.total)

    if splits:
        summary = reconcile_payment(total, splits)
        if not summary['settled']:
            raise ValidationError(
                f"Split payments total ${summary['total_paid']:.2f} but order total is ${total:.2f}. "
                f"Please add more payments or adjust amounts."
            )
        order.payment_splits = [
            {'method': split.get('method'), 'amount': str(money(split.get('amount')))}
            for split in splits
        ]
        order.payment_method = 'split'
    else:
        tendered = money(amount_paid) if amount_paid is not None else total
        if tendered < total:
            raise ValidationError(
                f"Amount paid ${tendered:.2f} is less than order total ${total:.2f}"
            )
        summary = {
            'total': total,
            'total_paid': tendered,
            'remaining': ZERO,
            'change': cash_change(total, tendered),
            'settled': True,
        }
        order.payment_splits = []
        order.payment_method = payment_method

    order.paid_amount = total
    order.due_amount = ZERO
    order.payment_status = 'paid'
    order.status = 'completed'
    order.completed_at = timezone.now()
    order.save()

    if order.table_id:
        _set_table_status(order.table_id, 'available')

    logger.info(f"Order {order.order_number} paid via {order.payment_method}: {summary['total_paid']}")
    return summary


def _review_web_order(order, new_status):
    if order.status != 'web-pending' or order.order_source not in (Order.SOURCE_WEB, Order.SOURCE_QR):
        raise ValidationError("Only pending web or QR orders can be accepted or rejected")
    order.status = new_status
    order.save(update_fields=['status', 'updated_at'])
    return order


@transaction.atomic
def accept_web_order(order):
    order = _review_web_order(order, 'pending')
    logger.info(f"Web order {order.order_number} accepted")
    return order


@transaction.atomic
def reject_web_order(order):
    order = _review_web_order(order, 'cancelled')
    restore_stock(order.items.values_list('product_id', 'quantity'))
    if order.table_id:
        _set_table_status(order.table_id, 'available')
    logger.info(f"Web order {order.order_number} rejected")
    return order
