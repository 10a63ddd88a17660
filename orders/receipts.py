"""
Printable receipts and kitchen order tickets.

Receipts come in five layouts (classic, modern, compact, detailed, elegant)
that all share the same figures; the client opens the returned HTML in a
window and prints it.
"""
from django.template.loader import render_to_string
from django.utils import timezone

from authentication.models import BusinessSettings
from .pricing import discount_label, global_discount, secondary_currency_total, money, ZERO

RECEIPT_TEMPLATES = ('classic', 'modern', 'compact', 'detailed', 'elegant')
DEFAULT_TEMPLATE = 'classic'

PAYMENT_METHOD_LABELS = {
    'cash': 'Cash',
    'card': 'Card',
    'aba': 'ABA',
    'acleda': 'ACLEDA',
    'credit': 'Credit',
    'due': 'Due',
    'split': 'Split Payment',
}


def payment_method_label(method):
    if not method:
        return 'Pending'
    return PAYMENT_METHOD_LABELS.get(method, method.replace('_', ' ').title())


def payment_lines(order):
    """Payment breakdown as (label, amount) pairs"""
    if order.payment_splits:
        return [
            (payment_method_label(split.get('method')), money(split.get('amount')))
            for split in order.payment_splits
        ]
    if order.payment_method:
        return [(payment_method_label(order.payment_method), money(order.paid_amount or order.total))]
    return []


def invoice_number(order, settings_obj):
    number = str(order.order_number or '').strip()
    if not number:
        return '—'
    return f"{settings_obj.invoice_prefix}{number}"


def receipt_context(order, settings_obj=None, amount_paid=None):
    settings_obj = settings_obj or BusinessSettings.load()
    items = [
        {
            'name': item.product_name or (item.product.name if item.product_id else 'N/A'),
            'quantity': item.quantity,
            'price': item.price,
            'total': item.total,
            'size': item.selected_size,
            'discount': discount_label(item.item_discount, item.item_discount_type) if item.item_discount else '-',
        }
        for item in order.items.select_related('product')
    ]

    payments = payment_lines(order)
    paid = sum((amount for _, amount in payments), ZERO)
    if amount_paid is not None:
        paid = money(amount_paid)
    change = max(ZERO, paid - money(order.total))

    return {
        'order': order,
        'items': items,
        'settings': settings_obj,
        'company_name': settings_obj.business_name,
        'company_address_lines': [line for line in settings_obj.address.splitlines() if line.strip()],
        'show_logo': settings_obj.show_logo_on_receipt and bool(settings_obj.receipt_logo),
        'invoice_number': invoice_number(order, settings_obj),
        'customer_name': order.customer_name or 'Walk-in',
        'table_label': order.table.table_number if order.table_id else '',
        'dining_option': order.get_dining_option_display(),
        'subtotal': money(order.subtotal),
        'discount_label': discount_label(order.discount, order.discount_type),
        'discount_amount': global_discount(order.subtotal, order.discount, order.discount_type),
        'total': money(order.total),
        'secondary_currency': settings_obj.secondary_currency,
        'total_secondary': secondary_currency_total(order.total, settings_obj.exchange_rate),
        'payments': payments,
        'change': change,
        'paper_size': settings_obj.paper_size,
        'printed_at': timezone.localtime(),
    }


def render_receipt(order, template=None, settings_obj=None, amount_paid=None):
    """Render the receipt HTML; unknown template names fall back to classic"""
    settings_obj = settings_obj or BusinessSettings.load()
    template = template or settings_obj.receipt_template
    if template not in RECEIPT_TEMPLATES:
        template = DEFAULT_TEMPLATE
    context = receipt_context(order, settings_obj, amount_paid)
    context['template'] = template
    return render_to_string(f"receipts/{template}.html", context)


def render_kot(order):
    """Kitchen order ticket: what to cook, without prices"""
    context = {
        'order': order,
        'items': order.items.all(),
        'table_label': order.table.table_number if order.table_id else '',
        'dining_option': order.get_dining_option_display(),
        'printed_at': timezone.localtime(),
    }
    return render_to_string("receipts/kot.html", context)
