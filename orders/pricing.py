"""
Order pricing.

Totals are computed in three steps:

1. each line is charged at its unit price (the size-specific price when the
   product defines one for the selected size) times quantity;
2. a per-line discount (amount or percentage of the line) is taken off each
   line, giving the order subtotal;
3. a global discount (amount or percentage of that subtotal) is taken off the
   subtotal, giving the total.

Payments are reconciled against the total; a split payment settles an order
only when its parts add up to at least the total.
"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

ZERO = Decimal('0.00')
HUNDRED = Decimal('100')
CENT = Decimal('0.01')

DISCOUNT_AMOUNT = 'amount'
DISCOUNT_PERCENTAGE = 'percentage'
DISCOUNT_TYPES = (DISCOUNT_AMOUNT, DISCOUNT_PERCENTAGE)


def to_decimal(value):
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}")


def money(value):
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def unit_price(base_price, size_prices=None, selected_size=None):
    """Size-specific price when one is set for the selected size, else the base price"""
    if selected_size and size_prices:
        override = size_prices.get(selected_size)
        if override not in (None, '', 0, '0'):
            return money(override)
    return money(base_price)


def line_discount(line_subtotal, value, kind=DISCOUNT_AMOUNT):
    """Discount taken off a single line, never more than the line itself"""
    line_subtotal = to_decimal(line_subtotal)
    value = to_decimal(value)
    if value <= 0 or line_subtotal <= 0:
        return ZERO
    if kind == DISCOUNT_PERCENTAGE:
        amount = line_subtotal * min(value, HUNDRED) / HUNDRED
    else:
        amount = value
    return money(min(amount, line_subtotal))


def global_discount(subtotal, value, kind=DISCOUNT_AMOUNT):
    """Order level discount applied after the line discounts"""
    subtotal = to_decimal(subtotal)
    value = to_decimal(value)
    if value <= 0 or subtotal <= 0:
        return ZERO
    if kind == DISCOUNT_PERCENTAGE:
        amount = subtotal * min(value, HUNDRED) / HUNDRED
    else:
        amount = min(value, subtotal)
    return money(amount)


def compute_totals(lines, discount=ZERO, discount_type=DISCOUNT_AMOUNT):
    """
    Price a list of lines.

    Each line is a mapping with ``price`` (unit price already resolved),
    ``quantity`` and optionally ``item_discount``/``item_discount_type``.
    Returns the figures of the whole order plus one entry per line.
    """
    priced_lines = []
    original_subtotal = ZERO
    item_discounts = ZERO

    for line in lines:
        price = money(line.get('price'))
        quantity = to_decimal(line.get('quantity', 1))
        line_subtotal = money(price * quantity)
        discount_amount = line_discount(
            line_subtotal,
            line.get('item_discount'),
            line.get('item_discount_type') or DISCOUNT_AMOUNT,
        )
        original_subtotal += line_subtotal
        item_discounts += discount_amount
        priced_lines.append({
            'price': price,
            'quantity': quantity,
            'line_subtotal': line_subtotal,
            'discount_amount': discount_amount,
            'total': line_subtotal - discount_amount,
        })

    subtotal = original_subtotal - item_discounts
    discount_amount = global_discount(subtotal, discount, discount_type)

    return {
        'original_subtotal': money(original_subtotal),
        'item_discounts': money(item_discounts),
        'subtotal': money(subtotal),
        'discount_amount': discount_amount,
        'total_discount': money(item_discounts + discount_amount),
        'total': money(max(ZERO, subtotal - discount_amount)),
        'lines': priced_lines,
    }


def discount_label(discount, discount_type):
    """How a discount reads on a receipt: '10%' or '$2.00'"""
    discount = to_decimal(discount)
    if discount_type == DISCOUNT_PERCENTAGE:
        return f"{discount.normalize():f}%"
    return f"${money(discount):.2f}"


def reconcile_payment(total, splits):
    """
    Compare split payments against an order total.

    ``splits`` is a list of ``{'method': ..., 'amount': ...}``. Returns the
    amount paid, what is still owed, the change due and whether the order is
    settled.
    """
    total = money(total)
    total_paid = money(sum((to_decimal(split.get('amount')) for split in splits), ZERO))
    return {
        'total': total,
        'total_paid': total_paid,
        'remaining': max(ZERO, total - total_paid),
        'change': max(ZERO, total_paid - total),
        'settled': total_paid >= total,
    }


def cash_change(total, amount_paid):
    return max(ZERO, money(amount_paid) - money(total))


def secondary_currency_total(total, exchange_rate):
    """Total in the secondary currency, rounded to whole units"""
    return (to_decimal(total) * to_decimal(exchange_rate)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
