"""
Stock movements for products.

Quantities never go below zero; selling more than is on hand clamps the
stock at zero rather than failing the sale.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F

from .models import Product

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


def _to_decimal(value):
    return value if isinstance(value, Decimal) else Decimal(str(value or 0))


def deduct_stock(items):
    """Take sold quantities off the shelf; items are (product_id, quantity) pairs"""
    for product_id, quantity in items:
        if product_id is None:
            continue
        product = Product.objects.select_for_update().filter(pk=product_id).first()
        if product is None:
            continue
        product.quantity = max(ZERO, product.quantity - _to_decimal(quantity))
        product.save(update_fields=['quantity'])


def restore_stock(items):
    """Put quantities back, e.g. when an order is edited or deleted"""
    for product_id, quantity in items:
        if product_id is None:
            continue
        Product.objects.filter(pk=product_id).update(quantity=F('quantity') + _to_decimal(quantity))


@transaction.atomic
def apply_adjustment(adjustment):
    """Apply an InventoryAdjustment to its product and return the new quantity"""
    product = Product.objects.select_for_update().get(pk=adjustment.product_id)
    amount = _to_decimal(adjustment.quantity)

    if adjustment.adjustment_type == 'add':
        product.quantity = product.quantity + amount
    elif adjustment.adjustment_type == 'remove':
        product.quantity = max(ZERO, product.quantity - amount)
    elif adjustment.adjustment_type == 'set':
        product.quantity = amount

    product.save(update_fields=['quantity'])
    logger.info(f"Stock adjusted: {product.name} {adjustment.adjustment_type} {amount} -> {product.quantity}")
    return product.quantity


def purchase_quantity(purchase, product):
    """Units a purchase adds to stock: whole pieces for piece-counted products"""
    quantity = _to_decimal(purchase.quantity)
    if purchase.pieces_per_unit and product.unit == 'piece':
        return quantity * _to_decimal(purchase.pieces_per_unit)
    return quantity


@transaction.atomic
def receive_purchase(purchase):
    """Add a purchase to stock, matching the product by id and then by name"""
    product = None
    if purchase.product_id:
        product = Product.objects.select_for_update().filter(pk=purchase.product_id).first()
    if product is None and purchase.item_name:
        product = Product.objects.select_for_update().filter(name__iexact=purchase.item_name).first()
    if product is None:
        logger.info(f"Purchase {purchase.pk} has no matching product; stock unchanged")
        return None

    product.quantity = product.quantity + purchase_quantity(purchase, product)
    product.save(update_fields=['quantity'])
    return product


def low_stock_queryset(threshold, queryset=None):
    """Products with stock above zero but at or below the threshold"""
    queryset = queryset if queryset is not None else Product.objects.all()
    return queryset.filter(quantity__gt=0, quantity__lte=threshold)
