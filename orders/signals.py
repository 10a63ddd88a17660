# Signal to update order totals when items change
from .models import Order, OrderItem
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver


@receiver([post_save, post_delete], sender=OrderItem)
def update_order_totals_on_item_change(sender, instance, **kwargs):
    """Update order totals when items are added/removed/modified"""
    order = Order.objects.filter(pk=instance.order_id).first()
    if order is None:
        return
    order.calculate_totals()
    Order.objects.filter(pk=order.pk).update(subtotal=order.subtotal, total=order.total)
