"""
Push notifications for newly placed web and QR orders.

Terminals subscribe to one group per branch; terminals that did not pick a
branch subscribe to the shared group. An order placed for a branch reaches
that branch's terminals, an order without a branch reaches every terminal.
"""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from authentication.models import Branch

logger = logging.getLogger(__name__)

WEB_ORDER_EVENT = 'web-order-created'
ALL_BRANCHES_GROUP = 'web_orders.all'


def group_for_branch(branch_id):
    if not branch_id:
        return ALL_BRANCHES_GROUP
    return f"web_orders.{branch_id}"


def target_groups(branch_id):
    """Groups an event for ``branch_id`` must reach"""
    if branch_id:
        return [group_for_branch(branch_id)]
    groups = [ALL_BRANCHES_GROUP]
    groups.extend(
        group_for_branch(pk) for pk in Branch.objects.values_list('pk', flat=True)
    )
    return groups


def broadcast_web_order(order_data, branch_id=None):
    """Send a web-order-created event; delivery is best effort and at most once"""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer configured; web order notification dropped")
        return 0

    message = {
        'type': 'web_order.created',
        'payload': {
            'event': WEB_ORDER_EVENT,
            'branchId': str(branch_id) if branch_id else None,
            'order': order_data,
        },
    }

    groups = target_groups(branch_id)
    for group in groups:
        async_to_sync(channel_layer.group_send)(group, message)

    logger.info(f"Broadcast {WEB_ORDER_EVENT} for order {order_data.get('order_number')} to {len(groups)} group(s)")
    return len(groups)
