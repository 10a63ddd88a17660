"""
Tests for web and QR ordering, the review workflow and the websocket
notifications sent to POS terminals.
"""

from decimal import Decimal

import pytest
from asgiref.sync import async_to_sync, sync_to_async
from channels.layers import get_channel_layer
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework import status

from authentication.models import Branch
from orders.models import Order
from orders.notifications import ALL_BRANCHES_GROUP, WEB_ORDER_EVENT, broadcast_web_order, group_for_branch
from orders.routing import websocket_urlpatterns


@pytest.fixture
def channel_layer(settings):
    settings.CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
    return get_channel_layer()


def subscribe(channel_layer, group):
    channel = async_to_sync(channel_layer.new_channel)()
    async_to_sync(channel_layer.group_add)(group, channel)
    return channel


def received(channel_layer, channel):
    """Messages waiting on a channel, without blocking."""
    messages = []
    queue = channel_layer.channels.get(channel)
    while queue is not None and not queue.empty():
        messages.append(async_to_sync(channel_layer.receive)(channel))
    return messages


@pytest.mark.django_db
class TestWebOrderNotifications:
    def test_branch_order_reaches_only_that_branch(self, channel_layer, branch):
        other = Branch.objects.create(name="Airport", username="airport", password="x")
        own_channel = subscribe(channel_layer, group_for_branch(branch.pk))
        other_channel = subscribe(channel_layer, group_for_branch(other.pk))
        shared_channel = subscribe(channel_layer, ALL_BRANCHES_GROUP)

        broadcast_web_order({"order_number": "41"}, branch_id=branch.pk)

        messages = received(channel_layer, own_channel)
        assert len(messages) == 1
        assert messages[0]["payload"]["event"] == WEB_ORDER_EVENT
        assert messages[0]["payload"]["branchId"] == str(branch.pk)
        assert received(channel_layer, other_channel) == []
        assert received(channel_layer, shared_channel) == []

    def test_branchless_order_reaches_every_terminal(self, channel_layer, branch):
        branch_channel = subscribe(channel_layer, group_for_branch(branch.pk))
        shared_channel = subscribe(channel_layer, ALL_BRANCHES_GROUP)

        sent_to = broadcast_web_order({"order_number": "42"})

        assert sent_to == 2
        assert len(received(channel_layer, branch_channel)) == 1
        assert len(received(channel_layer, shared_channel)) == 1


@pytest.mark.django_db
class TestPublicOrdering:
    def test_qr_order_is_pending_review_and_broadcast(self, api_client, channel_layer, product, table, branch):
        table.branch = branch
        table.save()
        terminal = subscribe(channel_layer, group_for_branch(branch.pk))

        response = api_client.post(
            "/api/public/orders/",
            {
                "table_id": table.pk,
                "customer_name": "Guest",
                "payment_method": "cash_on_delivery",
                "items": [{"product_id": product.pk, "quantity": 2}],
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["order_source"] == "qr"
        assert data["status"] == "web-pending"
        assert data["payment_method"] == "cash"
        assert data["branch"] == str(branch.pk)

        messages = received(channel_layer, terminal)
        assert messages[0]["payload"]["order"]["order_number"] == data["order_number"]

        lookup = api_client.get(f"/api/public/orders/{data['order_number']}/")
        assert lookup.json()["status"] == "web-pending"

    def test_web_order_without_table(self, api_client, channel_layer, product):
        response = api_client.post(
            "/api/public/orders/",
            {"payment_method": "due", "items": [{"product_id": product.pk, "quantity": 1}]},
            format="json",
        )
        data = response.json()
        assert data["order_source"] == "web"
        assert data["dining_option"] == "takeaway"
        assert data["payment_status"] == "due"

    def test_unknown_payment_method_is_rejected(self, api_client, product):
        response = api_client.post(
            "/api/public/orders/",
            {"payment_method": "bitcoin", "items": [{"product_id": product.pk, "quantity": 1}]},
            format="json",
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_pos_orders_are_not_public(self, api_client, admin_client, product):
        order = admin_client.post("/api/orders/", {"items": [{"product_id": product.pk, "quantity": 1}]}, format="json").json()
        response = api_client.get(f"/api/public/orders/{order['order_number']}/")
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestWebOrderReview:
    def place(self, api_client, product, quantity=3):
        return api_client.post(
            "/api/public/orders/", {"items": [{"product_id": product.pk, "quantity": quantity}]}, format="json"
        ).json()

    def test_accept_moves_order_to_pending(self, api_client, admin_client, channel_layer, product):
        order = self.place(api_client, product)
        response = admin_client.post(f"/api/orders/{order['id']}/accept/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "pending"

        web_orders = admin_client.get("/api/orders/web/").json()
        assert [o["id"] for o in web_orders] == [order["id"]]

    def test_reject_cancels_and_restores_stock(self, api_client, admin_client, channel_layer, product):
        order = self.place(api_client, product)
        product.refresh_from_db()
        assert product.quantity == Decimal("17")

        response = admin_client.post(f"/api/orders/{order['id']}/reject/")
        assert response.json()["status"] == "cancelled"
        product.refresh_from_db()
        assert product.quantity == Decimal("20")

    def test_only_pending_web_orders_can_be_reviewed(self, api_client, admin_client, channel_layer, product):
        order = self.place(api_client, product)
        admin_client.post(f"/api/orders/{order['id']}/accept/")

        response = admin_client.post(f"/api/orders/{order['id']}/reject/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Order.objects.get(pk=order["id"]).status == "pending"


def terminal(path):
    return WebsocketCommunicator(URLRouter(websocket_urlpatterns), path)


@pytest.mark.django_db
class TestWebOrderSocket:
    def test_terminals_receive_events_for_their_branch(self, channel_layer, branch):
        other = Branch.objects.create(name="Airport", username="airport", password="x")

        async def scenario():
            own = terminal(f"/ws/?branchId={branch.pk}")
            elsewhere = terminal(f"/ws/?branchId={other.pk}")
            unscoped = terminal("/ws/")
            for communicator in (own, elsewhere, unscoped):
                connected, _ = await communicator.connect()
                assert connected

            await sync_to_async(broadcast_web_order)({"order_number": "51"}, branch_id=branch.pk)
            event = await own.receive_json_from()
            assert event["event"] == WEB_ORDER_EVENT
            assert event["branchId"] == str(branch.pk)
            assert event["order"]["order_number"] == "51"
            assert await elsewhere.receive_nothing()
            assert await unscoped.receive_nothing()

            await sync_to_async(broadcast_web_order)({"order_number": "52"})
            for communicator in (own, elsewhere, unscoped):
                event = await communicator.receive_json_from()
                assert event["order"]["order_number"] == "52"
                assert event["branchId"] is None
                await communicator.disconnect()

        async_to_sync(scenario)()

    @pytest.mark.parametrize("branch_id", ["a%20b", "not-a-branch", "12"])
    def test_malformed_branch_is_refused(self, channel_layer, branch_id):
        async def scenario():
            communicator = terminal(f"/ws/?branchId={branch_id}")
            connected, code = await communicator.connect()
            assert not connected
            assert code == 4400

        async_to_sync(scenario)()

    def test_ping_is_answered(self, channel_layer):
        async def scenario():
            communicator = terminal("/ws/?branchId=all")
            connected, _ = await communicator.connect()
            assert connected
            await communicator.send_to(text_data="ping")
            assert await communicator.receive_from() == "pong"
            await communicator.disconnect()

        async_to_sync(scenario)()
