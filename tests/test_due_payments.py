"""
Tests for due management: payments allocated over a customer's due orders,
credit from unallocated amounts and the customer summaries.
"""

import io
from decimal import Decimal

import openpyxl
import pytest
from rest_framework import status

from finance.models import DuePayment
from orders import services
from orders.models import Customer


@pytest.fixture
def customer(db):
    return Customer.objects.create(name="Chenda", phone="099 111 222")


@pytest.fixture
def due_orders(customer, product, admin_user):
    """Two due orders: $7.00 and $3.50"""
    return [
        services.create_order(
            {"customer": customer, "customer_name": customer.name, "status": "due"},
            [{"product": product, "quantity": quantity}],
            user=admin_user,
        )
        for quantity in (2, 1)
    ]


def record_payment(client, customer, amount, allocations):
    return client.post(
        "/api/due-payments/",
        {
            "customer": customer.pk,
            "amount": amount,
            "payment_method": "cash",
            "allocations": [{"order_id": order.pk, "amount": share} for order, share in allocations],
        },
        format="json",
    )


@pytest.mark.django_db
class TestDuePayments:
    def test_partial_allocation(self, admin_client, customer, due_orders):
        first, second = due_orders
        response = record_payment(admin_client, customer, "5.00", [(first, "5.00")])

        assert response.status_code == status.HTTP_201_CREATED
        first.refresh_from_db()
        second.refresh_from_db()
        assert first.payment_status == "partial"
        assert first.paid_amount == Decimal("5.00")
        assert first.due_amount == Decimal("2.00")
        assert second.payment_status == "due"

    def test_full_allocation_with_credit_left_over(self, admin_client, customer, due_orders):
        first, second = due_orders
        response = record_payment(admin_client, customer, "12.00", [(first, "7.00"), (second, "3.50")])

        assert response.status_code == status.HTTP_201_CREATED
        assert Decimal(response.json()["unapplied_amount"]) == Decimal("1.50")
        first.refresh_from_db()
        second.refresh_from_db()
        assert (first.payment_status, second.payment_status) == ("paid", "paid")

        summary = admin_client.get(f"/api/customers/{customer.pk}/due-summary/").json()
        assert Decimal(str(summary["balance"])) == Decimal("0.00")
        assert Decimal(str(summary["credit"])) == Decimal("1.50")
        assert Decimal(str(summary["total_due"])) == Decimal("10.50")
        assert summary["orders_count"] == 0

    def test_allocations_cannot_exceed_payment(self, admin_client, customer, due_orders):
        first, _ = due_orders
        response = record_payment(admin_client, customer, "5.00", [(first, "6.00")])
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert not DuePayment.objects.exists()

    def test_allocation_to_another_customers_order(self, admin_client, customer, product, admin_user):
        stranger = Customer.objects.create(name="Someone Else")
        order = services.create_order(
            {"customer": stranger, "status": "due"}, [{"product": product, "quantity": 1}], user=admin_user
        )
        response = record_payment(admin_client, customer, "3.50", [(order, "3.50")])
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_deleting_payment_reverses_allocations(self, admin_client, customer, due_orders):
        first, _ = due_orders
        payment = record_payment(admin_client, customer, "7.00", [(first, "7.00")]).json()

        allocations = admin_client.get(f"/api/due-payments/{payment['id']}/allocations/").json()
        assert [a["order"] for a in allocations] == [first.pk]

        response = admin_client.delete(f"/api/due-payments/{payment['id']}/")
        assert response.status_code == status.HTTP_204_NO_CONTENT
        first.refresh_from_db()
        assert first.payment_status == "due"
        assert first.paid_amount == Decimal("0.00")
        assert first.due_amount == Decimal("7.00")

    def test_customers_summary_lists_customers_with_balances(self, admin_client, customer, due_orders):
        Customer.objects.create(name="Paid Up")
        summaries = admin_client.get("/api/due/customers-summary/").json()
        assert [s["customer_name"] for s in summaries] == ["Chenda"]
        assert Decimal(str(summaries[0]["balance"])) == Decimal("10.50")
        assert summaries[0]["orders_count"] == 2

    def test_due_payments_need_permission(self, staff_client, customer, due_orders):
        response = record_payment(staff_client, customer, "1.00", [])
        assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestCustomerHistory:
    def test_transactions_list_due_orders_and_payments_newest_first(self, admin_client, customer, due_orders):
        first, _ = due_orders
        record_payment(admin_client, customer, "5.00", [(first, "5.00")])

        response = admin_client.get(f"/api/customers/{customer.pk}/transactions/paginated/")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["count"] == 3
        assert [entry["type"] for entry in data["results"]] == ["payment", "due", "due"]
        assert data["results"][0]["description"] == "Payment"
        assert Decimal(str(data["results"][0]["amount"])) == Decimal("5.00")

    def test_transactions_search_and_limit(self, admin_client, customer, due_orders):
        second = due_orders[1]
        found = admin_client.get(
            f"/api/customers/{customer.pk}/transactions/paginated/", {"search": f"order {second.order_number}"}
        ).json()
        assert [entry["order_number"] for entry in found["results"]] == [second.order_number]

        page = admin_client.get(f"/api/customers/{customer.pk}/transactions/paginated/", {"limit": 1}).json()
        assert page["count"] == 2
        assert len(page["results"]) == 1
        assert page["next"] is not None

    def test_order_history_is_paged(self, admin_client, customer, due_orders):
        response = admin_client.get(f"/api/customers/{customer.pk}/orders/paginated/", {"limit": 1})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["count"] == 2
        assert [order["order_number"] for order in data["results"]] == [due_orders[1].order_number]

    def test_unknown_customer(self, admin_client):
        response = admin_client.get("/api/customers/9999/transactions/paginated/")
        assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestDueExport:
    def test_csv_lists_customer_balances(self, admin_client, customer, due_orders):
        response = admin_client.get("/api/due/export/", {"format": "csv"})

        assert response.status_code == status.HTTP_200_OK
        lines = response.content.decode().strip().splitlines()
        assert lines[0] == "Customer,Phone,Orders,Total Due,Total Paid,Balance,Credit"
        assert lines[1].startswith("Chenda,099 111 222,2,10.5")

    def test_excel(self, admin_client, customer, due_orders):
        response = admin_client.get("/api/due/export/", {"format": "excel"})
        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        assert "Customer Due Report" in workbook.active["A1"].value

    def test_unknown_format(self, admin_client, customer, due_orders):
        assert admin_client.get("/api/due/export/", {"format": "docx"}).status_code == status.HTTP_400_BAD_REQUEST

    def test_export_needs_permission(self, staff_client):
        assert staff_client.get("/api/due/export/").status_code == status.HTTP_403_FORBIDDEN
