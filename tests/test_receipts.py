"""
Tests for receipt rendering and kitchen order tickets.
"""

from decimal import Decimal

import pytest

from authentication.models import BusinessSettings
from orders import services
from orders.models import Order
from orders.receipts import invoice_number, payment_lines, render_kot, render_receipt


@pytest.fixture
def order(product, second_product, table, admin_user):
    return services.create_order(
        {"table": table, "customer_name": "Dara", "discount": Decimal("10"), "discount_type": "percentage"},
        [
            {"product": product, "quantity": 2, "selected_size": "L"},
            {"product": second_product, "quantity": 1},
        ],
        user=admin_user,
    )


@pytest.mark.django_db
class TestReceipts:
    def test_unknown_template_falls_back_to_classic(self, order):
        html = render_receipt(order, template="holiday-special")
        assert "RECEIPT" in html
        assert "Thank you for your purchase!" in html
        assert "receipt-classic" in html

    @pytest.mark.parametrize("template,marker", [
        ("compact", "<h1"),
        ("detailed", "DETAILED RECEIPT"),
        ("modern", "receipt-modern"),
        ("elegant", "receipt-elegant"),
    ])
    def test_each_template_renders(self, order, template, marker):
        assert marker in render_receipt(order, template=template)

    def test_receipt_figures(self, order):
        settings_obj = BusinessSettings.load()
        settings_obj.business_name = "Bond Cafe"
        settings_obj.invoice_prefix = "BC-"
        settings_obj.save()

        html = render_receipt(order, template="classic")

        # 2 x 4.50 (size L) + 2.00 = 11.00, less 10%
        assert "Bond Cafe" in html
        assert f"BC-{order.order_number}" in html
        assert "$11.00" in html
        assert "-$1.10" in html
        assert "$9.90" in html
        assert "Latte (L)" in html
        assert "Dara" in html

    def test_change_line_from_amount_paid(self, order):
        html = render_receipt(order, template="classic", amount_paid="20")
        assert "Change" not in html  # unpaid orders list no payments

        services.pay_order(order, "cash", amount_paid=Decimal("20"))
        html = render_receipt(order, template="classic", amount_paid="20")
        assert "Cash" in html
        assert "$10.10" in html

    def test_split_payment_lines(self, order):
        services.pay_order(order, None, splits=[{"method": "cash", "amount": "5"}, {"method": "aba", "amount": "4.90"}])
        assert payment_lines(order) == [("Cash", Decimal("5.00")), ("ABA", Decimal("4.90"))]

    def test_missing_order_number_renders_placeholder(self):
        assert invoice_number(Order(), BusinessSettings.load()) == "—"

    def test_kot_lists_items_without_prices(self, order):
        html = render_kot(order)
        assert "KITCHEN ORDER" in html
        assert f"#{order.order_number}" in html
        assert "2x" in html
        assert "Latte (L)" in html
        assert "$" not in html


@pytest.mark.django_db
class TestReceiptEndpoints:
    def test_receipt_is_html(self, admin_client, order):
        response = admin_client.get(f"/api/orders/{order.pk}/receipt/", {"template": "modern"})
        assert response.status_code == 200
        assert response["Content-Type"].startswith("text/html")
        assert b"receipt-modern" in response.content

    def test_kot_endpoint(self, admin_client, order):
        response = admin_client.get(f"/api/orders/{order.pk}/kot/")
        assert response.status_code == 200
        assert b"KITCHEN ORDER" in response.content
