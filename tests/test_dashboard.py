"""
Tests for the dashboard figures, sales reports and report exports.
"""

import io
from datetime import timedelta
from decimal import Decimal

import openpyxl
import pytest
from django.utils import timezone
from rest_framework import status

from finance.models import Expense, ExpenseCategory
from hrm.models import Employee, StaffSalary
from inventory.models import Purchase
from orders import services
from orders.models import Order


@pytest.fixture
def sales(product, second_product, admin_user):
    """Two completed sales today, one from due management and one still open"""
    paid_cash = services.create_order({"status": "completed", "payment_method": "cash"},
                                      [{"product": product, "quantity": 2}], user=admin_user)
    paid_card = services.create_order({"status": "completed", "payment_method": "card"},
                                      [{"product": second_product, "quantity": 1}], user=admin_user)
    services.create_order({"status": "completed", "order_source": Order.SOURCE_DUE, "payment_method": "cash"},
                          [{"product": product, "quantity": 10}], user=admin_user)
    services.create_order({"status": "pending"}, [{"product": product, "quantity": 1}], user=admin_user)
    return paid_cash, paid_card


@pytest.mark.django_db
class TestSalesStats:
    def test_due_management_orders_are_not_sales(self, admin_client, sales):
        data = admin_client.get("/api/sales/stats/", {"date_filter": "today"}).json()
        assert data["total_sales"] == 2
        assert Decimal(str(data["total_revenue"])) == Decimal("9.00")
        assert Decimal(str(data["average_order_value"])) == Decimal("4.50")

    def test_payment_method_filter(self, admin_client, sales):
        data = admin_client.get("/api/sales/stats/", {"payment_method": "card"}).json()
        assert data["total_sales"] == 1
        assert Decimal(str(data["total_revenue"])) == Decimal("2.00")

    def test_older_sales_fall_outside_today(self, admin_client, sales):
        Order.objects.filter(pk=sales[1].pk).update(created_at=timezone.now() - timedelta(days=3))
        data = admin_client.get("/api/sales/stats/", {"date_filter": "today"}).json()
        assert data["total_sales"] == 1

    def test_item_report_orders_best_sellers_first(self, admin_client, sales):
        rows = admin_client.get("/api/reports/items/").json()
        assert [(row["product_name"], row["quantity"]) for row in rows] == [("Latte", 2), ("Croissant", 1)]

    def test_breakdowns(self, admin_client, sales):
        by_method = admin_client.get("/api/dashboard/sales-by-payment-method/").json()
        assert [row["payment_method"] for row in by_method] == ["cash", "card"]

        by_category = admin_client.get("/api/dashboard/sales-by-category/").json()
        assert by_category[0]["category"] == "Drinks"
        assert Decimal(str(by_category[0]["revenue"])) == Decimal("9.00")


@pytest.mark.django_db
class TestDashboardStats:
    def test_today_figures_and_profit_and_loss(self, admin_client, sales, product):
        category = ExpenseCategory.objects.create(name="Utilities")
        Expense.objects.create(category=category, description="Power", amount=Decimal("1.50"), unit="bill")
        Purchase.objects.create(item_name="Milk", quantity=Decimal("2"), unit="l", price=Decimal("1.00"),
                                purchase_date=timezone.localdate())
        employee = Employee.objects.create(employee_id="E1", name="Rithy")
        StaffSalary.objects.create(employee=employee, salary_amount=Decimal("3.00"))

        data = admin_client.get("/api/dashboard/stats/").json()

        assert data["today_orders"] == 2
        assert Decimal(str(data["today_sales"])) == Decimal("9.00")
        assert data["pending_orders"] == 1
        assert Decimal(str(data["total_purchase"])) == Decimal("2.00")
        assert Decimal(str(data["total_revenue"])) == Decimal("7.00")
        assert Decimal(str(data["total_expenses"])) == Decimal("1.50")
        assert Decimal(str(data["total_staff_salary"])) == Decimal("3.00")
        assert Decimal(str(data["profit_loss"])) == Decimal("2.50")

    def test_reports_need_permission(self, staff_client):
        assert staff_client.get("/api/dashboard/stats/").status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestExports:
    def test_daybook_csv(self, admin_client, sales):
        response = admin_client.get("/api/orders/export/", {"format": "csv"})
        assert response.status_code == status.HTTP_200_OK
        assert response["Content-Type"].startswith("text/csv")
        lines = response.content.decode().strip().splitlines()
        assert lines[0].startswith("Date,Invoice,Customer")
        assert len(lines) == 3

    def test_daybook_excel(self, admin_client, sales):
        response = admin_client.get("/api/orders/export/", {"format": "excel"})
        assert response.status_code == status.HTTP_200_OK
        workbook = openpyxl.load_workbook(io.BytesIO(response.content))
        sheet = workbook.active
        assert "Day Book Report" in sheet["A1"].value
        assert sheet.cell(row=4, column=1).value == "Date"

    def test_daybook_pdf(self, admin_client, sales):
        response = admin_client.get("/api/orders/export/", {"format": "pdf"})
        assert response["Content-Type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_unknown_format(self, admin_client):
        response = admin_client.get("/api/orders/export/", {"format": "docx"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_expense_export_and_stats(self, admin_client):
        category = ExpenseCategory.objects.create(name="Supplies")
        admin_client.post(
            "/api/expenses/",
            {"category": category.pk, "description": "Napkins", "amount": "2.50", "quantity": "4", "unit": "pack"},
            format="json",
        )

        stats = admin_client.get("/api/expenses/stats/").json()
        assert Decimal(str(stats["total_amount"])) == Decimal("10.00")
        assert stats["count"] == 1

        response = admin_client.get("/api/expenses/export/", {"format": "csv"})
        assert b"Napkins" in response.content


@pytest.fixture
def central_key(settings):
    settings.CENTRAL_DASHBOARD_API_KEY = "central-key"
    return {"HTTP_X_API_KEY": "central-key"}


@pytest.mark.django_db
class TestCentralDashboard:
    def test_stats_across_branches(self, api_client, central_key, sales):
        response = api_client.get("/api/central/stats/", **central_key)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total_products"] == 2
        assert Decimal(str(data["total_revenue"])) == Decimal("9.00")
        assert Decimal(str(data["average_order_value"])) == Decimal("4.50")
        assert "business_name" in data

    def test_sales_summary_is_alphabetical(self, api_client, central_key, sales):
        response = api_client.get("/api/central/sales-summary/", {"date_filter": "today"}, **central_key)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert [row["product_name"] for row in data["items"]] == ["Croissant", "Latte"]

    def test_branch_filter(self, api_client, central_key, branch, sales):
        data = api_client.get("/api/central/sales-summary/", {"branchId": str(branch.pk)}, **central_key).json()
        assert data == {"items": [], "total": 0}

    def test_key_is_required(self, api_client, central_key):
        assert api_client.get("/api/central/stats/").status_code == status.HTTP_401_UNAUTHORIZED

    def test_wrong_key_is_refused(self, api_client, central_key):
        response = api_client.get("/api/central/stats/", HTTP_X_API_KEY="guess")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["details"]["detail"] == "Invalid API key"

    def test_disabled_without_configured_key(self, api_client, settings):
        settings.CENTRAL_DASHBOARD_API_KEY = ""
        response = api_client.get("/api/central/stats/", HTTP_X_API_KEY="anything")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
