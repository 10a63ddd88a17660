"""
Tests for the catalogue and stock: categories, products, adjustments,
purchases, low stock and the public menu.
"""

from datetime import date
from decimal import Decimal

import pytest
from rest_framework import status

from authentication.models import Branch, BusinessSettings
from inventory.models import Product


@pytest.mark.django_db
class TestCatalogue:
    def test_category_names_are_unique_ignoring_case(self, admin_client, category):
        response = admin_client.post("/api/categories/", {"name": "DRINKS"}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Category with this name already exists."

    def test_category_slug_is_generated(self, admin_client):
        response = admin_client.post("/api/categories/", {"name": "Hot Food"}, format="json")
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["slug"] == "hot-food"

    def test_create_product_with_size_prices(self, admin_client, category):
        response = admin_client.post(
            "/api/products/",
            {"name": "Tea", "price": "2.00", "category": category.pk, "size_prices": {"M": "2.50", "L": "3.00"}},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert Product.objects.get(name="Tea").price_for_size("L") == Decimal("3.00")

    def test_negative_size_price_is_rejected(self, admin_client):
        response = admin_client.post(
            "/api/products/", {"name": "Tea", "price": "2.00", "size_prices": {"M": "-1"}}, format="json"
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_viewing_products_needs_inventory_permission(self, make_staff, api_client):
        api_client.force_authenticate(user=make_staff("bar", ["sales.view"]))
        assert api_client.get("/api/products/").status_code == status.HTTP_403_FORBIDDEN

    def test_main_product_groups_products(self, admin_client, product, second_product):
        response = admin_client.post(
            "/api/main-products/",
            {"name": "Breakfast Set", "product_ids": [product.pk, second_product.pk]},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert sorted(p["name"] for p in response.json()["products"]) == ["Croissant", "Latte"]

    def test_barcode_lookup(self, staff_client, product):
        Product.objects.filter(pk=product.pk).update(barcode="8850999000017")
        response = staff_client.get("/api/products/barcode/8850999000017/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Latte"

    def test_unknown_barcode(self, staff_client, product):
        response = staff_client.get("/api/products/barcode/0000/")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Product not found"

    def test_branch_barcode_wins_over_shared_product(self, branch_client, branch, product):
        Product.objects.filter(pk=product.pk).update(barcode="123")
        Product.objects.create(name="Riverside Latte", price=Decimal("3.00"), barcode="123", branch=branch)
        Product.objects.create(name="Elsewhere Latte", price=Decimal("3.00"), barcode="456",
                               branch=Branch.objects.create(name="Hilltop", username="hilltop", password="x"))

        assert branch_client.get("/api/products/barcode/123/").json()["name"] == "Riverside Latte"
        assert branch_client.get("/api/products/barcode/456/").status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.django_db
class TestStock:
    @pytest.mark.parametrize("kind,amount,expected", [
        ("add", "5", Decimal("25")),
        ("remove", "5", Decimal("15")),
        ("remove", "50", Decimal("0")),
        ("set", "7", Decimal("7")),
    ])
    def test_adjustments(self, admin_client, product, kind, amount, expected):
        response = admin_client.post(
            "/api/inventory-adjustments/",
            {"product": product.pk, "adjustment_type": kind, "quantity": amount, "reason": "count"},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        product.refresh_from_db()
        assert product.quantity == expected

    def test_purchase_adds_stock_to_matching_product(self, admin_client, product):
        response = admin_client.post(
            "/api/purchases/",
            {
                "item_name": "latte",
                "quantity": "2",
                "unit": "box",
                "price": "12.00",
                "pieces_per_unit": "6",
                "purchase_date": date.today().isoformat(),
            },
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert Decimal(response.json()["total_cost"]) == Decimal("24.00")
        product.refresh_from_db()
        assert product.quantity == Decimal("32")

    def test_low_stock_uses_configured_threshold(self, admin_client, product, second_product):
        second_product.quantity = Decimal("3")
        second_product.save()
        Product.objects.create(name="Sold Out", price=Decimal("1.00"), quantity=Decimal("0"))

        names = [p["name"] for p in admin_client.get("/api/products/low-stock/").json()]
        assert names == ["Croissant"]

        settings_obj = BusinessSettings.load()
        settings_obj.stock_threshold = 25
        settings_obj.save()
        names = [p["name"] for p in admin_client.get("/api/products/low-stock/").json()]
        assert names == ["Croissant", "Latte"]

        names = [p["name"] for p in admin_client.get("/api/products/low-stock/", {"threshold": "2"}).json()]
        assert names == []


@pytest.mark.django_db
class TestPublicMenu:
    def test_menu_shows_shared_and_branch_products(self, api_client, product, branch):
        Product.objects.create(name="Branch Special", price=Decimal("5.00"), branch=branch, quantity=Decimal("0"))

        shared = api_client.get("/api/public/products/").json()
        assert [p["name"] for p in shared] == ["Latte"]

        menu = api_client.get("/api/public/products/", {"branch_id": str(branch.pk)}).json()
        assert [(p["name"], p["in_stock"]) for p in menu] == [("Branch Special", False), ("Latte", True)]

    def test_public_categories(self, api_client, category):
        assert [c["name"] for c in api_client.get("/api/public/categories/").json()] == ["Drinks"]
