"""
Pytest fixtures shared by the BondPOS API tests.
"""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from authentication.models import Branch, CustomUser, Permission, Role, RolePermission
from authentication.permissions import PERMISSION_CATALOG
from inventory.models import Category, Product
from orders.models import Table


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def admin_user(db):
    return CustomUser.objects.create_superuser("admin", "admin123", full_name="Administrator")


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def permissions_catalog(db):
    for name, (category, description) in PERMISSION_CATALOG.items():
        Permission.objects.get_or_create(name=name, defaults={"category": category, "description": description})


@pytest.fixture
def make_staff(permissions_catalog):
    """Build a staff user holding exactly the given permissions."""

    def _make(username, permission_names):
        role = Role.objects.create(name=f"{username}-role")
        for permission in Permission.objects.filter(name__in=permission_names):
            RolePermission.objects.create(role=role, permission=permission)
        return CustomUser.objects.create_user(
            username, "staffpass123", role=CustomUser.ROLE_CASHIER, access_role=role
        )

    return _make


@pytest.fixture
def staff_client(make_staff):
    """Client for a cashier who can only view and create sales."""
    user = make_staff("cashier", ["sales.view", "sales.create", "inventory.view"])
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def branch(db):
    branch = Branch(name="Riverside", username="riverside", location="12 River Rd")
    branch.set_password("branch-secret")
    branch.save()
    return branch


@pytest.fixture
def category(db):
    return Category.objects.create(name="Drinks")


@pytest.fixture
def product(category):
    return Product.objects.create(
        name="Latte",
        price=Decimal("3.50"),
        category=category,
        quantity=Decimal("20"),
        size_prices={"L": "4.50"},
    )


@pytest.fixture
def second_product(category):
    return Product.objects.create(name="Croissant", price=Decimal("2.00"), category=category, quantity=Decimal("10"))


@pytest.fixture
def table(db):
    return Table.objects.create(table_number="T1", capacity=4)


@pytest.fixture
def branch_client(branch):
    """Client signed in as the Riverside branch account."""
    client = APIClient()
    client.force_authenticate(user=branch.get_login_user())
    return client
