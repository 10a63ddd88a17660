"""
Tests for login (user and branch accounts), sessions, permission
enforcement, branch scoping and the error envelope.
"""

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from authentication.models import AuditLog, Branch, BusinessSettings, CustomUser
from orders.models import Customer


@pytest.mark.django_db
class TestLogin:
    def test_user_login_returns_tokens_and_permissions(self, api_client, admin_user):
        response = api_client.post("/api/auth/login/", {"username": "admin", "password": "admin123"}, format="json")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["access"] and data["refresh"]
        assert data["account_type"] == "user"
        assert data["permissions"] == ["*"]
        assert AuditLog.objects.filter(action="login", username="admin").exists()

    def test_branch_login_uses_branch_account(self, api_client, branch):
        response = api_client.post(
            "/api/auth/login/", {"username": "riverside", "password": "branch-secret"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["account_type"] == "branch"
        assert data["branch"]["name"] == "Riverside"
        assert CustomUser.objects.filter(branch=branch, role=CustomUser.ROLE_BRANCH).count() == 1

    def test_disabled_branch_cannot_log_in(self, api_client, branch):
        branch.is_active = False
        branch.save()
        response = api_client.post(
            "/api/auth/login/", {"username": "riverside", "password": "branch-secret"}, format="json"
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Branch account is disabled"

    def test_wrong_password(self, api_client, admin_user):
        response = api_client.post("/api/auth/login/", {"username": "admin", "password": "nope"}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "error": True,
            "message": "Invalid username or password",
            "details": {"non_field_errors": ["Invalid username or password"]},
            "status_code": 400,
        }

    def test_jwt_access_token_authenticates(self, api_client, admin_user):
        tokens = api_client.post("/api/auth/login/", {"username": "admin", "password": "admin123"}, format="json").json()
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['access']}")
        response = client.get("/api/auth/session/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["user"]["username"] == "admin"

    def test_session_requires_authentication(self, api_client):
        response = api_client.get("/api/auth/session/")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] is True


@pytest.mark.django_db
class TestPermissions:
    def test_staff_permissions_come_from_role(self, make_staff):
        user = make_staff("waiter", ["sales.view"])
        assert user.has_permission("sales.view")
        assert not user.has_permission("sales.delete")

    def test_missing_permission_is_forbidden(self, staff_client):
        response = staff_client.get("/api/expenses/")
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "Missing permission: reports.view"

    def test_granted_permission_is_allowed(self, staff_client, product):
        response = staff_client.post(
            "/api/orders/", {"items": [{"product_id": product.pk, "quantity": 1}]}, format="json"
        )
        assert response.status_code == status.HTTP_201_CREATED

    def test_settings_update_needs_settings_permission(self, staff_client, admin_client):
        response = staff_client.put("/api/settings/", {"business_name": "Nope"}, format="json")
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = admin_client.put("/api/settings/", {"business_name": "Bond Cafe"}, format="json")
        assert response.status_code == status.HTTP_200_OK
        assert BusinessSettings.load().business_name == "Bond Cafe"

    def test_role_permissions_can_be_replaced(self, admin_client, make_staff):
        user = make_staff("host", ["sales.view"])
        role = user.access_role
        response = admin_client.put(
            f"/api/roles/{role.pk}/permissions/", {"permissions": ["sales.view", "hrm.view"]}, format="json"
        )
        assert response.status_code == status.HTTP_200_OK
        user.refresh_from_db()
        assert sorted(user.get_permission_names()) == ["hrm.view", "sales.view"]


@pytest.mark.django_db
class TestBranchScoping:
    def test_branch_account_sees_own_and_shared_records(self, branch):
        other = Branch.objects.create(name="Airport", username="airport", password="x")
        Customer.objects.create(name="Local", branch=branch)
        Customer.objects.create(name="Shared")
        Customer.objects.create(name="Elsewhere", branch=other)

        client = APIClient()
        client.force_authenticate(user=branch.get_login_user())
        names = [c["name"] for c in client.get("/api/customers/").json()]
        assert sorted(names) == ["Local", "Shared"]

    def test_branch_header_selects_branch_for_admin(self, admin_client, branch):
        Customer.objects.create(name="Local", branch=branch)
        response = admin_client.post(
            "/api/customers/", {"name": "Walked In"}, format="json", HTTP_X_BRANCH_ID=str(branch.pk)
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert Customer.objects.get(name="Walked In").branch_id == branch.pk

    def test_inactive_branch_is_refused(self, admin_client, branch):
        branch.is_active = False
        branch.save()
        response = admin_client.get("/api/customers/", HTTP_X_BRANCH_ID=str(branch.pk))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_deleting_branch_deactivates_it(self, admin_client, branch):
        response = admin_client.delete(f"/api/branches/{branch.pk}/")
        assert response.status_code == status.HTTP_204_NO_CONTENT
        branch.refresh_from_db()
        assert branch.is_active is False
        assert [b["name"] for b in APIClient().get("/api/public/branches/").json()] == []


@pytest.mark.django_db
class TestUsers:
    def test_create_user_with_role(self, admin_client, make_staff):
        role = make_staff("template", ["sales.view"]).access_role
        response = admin_client.post(
            "/api/users/",
            {"username": "sophea", "password": "sophea123", "role": "cashier", "access_role": role.pk},
            format="json",
        )
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["permissions"] == ["sales.view"]
        assert CustomUser.objects.get(username="sophea").check_password("sophea123")

    def test_duplicate_username(self, admin_client, admin_user):
        response = admin_client.post("/api/users/", {"username": "ADMIN", "password": "whatever1"}, format="json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Username already exists"

    def test_cannot_delete_own_account(self, admin_client, admin_user):
        response = admin_client.delete(f"/api/users/{admin_user.pk}/")
        assert response.status_code == status.HTTP_400_BAD_REQUEST
