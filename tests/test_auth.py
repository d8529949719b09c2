"""
Tests for authentication endpoints and the role gate.
"""
from fastapi import status

from core.auth import has_role
from models.user import User, ROLE_ADMIN, ROLE_CUSTOMER
from security import jwt as jwt_utils


class TestRegister:
    """Test user registration."""

    def test_register_success(self, client, db):
        response = client.post(
            "/auth/register",
            json={"full_name": "John Doe", "email": "john@example.com", "password": "SecurePass123!"},
        )
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["email"] == "john@example.com"
        assert data["role_names"] == [ROLE_CUSTOMER]

        user = db.query(User).filter(User.email == "john@example.com").one()
        assert not has_role(db, user.id, ROLE_ADMIN)

    def test_register_duplicate_email_case_insensitive(self, client):
        client.post(
            "/auth/register",
            json={"full_name": "John Doe", "email": "john@example.com", "password": "SecurePass123!"},
        )
        response = client.post(
            "/auth/register",
            json={"full_name": "Jane Doe", "email": "JOHN@EXAMPLE.COM", "password": "SecurePass123!"},
        )
        assert response.status_code == status.HTTP_409_CONFLICT
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "domain_error"
        assert "already registered" in body["error"]

    def test_register_short_password_is_validation_error(self, client):
        response = client.post(
            "/auth/register",
            json={"full_name": "John Doe", "email": "john@example.com", "password": "short"},
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "validation_error"
        assert "password" in body["error"]


class TestLogin:
    """Test login and token refresh."""

    def test_login_success(self, client, customer):
        response = client.post("/auth/login", json={"email": customer.email, "password": "testpass123"})
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        payload = jwt_utils.decode_access(data["access_token"])
        assert payload["sub"] == str(customer.id)
        assert payload["roles"] == [ROLE_CUSTOMER]

    def test_login_invalid_credentials(self, client, customer):
        response = client.post("/auth/login", json={"email": customer.email, "password": "wrongpass"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "auth_error"

    def test_refresh_token(self, client, customer):
        tokens = client.post("/auth/login", json={"email": customer.email, "password": "testpass123"}).json()
        response = client.post("/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == status.HTTP_200_OK
        assert "access_token" in response.json()

    def test_access_token_cannot_be_used_as_refresh(self, client, customer):
        tokens = client.post("/auth/login", json={"email": customer.email, "password": "testpass123"}).json()
        response = client.post("/auth/refresh-token", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestAuthorization:
    """Test the bearer token and admin gates."""

    def test_me_requires_token(self, client):
        response = client.get("/auth/me")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json() == {"success": False, "error": "Not authenticated", "code": "auth_error"}

    def test_me_rejects_garbage_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["error"] == "Invalid token"

    def test_me_with_token(self, client, customer, customer_headers):
        response = client.get("/auth/me", headers=customer_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == customer.id

    def test_admin_route_forbidden_for_customer(self, client, customer_headers):
        response = client.post("/admin/payments/reconcile", json={"date": "2026-01-15"}, headers=customer_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["code"] == "forbidden"

    def test_admin_role_read_from_table_not_token(self, client, db, customer):
        # A forged roles claim does not grant admin access.
        token = jwt_utils.create_access_token(str(customer.id), [ROLE_ADMIN])
        response = client.post(
            "/admin/payments/reconcile",
            json={"date": "2026-01-15"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
