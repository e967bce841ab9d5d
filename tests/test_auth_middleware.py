import pytest
from fastapi import FastAPI, Depends
from fastapi.testclient import TestClient
from jose import jwt

from app.middleware.auth_middleware import get_current_user
from app.utils.oauth_utils import create_access_token, verify_access_token, user_id_from_payload


# Create a simple test app with a protected endpoint
test_app = FastAPI()


@test_app.get("/protected")
async def protected_endpoint(user_id: int = Depends(get_current_user)):
    """Protected endpoint requiring authentication - returns user_id"""
    return {"message": "success", "user_id": user_id}


@pytest.fixture
def auth_client():
    """Create test client for auth middleware tests"""
    return TestClient(test_app)


class TestAuthMiddleware:
    """Test authentication middleware"""

    def test_protected_endpoint_with_valid_token(self, auth_client):
        """Test accessing protected endpoint with valid token"""
        token = create_access_token(username="testuser", user_id=1)

        response = auth_client.get("/protected", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"message": "success", "user_id": 1}

    def test_protected_endpoint_without_token(self, auth_client):
        """Test accessing protected endpoint without token"""
        response = auth_client.get("/protected")

        assert response.status_code == 401
        assert "Not authenticated" in response.json()["detail"]

    def test_protected_endpoint_with_invalid_token(self, auth_client):
        """Test accessing protected endpoint with invalid token"""
        response = auth_client.get("/protected", headers={"Authorization": "Bearer invalid.token.here"})

        assert response.status_code == 401
        assert "Invalid authentication credentials" in response.json()["detail"]

    def test_expired_token(self, auth_client):
        """Test that an expired token is refused"""
        token = create_access_token(username="testuser", user_id=1, expires_hours=-1)

        response = auth_client.get("/protected", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_token_without_user_id(self, auth_client):
        """Test that a token must carry a user id"""
        token = create_access_token(username="testuser", user_id=None)

        response = auth_client.get("/protected", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


class TestOAuthUtils:
    """Test token helpers"""

    def test_round_trip_claims(self):
        payload = verify_access_token(create_access_token(username="jane", user_id=42, scope="interview"))

        assert payload["sub"] == "jane"
        assert payload["preferred_username"] == "jane"
        assert payload["scope"] == "interview"
        assert user_id_from_payload(payload) == 42

    def test_token_signed_with_another_key(self):
        token = jwt.encode({"user_id": 42}, "some-other-secret", algorithm="HS256")
        assert verify_access_token(token) is None

    @pytest.mark.parametrize("payload", [None, {}, {"user_id": "abc"}])
    def test_user_id_from_bad_payload(self, payload):
        assert user_id_from_payload(payload) is None
