"""
Authentication Tests
====================
Signup, login (bearer and cookie) and the current user endpoint.
"""
from fastapi.testclient import TestClient

from parallel_life.db.models import User
from parallel_life.tests.fakes import auth_headers


class TestSignup:

    def test_signup(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "new@parallel.life", "password": "Secret123"})

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "new@parallel.life"
        assert data["nickname"] == "new"
        assert data["plan"] == "free"
        assert data["usage_count"] == 0
        assert "hashed_password" not in data

    def test_signup_with_nickname(self, client: TestClient):
        response = client.post(
            "/auth/signup",
            json={"email": "nick@parallel.life", "password": "Secret123", "nickname": "Nick"},
        )
        assert response.json()["nickname"] == "Nick"

    def test_duplicate_email(self, client: TestClient, test_user: User):
        response = client.post("/auth/signup", json={"email": test_user.email, "password": "Whatever123"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    def test_email_normalized(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": " Mixed@Parallel.Life ", "password": "Secret123"})
        assert response.json()["email"] == "mixed@parallel.life"

    def test_invalid_email(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "not-an-email", "password": "Secret123"})
        assert response.status_code == 400

    def test_weak_password(self, client: TestClient):
        response = client.post("/auth/signup", json={"email": "weak@parallel.life", "password": "alllowercase1"})

        assert response.status_code == 400
        assert "uppercase" in response.json()["detail"]


class TestLogin:

    def test_login_returns_token_and_cookie(self, client: TestClient, test_user: User):
        response = client.post("/auth/token", data={"username": test_user.email, "password": "testpassword"})

        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"
        assert "access_token" in response.cookies

    def test_cookie_authenticates_following_requests(self, client: TestClient, test_user: User):
        client.post("/auth/token", data={"username": test_user.email, "password": "testpassword"})

        response = client.get("/auth/me")

        assert response.status_code == 200
        assert response.json()["email"] == test_user.email

    def test_wrong_password(self, client: TestClient, test_user: User):
        response = client.post("/auth/token", data={"username": test_user.email, "password": "wrong"})
        assert response.status_code == 401

    def test_unknown_user(self, client: TestClient):
        response = client.post("/auth/token", data={"username": "ghost@parallel.life", "password": "x"})
        assert response.status_code == 401

    def test_inactive_user(self, client: TestClient, session, test_user: User):
        test_user.is_active = False
        session.add(test_user)
        session.commit()

        response = client.post("/auth/token", data={"username": test_user.email, "password": "testpassword"})
        assert response.status_code == 401


class TestAuthRateLimit:

    def test_repeated_logins_are_limited(self, client: TestClient, test_user: User):
        for _ in range(5):
            response = client.post("/auth/token", data={"username": test_user.email, "password": "wrong"})
            assert response.status_code == 401

        response = client.post("/auth/token", data={"username": test_user.email, "password": "testpassword"})

        assert response.status_code == 429
        assert response.json()["error_code"] == "TOO_MANY_REQUESTS"

    def test_repeated_signups_are_limited(self, client: TestClient):
        for index in range(5):
            client.post("/auth/signup", json={"email": f"user{index}@parallel.life", "password": "Secret123"})

        response = client.post("/auth/signup", json={"email": "late@parallel.life", "password": "Secret123"})

        assert response.status_code == 429


class TestMe:

    def test_bearer_token(self, client: TestClient, test_user: User):
        response = client.get("/auth/me", headers=auth_headers(test_user))

        assert response.status_code == 200
        assert response.json()["nickname"] == "Tester"

    def test_anonymous(self, client: TestClient):
        assert client.get("/auth/me").status_code == 401

    def test_garbage_token(self, client: TestClient):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


def test_health(client: TestClient):
    assert client.get("/health").json()["status"] == "ok"
