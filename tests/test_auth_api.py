"""
HTTP-level tests for the /api/v1/auth routes.
"""

from datetime import timedelta

from sqlmodel import select

from backend.app.core.security import create_refresh_token
from backend.app.core.timeutils import utcnow
from backend.app.models import User

TEST_PASSWORD = "TestPassword123!"
AUTH = "/api/v1/auth"


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def _register(client, email="user@example.com", password=TEST_PASSWORD, name="Test User"):
    return client.post(
        f"{AUTH}/register", json={"email": email, "password": password, "name": name}
    )


class TestRegisterEndpoint:
    def test_register(self, client):
        response = _register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "user@example.com"
        assert body["user"]["emailVerified"] is False
        assert body["accessToken"] and body["refreshToken"]
        assert body["tokenType"] == "Bearer"
        assert "passwordHash" not in body["user"]
        assert "emailVerificationToken" not in body["user"]

    def test_duplicate_email_case_insensitive(self, client):
        assert _register(client, email="dup@example.com").status_code == 201

        response = _register(client, email="Dup@Example.com")

        assert response.status_code == 409
        assert response.json()["detail"] == "User with this email already exists"

    def test_weak_passwords_are_rejected(self, client):
        for password in ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123"]:
            response = _register(client, password=password)
            assert response.status_code == 400, password

    def test_invalid_email_is_rejected(self, client):
        assert _register(client, email="not-an-email").status_code == 400

    def test_missing_fields(self, client):
        assert client.post(f"{AUTH}/register", json={}).status_code == 400


class TestLoginEndpoint:
    def test_login_after_verification_flow(self, client, db_session):
        """register -> login refused -> verify with stored token -> login succeeds"""
        assert _register(client).status_code == 201

        pre = client.post(f"{AUTH}/login", json={"email": "user@example.com", "password": TEST_PASSWORD})
        assert pre.status_code == 403

        token = db_session.exec(select(User)).one().email_verification_token
        verified = client.post(f"{AUTH}/verify-email", json={"token": token})
        assert verified.status_code == 200
        assert verified.json()["message"] == "Email verified successfully"

        post = client.post(f"{AUTH}/login", json={"email": "user@example.com", "password": TEST_PASSWORD})
        assert post.status_code == 200
        body = post.json()
        assert body["user"]["emailVerified"] is True
        assert "message" not in body

    def test_invalid_credentials(self, client, make_user):
        make_user(email_verified=True)

        unknown = client.post(f"{AUTH}/login", json={"email": "ghost@example.com", "password": TEST_PASSWORD})
        wrong = client.post(f"{AUTH}/login", json={"email": "user@example.com", "password": "Wrong123!"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json() == {"detail": "Invalid credentials"}

    def test_account_locks_after_failed_attempts(self, client, make_user):
        make_user(email_verified=True)

        for _ in range(5):
            response = client.post(
                f"{AUTH}/login", json={"email": "user@example.com", "password": "Wrong123!"}
            )
            assert response.status_code == 401

        response = client.post(
            f"{AUTH}/login", json={"email": "user@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 403
        assert "locked" in response.json()["detail"]


class TestSessionEndpoints:
    def _login(self, client, make_user):
        make_user(email_verified=True)
        response = client.post(
            f"{AUTH}/login", json={"email": "user@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        return response.json()

    def test_me(self, client, make_user):
        tokens = self._login(client, make_user)

        response = client.get(f"{AUTH}/me", headers=_bearer(tokens["accessToken"]))

        assert response.status_code == 200
        assert response.json()["email"] == "user@example.com"
        assert "passwordHash" not in response.json()

    def test_me_requires_token(self, client):
        assert client.get(f"{AUTH}/me").status_code == 401
        assert client.get(f"{AUTH}/me", headers=_bearer("garbage")).status_code == 401

    def test_refresh_token_is_single_use(self, client, make_user):
        tokens = self._login(client, make_user)

        first = client.post(f"{AUTH}/refresh", headers=_bearer(tokens["refreshToken"]))
        assert first.status_code == 200
        assert first.json()["refreshToken"] != tokens["refreshToken"]

        reused = client.post(f"{AUTH}/refresh", headers=_bearer(tokens["refreshToken"]))
        assert reused.status_code == 403

        second = client.post(f"{AUTH}/refresh", headers=_bearer(first.json()["refreshToken"]))
        assert second.status_code == 200

    def test_refresh_without_token(self, client):
        assert client.post(f"{AUTH}/refresh").status_code == 401

    def test_refresh_rejects_access_token(self, client, make_user):
        tokens = self._login(client, make_user)

        response = client.post(f"{AUTH}/refresh", headers=_bearer(tokens["accessToken"]))

        assert response.status_code == 401

    def test_refresh_with_unknown_session(self, client, make_user):
        user = make_user(email_verified=True)
        forged = create_refresh_token(str(user.id))

        assert client.post(f"{AUTH}/refresh", headers=_bearer(forged)).status_code == 403

    def test_logout_revokes_refresh_tokens(self, client, make_user):
        tokens = self._login(client, make_user)

        for _ in range(2):
            response = client.post(f"{AUTH}/logout", headers=_bearer(tokens["accessToken"]))
            assert response.status_code == 200

        response = client.post(f"{AUTH}/refresh", headers=_bearer(tokens["refreshToken"]))
        assert response.status_code == 403

    def test_logout_requires_token(self, client):
        assert client.post(f"{AUTH}/logout").status_code == 401


class TestVerificationEndpoints:
    def test_verify_unknown_or_empty_token(self, client):
        assert client.post(f"{AUTH}/verify-email", json={"token": "nope"}).status_code == 400
        assert client.post(f"{AUTH}/verify-email", json={"token": ""}).status_code == 400
        assert client.post(f"{AUTH}/verify-email", json={}).status_code == 400

    def test_verify_already_verified(self, client, make_user):
        make_user(email_verified=True, email_verification_token="tok")

        response = client.post(f"{AUTH}/verify-email", json={"token": "tok"})

        assert response.status_code == 200
        assert response.json()["message"] == "Email already verified"

    def test_resend_verification(self, client, make_user, email_queue):
        make_user()

        response = client.post(f"{AUTH}/resend-verification", params={"email": "USER@example.com"})

        assert response.status_code == 200
        assert email_queue.count == 1

    def test_resend_verification_unknown_user(self, client):
        response = client.post(f"{AUTH}/resend-verification", params={"email": "ghost@example.com"})

        assert response.status_code == 404

    def test_resend_verification_bad_email(self, client):
        assert client.post(f"{AUTH}/resend-verification").status_code == 400
        assert client.post(
            f"{AUTH}/resend-verification", params={"email": "bad"}
        ).status_code == 400


class TestPasswordResetEndpoints:
    def test_forgot_password_does_not_reveal_accounts(self, client, make_user):
        make_user(email_verified=True)

        known = client.post(f"{AUTH}/forgot-password", json={"email": "user@example.com"})
        unknown = client.post(f"{AUTH}/forgot-password", json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.content == unknown.content

    def test_forgot_password_trims_and_lowercases(self, client, make_user, db_session):
        user = make_user(email_verified=True)

        response = client.post(f"{AUTH}/forgot-password", json={"email": "  USER@example.com "})

        assert response.status_code == 200
        db_session.refresh(user)
        assert user.password_reset_token is not None

    def test_forgot_password_invalid_email(self, client):
        assert client.post(f"{AUTH}/forgot-password", json={"email": "bad"}).status_code == 400

    def test_full_reset_flow(self, client, make_user, db_session):
        user = make_user(email_verified=True)
        client.post(f"{AUTH}/forgot-password", json={"email": "user@example.com"})
        db_session.refresh(user)
        token = user.password_reset_token

        response = client.post(
            f"{AUTH}/reset-password", json={"token": token, "newPassword": "BrandNew123$"}
        )
        assert response.status_code == 200

        reused = client.post(
            f"{AUTH}/reset-password", json={"token": token, "newPassword": "Another123$"}
        )
        assert reused.status_code == 400

        old = client.post(f"{AUTH}/login", json={"email": "user@example.com", "password": TEST_PASSWORD})
        new = client.post(f"{AUTH}/login", json={"email": "user@example.com", "password": "BrandNew123$"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_reset_with_expired_token(self, client, make_user):
        make_user(
            password_reset_token="expired",
            password_reset_expires=utcnow() - timedelta(minutes=5),
        )

        response = client.post(
            f"{AUTH}/reset-password", json={"token": "expired", "newPassword": "BrandNew123$"}
        )

        assert response.status_code == 400

    def test_reset_with_weak_password(self, client, make_user):
        make_user(
            password_reset_token="valid",
            password_reset_expires=utcnow() + timedelta(minutes=5),
        )

        response = client.post(
            f"{AUTH}/reset-password", json={"token": "valid", "newPassword": "weak"}
        )

        assert response.status_code == 400


class TestMisc:
    def test_root(self, client):
        assert client.get("/").json()["message"] == "Account Service API"
