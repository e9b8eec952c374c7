from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from storefront.database.core import utcnow
from storefront.database.models import User, Verification
from tests.conftest import TEST_PASSWORD


@pytest.fixture
def sent_otps(mocker):
    """Captures verification codes instead of emailing them."""
    codes = {}

    async def capture(recipient_email, otp, name):
        codes[recipient_email] = otp

    mocker.patch("storefront.email_service.send_verification_otp_email", side_effect=capture)
    return codes


@pytest.fixture
def sent_reset_links(mocker):
    links = {}

    async def capture(recipient_email, reset_link, name):
        links[recipient_email] = reset_link

    mocker.patch("storefront.email_service.send_password_reset_email", side_effect=capture)
    return links


def register(client, email="new@example.com", password=TEST_PASSWORD, name="Nouvelle Cliente"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def token_login(client, email, password=TEST_PASSWORD):
    return client.post("/api/auth/token", data={"username": email, "password": password})


class TestRegistration:
    def test_register_verify_then_login(self, client, db_session, sent_otps):
        response = register(client, email="New@Example.com")
        assert response.status_code == 202
        assert response.json()["email"] == "new@example.com"

        user = db_session.query(User).filter(User.email == "new@example.com").one()
        assert user.email_verified is False
        assert user.role == "user"

        assert token_login(client, "new@example.com").status_code == 403

        response = client.post("/api/auth/verify-email", json={
            "email": "new@example.com",
            "otp": sent_otps["new@example.com"],
        })
        assert response.status_code == 200

        response = token_login(client, "new@example.com")
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    def test_admin_role_from_configured_emails(self, client, db_session, sent_otps):
        register(client, email="admin@example.com")
        user = db_session.query(User).filter(User.email == "admin@example.com").one()
        assert user.role == "admin"

    def test_weak_password_is_rejected(self, client, sent_otps):
        response = register(client, password="password")
        assert response.status_code == 400
        assert sent_otps == {}

    def test_duplicate_email_returns_409(self, client, test_user, sent_otps):
        response = register(client, email=test_user.email)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_RESOURCE"

    def test_wrong_code_counts_attempts(self, client, sent_otps):
        register(client)
        for _ in range(2):
            response = client.post("/api/auth/verify-email", json={"email": "new@example.com", "otp": "000000x"})
            assert response.status_code == 400
            assert response.json()["error"]["message"] == "Invalid verification code"

        response = client.post("/api/auth/verify-email", json={"email": "new@example.com", "otp": "000000x"})
        assert response.json()["error"]["message"] == "Too many attempts. Request a new code."

        # The code is gone even when correct
        response = client.post("/api/auth/verify-email", json={
            "email": "new@example.com",
            "otp": sent_otps["new@example.com"],
        })
        assert response.status_code == 400

    def test_expired_code_is_rejected(self, client, db_session, sent_otps):
        register(client)
        verification = db_session.query(Verification).one()
        verification.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        response = client.post("/api/auth/verify-email", json={
            "email": "new@example.com",
            "otp": sent_otps["new@example.com"],
        })
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Verification code has expired"

    def test_resend_replaces_the_code(self, client, db_session, sent_otps):
        register(client)
        response = client.post("/api/auth/resend-otp", json={"email": "new@example.com"})
        assert response.status_code == 200
        assert db_session.query(Verification).count() == 1

    def test_resend_requires_email(self, client):
        assert client.post("/api/auth/resend-otp", json={}).status_code == 400


class TestLogin:
    def test_wrong_password_returns_401(self, client, test_user):
        response = token_login(client, test_user.email, "WrongPass123")
        assert response.status_code == 401

    def test_unknown_email_returns_401(self, client):
        assert token_login(client, "ghost@example.com").status_code == 401

    def test_banned_user_gets_403_with_reason(self, client, make_user):
        make_user(email="banned@example.com", banned=True, ban_reason="fraude")
        response = token_login(client, "banned@example.com")
        assert response.status_code == 403
        assert "fraude" in response.json()["error"]["message"]

    def test_expired_ban_is_lifted(self, client, db_session, make_user):
        user = make_user(
            email="was-banned@example.com",
            banned=True,
            ban_expires=utcnow() - timedelta(days=1)
        )
        assert token_login(client, user.email).status_code == 200
        db_session.refresh(user)
        assert user.banned is False

    def test_protected_route_requires_token(self, client):
        assert client.get("/api/auth/get-session").status_code == 401

    def test_garbage_token_returns_401(self, client):
        response = client.get("/api/auth/get-session", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"


class TestPasswordReset:
    def test_reset_flow_revokes_sessions(self, client, test_user, auth_headers, sent_reset_links):
        response = client.post("/api/auth/forgot-password", json={"email": test_user.email})
        assert response.status_code == 202

        link = sent_reset_links[test_user.email]
        token = parse_qs(urlparse(link).query)["token"][0]

        response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "BrandNew456"})
        assert response.status_code == 200

        assert client.get("/api/auth/get-session", headers=auth_headers).status_code == 401
        assert token_login(client, test_user.email).status_code == 401
        assert token_login(client, test_user.email, "BrandNew456").status_code == 200

    def request_reset_token(self, client, email, sent_reset_links):
        client.post("/api/auth/forgot-password", json={"email": email})
        return parse_qs(urlparse(sent_reset_links[email]).query)["token"][0]

    def test_reset_link_works_once(self, client, test_user, sent_reset_links):
        token = self.request_reset_token(client, test_user.email, sent_reset_links)
        first = client.post("/api/auth/reset-password", json={"token": token, "new_password": "BrandNew456"})
        assert first.status_code == 200

        again = client.post("/api/auth/reset-password", json={"token": token, "new_password": "Another789"})
        assert again.status_code == 401
        assert token_login(client, test_user.email, "BrandNew456").status_code == 200
        assert token_login(client, test_user.email, "Another789").status_code == 401

    def test_older_links_are_spent_by_a_reset(self, client, test_user, sent_reset_links):
        older = self.request_reset_token(client, test_user.email, sent_reset_links)
        newer = self.request_reset_token(client, test_user.email, sent_reset_links)
        assert older != newer

        assert client.post("/api/auth/reset-password", json={"token": newer, "new_password": "BrandNew456"}).status_code == 200
        assert client.post("/api/auth/reset-password", json={"token": older, "new_password": "Another789"}).status_code == 401

    def test_rejected_password_keeps_link_usable(self, client, test_user, sent_reset_links):
        token = self.request_reset_token(client, test_user.email, sent_reset_links)
        weak = client.post("/api/auth/reset-password", json={"token": token, "new_password": "weak"})
        assert weak.status_code == 400
        assert client.post("/api/auth/reset-password", json={"token": token, "new_password": "BrandNew456"}).status_code == 200

    def test_unknown_email_is_silent(self, client, sent_reset_links):
        response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
        assert response.status_code == 202
        assert sent_reset_links == {}

    def test_invalid_token_returns_401(self, client):
        response = client.post("/api/auth/reset-password", json={"token": "bad", "new_password": "BrandNew456"})
        assert response.status_code == 401

    def test_access_token_cannot_reset(self, client, auth_headers):
        token = auth_headers["Authorization"].split()[1]
        response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "BrandNew456"})
        assert response.status_code == 401


class TestPasswords:
    def test_change_password(self, client, test_user, auth_headers):
        response = client.post("/api/auth/change-password", headers=auth_headers, json={
            "current_password": TEST_PASSWORD,
            "new_password": "Another789",
        })
        assert response.status_code == 200
        assert token_login(client, test_user.email, "Another789").status_code == 200

    def test_change_password_with_wrong_current(self, client, auth_headers):
        response = client.post("/api/auth/change-password", headers=auth_headers, json={
            "current_password": "nope-nope",
            "new_password": "Another789",
        })
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PASSWORD"

    def test_add_password_when_one_exists(self, client, auth_headers):
        response = client.post("/api/auth/add-password", headers=auth_headers, json={"new_password": "Another789"})
        assert response.status_code == 400

    def test_list_accounts(self, client, auth_headers):
        accounts = client.get("/api/auth/list-accounts", headers=auth_headers).json()
        assert [a["provider_id"] for a in accounts] == ["credential"]
