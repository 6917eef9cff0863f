from datetime import timedelta

import pytest

from sellfast.auth import issue_reset_token, issue_token, reset_password, resolve_caller
from sellfast.errors import Expired, InvalidState
from sellfast.models import PasswordResetToken, utcnow

PASSWORD = "secret123"


def test_token_round_trip():
    assert resolve_caller(issue_token(42)) == 42


def test_tampered_or_missing_token():
    token = issue_token(7)
    assert resolve_caller(token[:-2] + "xx") is None
    assert resolve_caller("") is None
    assert resolve_caller(None) is None


def test_signup_then_login(client):
    r = client.post(
        "/api/auth/signup",
        json={"email": "New@Example.com", "password": "hunter22", "name": "Newbie", "username": "newbie"},
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["message"] == "User created successfully"
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "USER"
    assert body["user"]["coins"] == 0

    r = client.post("/api/auth/login", json={"email": "new@example.com", "password": "hunter22"})
    assert r.status_code == 200, r.text
    assert r.json()["token"]
    assert "token" in r.cookies

    # cookie alone authenticates
    r = client.get("/api/auth/profile")
    assert r.status_code == 200
    assert "listings:create" in r.json()["user"]["permissions"]


def test_signup_validation(client, make_user):
    make_user(email="taken@example.com")

    r = client.post("/api/auth/signup", json={"email": "taken@example.com", "password": "hunter22", "name": "X"})
    assert r.status_code == 400
    assert r.json()["field"] == "email"

    r = client.post("/api/auth/signup", json={"email": "not-an-email", "password": "hunter22", "name": "X"})
    assert r.json()["error"] == "Invalid email format"

    r = client.post("/api/auth/signup", json={"email": "a@b.co", "password": "123", "name": "X"})
    assert r.status_code == 400
    assert r.json()["field"] == "password"

    r = client.post(
        "/api/auth/signup",
        json={"email": "a@b.co", "password": "hunter22", "name": "X", "username": "no spaces!"},
    )
    assert r.json()["field"] == "username"


def test_login_failures(client, db, make_user):
    make_user(email="someone@example.com")
    make_user(email="off@example.com", is_active=False)
    social = make_user(email="social@example.com")

    r = client.post("/api/auth/login", json={"email": "someone@example.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid email or password"

    r = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert r.status_code == 401

    r = client.post("/api/auth/login", json={"email": "off@example.com", "password": PASSWORD})
    assert r.status_code == 403
    assert r.json()["error"] == "Account is disabled. Please contact support."

    social.password_hash = None
    db.commit()

    r = client.post("/api/auth/login", json={"email": "social@example.com", "password": PASSWORD})
    assert r.status_code == 401
    assert r.json()["error"] == "Please use social login for this account"


def test_profile_requires_valid_token(client):
    r = client.get("/api/auth/profile")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized", "code": "Unauthorized"}

    r = client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401


def test_disabled_user_token_rejected(client, make_user, auth):
    u = make_user(is_active=False)
    r = client.get("/api/auth/profile", headers=auth(u))
    assert r.status_code == 401


def test_profile_update(client, make_user, auth):
    u = make_user(name="Old")
    r = client.patch("/api/auth/profile", json={"name": "New Name", "phone": " 123 "}, headers=auth(u))
    assert r.status_code == 200
    assert r.json()["user"]["name"] == "New Name"
    assert r.json()["user"]["phone"] == "123"

    r = client.patch("/api/auth/profile", json={"name": "  "}, headers=auth(u))
    assert r.status_code == 400


def test_buyer_permissions(client, make_user, auth):
    b = make_user(role="BUYER")
    perms = client.get("/api/auth/profile", headers=auth(b)).json()["user"]["permissions"]
    assert "bids:create" in perms
    assert "listings:create" not in perms


def test_logout_clears_cookie(client, make_user):
    make_user(email="bye@example.com")
    client.post("/api/auth/login", json={"email": "bye@example.com", "password": PASSWORD})
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert client.get("/api/auth/profile").status_code == 401


# ---------------------------------------------------
# Password reset
# ---------------------------------------------------
def test_password_reset_flow(client, db, make_user):
    user = make_user(email="forgot@example.com")

    r = client.post("/api/auth/forgot-password", json={"email": "Forgot@Example.com"})
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Password reset link sent to your email"
    token = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).one().token

    r = client.get(f"/api/auth/verify-reset-token?token={token}")
    assert r.json() == {"valid": True, "message": "Token is valid"}

    r = client.post("/api/auth/reset-password", json={"token": token, "password": "brandnew1"})
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "Password reset successfully"

    r = client.post("/api/auth/login", json={"email": "forgot@example.com", "password": "brandnew1"})
    assert r.status_code == 200
    r = client.post("/api/auth/login", json={"email": "forgot@example.com", "password": PASSWORD})
    assert r.status_code == 401

    r = client.post("/api/auth/reset-password", json={"token": token, "password": "another1"})
    assert r.status_code == 400
    assert r.json()["code"] == "InvalidState"
    r = client.get(f"/api/auth/verify-reset-token?token={token}")
    assert r.json()["error"] == "This reset token has already been used"


def test_forgot_password_does_not_reveal_accounts(client, db):
    r = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
    assert r.status_code == 200
    assert r.json()["message"] == "If an account exists, you will receive reset instructions."
    assert db.query(PasswordResetToken).count() == 0

    r = client.post("/api/auth/forgot-password", json={})
    assert r.status_code == 400
    assert r.json()["error"] == "Email or phone number is required"


def test_forgot_password_by_phone(client, db, make_user):
    user = make_user(phone="+15550001")
    r = client.post("/api/auth/forgot-password", json={"phone": "+15550001"})
    assert r.json()["message"] == "Verification code sent to your phone"
    assert db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).count() == 1


def test_new_reset_request_replaces_old_token(client, db, make_user):
    user = make_user()
    first = issue_reset_token(db, user).token
    second = issue_reset_token(db, user).token

    r = client.get(f"/api/auth/verify-reset-token?token={first}")
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid reset token"
    assert client.get(f"/api/auth/verify-reset-token?token={second}").status_code == 200


def test_expired_reset_token(client, db, make_user):
    user = make_user()
    token = issue_reset_token(db, user, now=utcnow() - timedelta(hours=2)).token

    r = client.get(f"/api/auth/verify-reset-token?token={token}")
    assert r.status_code == 400
    assert r.json() == {"error": "Reset token has expired", "code": "Expired"}

    with pytest.raises(Expired):
        reset_password(db, token, "brandnew1")


def test_reset_token_for_disabled_account(client, db, make_user):
    user = make_user(is_active=False)
    token = issue_reset_token(db, user).token

    r = client.get(f"/api/auth/verify-reset-token?token={token}")
    assert r.status_code == 400
    assert r.json()["error"] == "User account is not active"


def test_reset_password_validation(client, db, make_user):
    token = issue_reset_token(db, make_user()).token

    assert client.get("/api/auth/verify-reset-token").json()["error"] == "Token is required"
    r = client.post("/api/auth/reset-password", json={"token": token})
    assert r.json()["error"] == "Token and password are required"
    r = client.post("/api/auth/reset-password", json={"token": token, "password": "123"})
    assert r.json()["field"] == "password"
    r = client.post("/api/auth/reset-password", json={"token": "nope", "password": "brandnew1"})
    assert r.json()["error"] == "Invalid reset token"


def test_reset_token_is_spent_once(db, make_user):
    token = issue_reset_token(db, make_user()).token
    reset_password(db, token, "brandnew1")
    with pytest.raises(InvalidState):
        reset_password(db, token, "brandnew2")
