from models.log import ActivityLog
from models.users import User, UserRole

from conftest import PASSWORD


def _login(client, username, password=PASSWORD):
    return client.post("/auth/login", json={"username": username, "password": password})


# =============================================================================
# REGISTER / LOGIN
# =============================================================================

def test_register_returns_tokens_and_defaults_to_sales_staff(client):
    resp = client.post(
        "/auth/register",
        json={"username": "newbie", "email": "Newbie@Shop.com", "password": "hunter22", "full_name": "New Bie"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["access_token"] and body["refresh_token"]
    assert body["user"]["role"] == UserRole.SALES_STAFF.value
    assert body["user"]["email"] == "newbie@shop.com"


def test_register_duplicate_username(client, cashier):
    resp = client.post(
        "/auth/register",
        json={"username": "Cashier", "email": "other@shop.com", "password": "hunter22", "full_name": "Other"},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "duplicate_username"


def test_register_duplicate_email(client, cashier):
    resp = client.post(
        "/auth/register",
        json={"username": "other", "email": "cashier@shop.com", "password": "hunter22", "full_name": "Other"},
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "duplicate_email"


def test_register_short_password_is_validation_error(client):
    resp = client.post(
        "/auth/register",
        json={"username": "shorty", "email": "shorty@shop.com", "password": "123", "full_name": "Shorty"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"


def test_login_sets_last_login(client, db, cashier):
    resp = _login(client, "cashier")
    assert resp.status_code == 200, resp.text
    assert resp.json()["user"]["username"] == "cashier"
    db.expire_all()
    assert db.get(User, cashier.id).last_login is not None


def test_login_wrong_password(client, db, cashier):
    resp = _login(client, "cashier", "not-the-password")
    assert resp.status_code == 401
    assert resp.json()["code"] == "invalid_credentials"

    entry = db.query(ActivityLog).filter(ActivityLog.action == "LOGIN").one()
    assert entry.status == "FAIL"


def test_login_inactive_user(client, db, cashier):
    cashier.is_active = False
    db.commit()
    resp = _login(client, "cashier")
    assert resp.status_code == 401
    assert resp.json()["code"] == "inactive_user"


# =============================================================================
# TOKENS
# =============================================================================

def test_me(client, cashier_headers):
    resp = client.get("/auth/me", headers=cashier_headers)
    assert resp.status_code == 200
    assert resp.json()["username"] == "cashier"


def test_garbage_token_is_401(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_refresh_rotates_the_token(client, cashier):
    first = _login(client, "cashier").json()

    resp = client.post("/auth/refresh-token", json={"refresh_token": first["refresh_token"]})
    assert resp.status_code == 200
    second = resp.json()
    assert second["refresh_token"] != first["refresh_token"]

    reused = client.post("/auth/refresh-token", json={"refresh_token": first["refresh_token"]})
    assert reused.status_code == 401
    assert reused.json()["code"] == "invalid_refresh_token"


def test_revoke_invalidates_refresh_token(client, cashier):
    tokens = _login(client, "cashier").json()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert client.post("/auth/revoke-token", headers=headers).status_code == 200
    resp = client.post("/auth/refresh-token", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401


# =============================================================================
# USER ADMINISTRATION
# =============================================================================

def test_admin_lists_users(client, admin_headers, manager, cashier):
    body = client.get("/users", headers=admin_headers).json()
    assert body["total"] == 3


def test_manager_cannot_list_users(client, manager_headers):
    assert client.get("/users", headers=manager_headers).status_code == 403


def test_admin_changes_role(client, admin_headers, cashier):
    resp = client.put(f"/users/{cashier.id}/role", json={"role": "MANAGER"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["role"] == "MANAGER"


def test_admin_cannot_demote_self(client, admin, admin_headers):
    resp = client.put(f"/users/{admin.id}/role", json={"role": "SALES_STAFF"}, headers=admin_headers)
    assert resp.status_code == 400


def test_disabled_user_loses_access(client, admin_headers, cashier, cashier_headers):
    resp = client.put(f"/users/{cashier.id}/status", json={"is_active": False}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False
    assert client.get("/auth/me", headers=cashier_headers).status_code == 401
