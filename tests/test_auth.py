from bson import ObjectId

from auth import is_allowed
from conftest import auth_header, register
from database import USERS, Lifecycle


def test_is_allowed_defaults_to_guest():
    assert is_allowed("admin", ["admin"])
    assert not is_allowed("customer", ["admin"])
    assert is_allowed(None, ["guest"])
    assert not is_allowed(None, ["customer", "admin"])


def test_register_returns_user_and_token(client):
    token, user = register(client, email="New.User@Shop.com")
    assert token
    assert user["email"] == "new.user@shop.com"
    assert user["role"] == "customer"
    assert user["addresses"] == []
    assert user["preferences"] == {"newsletter": False, "notifications": True}
    assert "passwordHash" not in user
    assert "tokenVersion" not in user


def test_register_duplicate_email_conflicts(client):
    register(client, email="a@x.com")
    res = client.post("/api/auth/register", json={
        "email": "a@x.com", "password": "secret123", "firstName": "A", "lastName": "B",
    })
    assert res.status_code == 400
    assert "already exists" in res.json()["error"]


def test_register_validation_details(client):
    res = client.post("/api/auth/register", json={"email": "not-an-email", "password": "123", "firstName": ""})
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "Validation failed"
    fields = {d["field"] for d in body["details"]}
    assert {"email", "password", "firstName", "lastName"} <= fields


def test_login_success(client):
    register(client, email="login@shop.com", password="secret123")
    res = client.post("/api/auth/login", json={"email": "login@shop.com", "password": "secret123"})
    assert res.status_code == 200
    assert res.json()["accessToken"]
    assert res.json()["user"]["email"] == "login@shop.com"


def test_login_wrong_password(client):
    register(client, email="login@shop.com", password="secret123")
    res = client.post("/api/auth/login", json={"email": "login@shop.com", "password": "wrong-pass"})
    assert res.status_code == 401


def test_login_unknown_email(client):
    res = client.post("/api/auth/login", json={"email": "ghost@shop.com", "password": "secret123"})
    assert res.status_code == 404


def test_login_deactivated_account(client, db):
    _, user = register(client, email="gone@shop.com")
    db[USERS].update_one({"_id": ObjectId(user["id"])}, {"$set": {"status": Lifecycle.INACTIVE.value}})
    res = client.post("/api/auth/login", json={"email": "gone@shop.com", "password": "secret123"})
    assert res.status_code == 403


def test_profile_requires_token(client):
    assert client.get("/api/auth/profile").status_code == 401
    res = client.get("/api/auth/profile", headers=auth_header("garbage"))
    assert res.status_code == 401
    assert res.json()["error"] == "Invalid or expired token"


def test_token_for_missing_user_is_not_found(client, app):
    token = app.state.identity.issue_token(str(ObjectId()))
    res = client.get("/api/auth/profile", headers=auth_header(token))
    assert res.status_code == 404


def test_profile_and_update(client, customer):
    res = client.get("/api/auth/profile", headers=customer["headers"])
    assert res.status_code == 200
    assert res.json()["email"] == "shopper@shop.com"

    res = client.put("/api/auth/profile", headers=customer["headers"], json={
        "firstName": "Samantha",
        "preferences": {"newsletter": True},
    })
    assert res.status_code == 200
    user = res.json()["user"]
    assert user["firstName"] == "Samantha"
    assert user["lastName"] == "Shopper"
    assert user["preferences"] == {"newsletter": True, "notifications": True}


def test_change_password(client, customer):
    res = client.put("/api/auth/change-password", headers=customer["headers"], json={"newPassword": "brand-new"})
    assert res.status_code == 200
    old = client.post("/api/auth/login", json={"email": "shopper@shop.com", "password": "secret123"})
    assert old.status_code == 401
    new = client.post("/api/auth/login", json={"email": "shopper@shop.com", "password": "brand-new"})
    assert new.status_code == 200


def test_logout_revokes_existing_tokens(client, customer):
    res = client.post("/api/auth/logout", headers=customer["headers"])
    assert res.status_code == 200
    assert client.get("/api/auth/profile", headers=customer["headers"]).status_code == 401

    fresh = client.post("/api/auth/login", json={"email": "shopper@shop.com", "password": "secret123"})
    token = fresh.json()["accessToken"]
    assert client.get("/api/auth/profile", headers=auth_header(token)).status_code == 200


def test_customer_cannot_use_admin_routes(client, customer):
    res = client.get("/api/users", headers=customer["headers"])
    assert res.status_code == 403
    assert res.json()["error"] == "Insufficient permissions"


def test_profile_update_rejects_null_names(client, customer):
    res = client.put("/api/auth/profile", headers=customer["headers"], json={"lastName": None})
    assert res.status_code == 400
    assert res.json()["details"][0]["field"] == "lastName"
    assert client.get("/api/auth/profile", headers=customer["headers"]).json()["lastName"] == "Shopper"
