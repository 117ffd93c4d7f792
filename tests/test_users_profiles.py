from conftest import auth_headers
from secondhand.models import RoleEnum


# ---------- USERS ----------

def test_self_update_is_whitelisted(client, alice):
    headers = auth_headers(alice)

    res = client.patch(
        "/users/me/current",
        json={"name": "Alice B", "dark_mode": True, "role": "admin"},
        headers=headers,
    )

    assert res.status_code == 200
    user = res.json()["data"]["user"]
    assert user["name"] == "Alice B"
    assert user["dark_mode"] is True
    assert user["role"] == "buyer"


def test_admin_lists_and_filters_users(client, alice, seller, admin):
    headers = auth_headers(admin)

    res = client.get("/users", params={"role": "seller"}, headers=headers)
    assert [u["email"] for u in res.json()["data"]["users"]] == [seller.email]

    res = client.get("/users", params={"q": "ali"}, headers=headers)
    assert [u["email"] for u in res.json()["data"]["users"]] == [alice.email]


def test_admin_soft_deletes_and_promotes_users(client, db, alice, bob, admin):
    headers = auth_headers(admin)

    res = client.patch(f"/users/{bob.id}", json={"role": "seller"}, headers=headers)
    assert res.json()["data"]["user"]["role"] == "seller"

    res = client.delete(f"/users/{alice.id}", headers=headers)
    assert res.json()["data"]["user"]["is_deleted"] is True

    emails = [u["email"] for u in client.get("/users", headers=headers).json()["data"]["users"]]
    assert alice.email not in emails
    emails = [
        u["email"]
        for u in client.get("/users", params={"includeDeleted": True}, headers=headers).json()["data"]["users"]
    ]
    assert alice.email in emails

    db.expire_all()
    assert bob.role == RoleEnum.SELLER
    assert client.get("/users/999", headers=headers).status_code == 404


def test_soft_deleted_email_cannot_register_again(client, admin, alice):
    client.delete(f"/users/{alice.id}", headers=auth_headers(admin))

    res = client.post(
        "/auth/register",
        json={"name": "Alice", "email": alice.email, "password": "secret123"},
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Email already registered"


# ---------- PROFILES ----------

def test_profile_lifecycle(client, alice, admin):
    headers = auth_headers(alice)

    assert client.get("/profiles/me", headers=headers).status_code == 404

    res = client.post("/profiles/me", json={"full_name": "Alice Liddell", "bio": "Collector"}, headers=headers)
    assert res.status_code == 201
    assert res.json()["data"]["profile"]["user_id"] == alice.id

    res = client.post("/profiles/me", json={"full_name": "Again"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Profile already exists"

    res = client.patch("/profiles/me", json={"bio": "Vintage cameras"}, headers=headers)
    assert res.json()["data"]["profile"]["bio"] == "Vintage cameras"
    assert res.json()["data"]["profile"]["full_name"] == "Alice Liddell"

    res = client.get(f"/profiles/{alice.id}", headers=auth_headers(admin))
    assert res.status_code == 200

    assert client.delete("/profiles/me", headers=headers).status_code == 200
    assert client.get("/profiles/me", headers=headers).status_code == 404


def test_profile_bio_length_is_validated(client, alice):
    res = client.post("/profiles/me", json={"bio": "x" * 501}, headers=auth_headers(alice))

    assert res.status_code == 400
    assert res.json()["message"].startswith("bio:")


def test_unknown_route_uses_error_envelope(client):
    res = client.get("/nope")

    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Not Found"}
