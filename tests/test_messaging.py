from conftest import auth_headers, make_user
from secondhand.models import Notification


# ---------- MESSAGES ----------

def _send(client, sender, receiver_id, text, product=None):
    return client.post(
        "/messages",
        json={"receiver": receiver_id, "message": text, "product": product},
        headers=auth_headers(sender),
    )


def test_conversation_is_bidirectional_and_chronological(client, alice, bob, seller, product):
    _send(client, alice, bob.id, "is it still available?", product=product.id)
    _send(client, bob, alice.id, "yes")
    _send(client, alice, seller.id, "unrelated thread")
    _send(client, alice, bob.id, "great, buying")

    for viewer, other in ((alice, bob), (bob, alice)):
        res = client.get(f"/messages/with/{other.id}", headers=auth_headers(viewer))
        texts = [m["message"] for m in res.json()["data"]["messages"]]
        assert texts == ["is it still available?", "yes", "great, buying"]


def test_send_requires_receiver_and_text(client, alice, bob):
    res = _send(client, alice, bob.id, "")
    assert res.status_code == 400
    assert res.json()["message"] == "receiver and message are required"

    res = _send(client, alice, 999, "hello?")
    assert res.status_code == 404


def test_send_rejects_unknown_or_deleted_product(client, alice, bob, make_product):
    gone = make_product(is_deleted=True)

    for product_id in (999, gone.id):
        res = _send(client, alice, bob.id, "about this one", product=product_id)
        assert res.status_code == 404
        assert res.json()["message"] == "Product not found"


def test_only_parties_can_archive_or_delete(client, db, alice, bob):
    outsider = make_user(db, "eve@example.com")
    message_id = _send(client, alice, bob.id, "hi").json()["data"]["message"]["id"]

    res = client.patch(f"/messages/{message_id}/archive", headers=auth_headers(outsider))
    assert res.status_code == 403
    assert client.delete(f"/messages/{message_id}", headers=auth_headers(outsider)).status_code == 403
    assert client.patch("/messages/999/archive", headers=auth_headers(alice)).status_code == 404

    res = client.patch(f"/messages/{message_id}/archive", headers=auth_headers(bob))
    assert res.json()["data"]["message"]["archived"] is True
    res = client.patch(f"/messages/{message_id}/unarchive", headers=auth_headers(alice))
    assert res.json()["data"]["message"]["archived"] is False


def test_deleted_message_leaves_conversation(client, alice, bob):
    message_id = _send(client, alice, bob.id, "oops").json()["data"]["message"]["id"]
    _send(client, alice, bob.id, "kept")

    assert client.delete(f"/messages/{message_id}", headers=auth_headers(bob)).status_code == 200

    res = client.get(f"/messages/with/{bob.id}", headers=auth_headers(alice))
    assert [m["message"] for m in res.json()["data"]["messages"]] == ["kept"]
    assert client.patch(f"/messages/{message_id}/archive", headers=auth_headers(alice)).status_code == 404


# ---------- NOTIFICATIONS ----------

def test_only_admin_creates_notifications(client, alice, admin):
    body = {"user": alice.id, "type": "system", "content": "Welcome"}

    assert client.post("/notifications", json=body, headers=auth_headers(alice)).status_code == 403

    res = client.post("/notifications", json=body, headers=auth_headers(admin))
    assert res.status_code == 201
    notif = res.json()["data"]["notification"]
    assert notif["user_id"] == alice.id
    assert notif["is_read"] is False


def test_bulk_fan_out_creates_one_row_per_user(client, db, alice, bob, admin):
    res = client.post(
        "/notifications/bulk",
        json={"users": [alice.id, bob.id], "type": "promo", "content": "Sale!"},
        headers=auth_headers(admin),
    )

    assert res.status_code == 201
    assert res.json()["data"]["count"] == 2
    rows = db.query(Notification).order_by(Notification.user_id).all()
    assert [(n.user_id, n.type, n.content) for n in rows] == [
        (alice.id, "promo", "Sale!"),
        (bob.id, "promo", "Sale!"),
    ]


def test_notification_creation_validation(client, admin):
    headers = auth_headers(admin)

    res = client.post("/notifications", json={"type": "system", "content": "x"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "user, type, content are required"

    res = client.post("/notifications/bulk", json={"users": [], "type": "t", "content": "c"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "users[], type, content are required"

    res = client.post("/notifications", json={"user": 999, "type": "t", "content": "c"}, headers=headers)
    assert res.status_code == 404


def test_owner_reads_flags_and_deletes_notifications(client, alice, bob, admin):
    admin_headers = auth_headers(admin)
    ids = [
        client.post(
            "/notifications", json={"user": alice.id, "type": "order", "content": text}, headers=admin_headers
        ).json()["data"]["notification"]["id"]
        for text in ("first", "second")
    ]
    headers = auth_headers(alice)

    res = client.patch(f"/notifications/{ids[0]}/read", headers=headers)
    assert res.json()["data"]["notification"]["is_read"] is True

    unread = client.get("/notifications/me", params={"onlyUnread": True}, headers=headers)
    assert [n["content"] for n in unread.json()["data"]["notifications"]] == ["second"]

    client.patch(f"/notifications/{ids[0]}/unread", headers=headers)
    client.delete(f"/notifications/{ids[1]}", headers=headers)
    listed = client.get("/notifications/me", headers=headers).json()["data"]["notifications"]
    assert [(n["content"], n["is_read"]) for n in listed] == [("first", False)]

    # someone else's notification reads as missing
    res = client.patch(f"/notifications/{ids[0]}/read", headers=auth_headers(bob))
    assert res.status_code == 404
    assert res.json()["message"] == "Notification not found"
