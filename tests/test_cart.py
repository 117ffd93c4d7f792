import pytest

from conftest import auth_headers
from secondhand import cart as cart_service
from secondhand.exceptions import InvalidInputError, NotFoundError
from secondhand.models import Cart, CartItem


def test_get_my_cart_creates_it_once(client, db, alice):
    headers = auth_headers(alice)

    first = client.get("/carts/me", headers=headers).json()["data"]["cart"]
    second = client.get("/carts/me", headers=headers).json()["data"]["cart"]

    assert first["id"] == second["id"]
    assert first["items"] == []
    assert db.query(Cart).filter(Cart.user_id == alice.id).count() == 1


def test_get_or_create_rereads_after_losing_creation_race(db, alice, monkeypatch):
    winner = Cart(user_id=alice.id)
    db.add(winner)
    db.commit()

    real_find = cart_service._find_cart
    calls = []

    def stale_then_real(session, user_id):
        calls.append(user_id)
        # The first lookup happens before the other request committed
        if len(calls) == 1:
            return None
        return real_find(session, user_id)

    monkeypatch.setattr(cart_service, "_find_cart", stale_then_real)

    cart = cart_service.get_or_create_cart(db, alice.id)

    assert cart.id == winner.id
    assert len(calls) == 2
    assert db.query(Cart).filter(Cart.user_id == alice.id).count() == 1


def test_adding_same_product_twice_merges_quantity(client, db, alice, product):
    headers = auth_headers(alice)

    client.post("/carts/me/items", json={"product": product.id, "quantity": 2}, headers=headers)
    res = client.post("/carts/me/items", json={"product": product.id, "quantity": 3}, headers=headers)

    assert res.status_code == 200
    items = res.json()["data"]["cart"]["items"]
    assert len(items) == 1
    assert items[0]["quantity"] == 5
    assert items[0]["product"]["title"] == "Oak table"
    assert db.query(CartItem).count() == 1


def test_add_item_is_not_capped_by_stock(db, alice, make_product):
    scarce = make_product(stock=1)

    cart = cart_service.add_item(db, alice.id, scarce.id, 10)

    assert cart.items[0].quantity == 10


def test_add_item_rejects_bad_quantity_and_missing_product(client, alice, product):
    headers = auth_headers(alice)

    res = client.post("/carts/me/items", json={"product": product.id, "quantity": 0}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Quantity must be at least 1"

    res = client.post("/carts/me/items", json={"product": 999, "quantity": 1}, headers=headers)
    assert res.status_code == 404

    res = client.post("/carts/me/items", json={"product": product.id}, headers=headers)
    assert res.status_code == 400


def test_soft_deleted_product_cannot_be_added(db, alice, make_product):
    gone = make_product(is_deleted=True)

    with pytest.raises(NotFoundError):
        cart_service.add_item(db, alice.id, gone.id, 1)


def test_set_quantity_and_remove(client, alice, product):
    headers = auth_headers(alice)
    client.post("/carts/me/items", json={"product": product.id, "quantity": 1}, headers=headers)

    res = client.patch(f"/carts/me/items/{product.id}", json={"quantity": 4}, headers=headers)
    assert res.json()["data"]["cart"]["items"][0]["quantity"] == 4

    res = client.patch(f"/carts/me/items/{product.id}", json={"quantity": 0}, headers=headers)
    assert res.status_code == 400

    res = client.delete(f"/carts/me/items/{product.id}", headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["cart"]["items"] == []

    res = client.delete(f"/carts/me/items/{product.id}", headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Item not found in cart"

    res = client.patch(f"/carts/me/items/{product.id}", json={"quantity": 2}, headers=headers)
    assert res.status_code == 404


def test_set_quantity_validates_before_lookup(db, alice):
    with pytest.raises(InvalidInputError):
        cart_service.set_item_quantity(db, alice.id, 12345, 0)


def test_clear_empties_cart(client, alice, make_product):
    headers = auth_headers(alice)
    for p in (make_product(title="A"), make_product(title="B")):
        client.post("/carts/me/items", json={"product": p.id, "quantity": 1}, headers=headers)

    res = client.delete("/carts/me", headers=headers)

    assert res.json()["data"]["cart"]["items"] == []


def test_admin_can_read_any_cart(client, alice, admin, product):
    client.post("/carts/me/items", json={"product": product.id, "quantity": 1}, headers=auth_headers(alice))

    res = client.get(f"/carts/user/{alice.id}", headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["data"]["cart"]["user_id"] == alice.id

    assert client.get(f"/carts/user/{alice.id}", headers=auth_headers(alice)).status_code == 403
