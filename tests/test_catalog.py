from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from conftest import auth_headers
from secondhand import store
from secondhand.api import app
from secondhand.models import Category, Product


def _product_body(category_id, **overrides):
    body = {
        "category": category_id,
        "title": "Walnut bookshelf",
        "description": "Five shelves, minor scratches",
        "price": "45.50",
        "stock_quantity": 1,
        "details": {"condition": "used", "brand": "Ikea", "dimensions": {"height_cm": 180}},
        "images": [{"url": "https://img.example.com/1.jpg", "is_primary": True}],
    }
    body.update(overrides)
    return body


def test_admin_creates_category_and_duplicate_is_rejected(client, admin):
    headers = auth_headers(admin)

    res = client.post("/categories", json={"name": "Electronics"}, headers=headers)
    assert res.status_code == 201
    assert res.json()["data"]["category"]["name"] == "Electronics"

    res = client.post("/categories", json={"name": "Electronics"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["message"] == "Category already exists"


def test_soft_deleted_category_is_revived_on_create(client, db, admin, category):
    headers = auth_headers(admin)
    client.delete(f"/categories/{category.id}", headers=headers)

    res = client.post("/categories", json={"name": category.name}, headers=headers)

    assert res.status_code == 201
    assert res.json()["message"] == "Category restored"
    assert db.query(Category).filter(Category.name == category.name).count() == 1


def test_categories_are_public_but_writes_need_admin(client, alice, category):
    res = client.get("/categories")
    assert res.status_code == 200
    assert [c["name"] for c in res.json()["data"]["categories"]] == ["Furniture"]

    res = client.post("/categories", json={"name": "Books"}, headers=auth_headers(alice))
    assert res.status_code == 403


def test_create_product_with_details(client, seller, category):
    res = client.post("/products", json=_product_body(category.id), headers=auth_headers(seller))

    assert res.status_code == 201
    product = res.json()["data"]["product"]
    assert product["user_id"] == seller.id
    assert product["price"] == 45.5
    assert product["status"] == "available"
    assert product["details"]["condition"] == "used"
    assert product["images"][0]["is_primary"] is True


def test_create_product_rejects_unknown_category_and_negative_price(client, seller, category):
    headers = auth_headers(seller)

    res = client.post("/products", json=_product_body(999), headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Category not found"

    res = client.post("/products", json=_product_body(category.id, price="-1"), headers=headers)
    assert res.status_code == 400


def test_only_owner_or_admin_edits_product(client, alice, admin, seller, product):
    res = client.patch(f"/products/{product.id}", json={"price": "1.00"}, headers=auth_headers(alice))
    assert res.status_code == 403

    res = client.patch(f"/products/{product.id}", json={"price": "12.00"}, headers=auth_headers(seller))
    assert res.status_code == 200
    assert res.json()["data"]["product"]["price"] == 12.0

    res = client.patch(f"/products/{product.id}", json={"status": "sold"}, headers=auth_headers(admin))
    assert res.status_code == 200
    assert res.json()["data"]["product"]["status"] == "sold"

    res = client.patch("/products/999", json={"price": "1.00"}, headers=auth_headers(seller))
    assert res.status_code == 404


def test_product_listing_filters_and_paginates(client, make_product):
    make_product(title="Oak table", price=Decimal("10.00"))
    make_product(title="Pine chair", price=Decimal("25.00"))
    make_product(title="Oak wardrobe", price=Decimal("80.00"))

    res = client.get("/products", params={"q": "oak"})
    data = res.json()["data"]
    assert data["total"] == 2
    assert {p["title"] for p in data["items"]} == {"Oak table", "Oak wardrobe"}

    res = client.get("/products", params={"minPrice": "20", "maxPrice": "50"})
    assert [p["title"] for p in res.json()["data"]["items"]] == ["Pine chair"]

    res = client.get("/products", params={"limit": 2, "page": 2})
    data = res.json()["data"]
    assert data["total"] == 3
    assert len(data["items"]) == 1
    assert data["page"] == 2


def test_soft_deleted_product_is_hidden_except_for_admin_include_deleted(
    client, db, alice, admin, seller, product
):
    res = client.delete(f"/products/{product.id}", headers=auth_headers(seller))
    assert res.status_code == 200

    assert client.get(f"/products/{product.id}").status_code == 404
    assert client.get("/products").json()["data"]["total"] == 0

    # non-admins cannot look behind the flag
    res = client.get("/products", params={"includeDeleted": True}, headers=auth_headers(alice))
    assert res.json()["data"]["total"] == 0

    res = client.get("/products", params={"includeDeleted": True}, headers=auth_headers(admin))
    items = res.json()["data"]["items"]
    assert [p["id"] for p in items] == [product.id]
    assert items[0]["is_deleted"] is True

    db.expire_all()
    assert db.get(Product, product.id).is_deleted is True


def test_unexpected_errors_render_generic_envelope(monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(store, "list_categories", boom)

    res = TestClient(app, raise_server_exceptions=False).get("/categories")

    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Internal server error"}


def test_product_price_must_fit_stored_precision(client, seller, category):
    res = client.post(
        "/products", json=_product_body(category.id, price="1.005"), headers=auth_headers(seller)
    )

    assert res.status_code == 400
    assert res.json()["message"].startswith("price:")


def test_integrity_errors_fall_back_to_generic_conflict(client, monkeypatch):
    def broken(*args, **kwargs):
        raise IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(store, "list_categories", broken)

    res = client.get("/categories")

    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "Request conflicts with existing data"}
