from conftest import auth_headers
from secondhand import address as address_service
from secondhand.models import Address
from secondhand.store_schema import AddressCreate, AddressUpdate


def _live_primaries(db, user_id):
    db.expire_all()
    return (
        db.query(Address)
        .filter(
            Address.user_id == user_id,
            Address.is_deleted == False,  # noqa: E712
            Address.is_primary == True,  # noqa: E712
        )
        .all()
    )


def test_second_primary_address_demotes_the_first(client, db, alice):
    headers = auth_headers(alice)

    a = client.post("/addresses/me", json={"city": "Pune", "is_primary": True}, headers=headers)
    b = client.post("/addresses/me", json={"city": "Goa", "is_primary": True}, headers=headers)

    assert a.status_code == b.status_code == 201
    a_id = a.json()["data"]["address"]["id"]
    b_id = b.json()["data"]["address"]["id"]

    db.expire_all()
    assert db.get(Address, a_id).is_primary is False
    assert db.get(Address, b_id).is_primary is True


def test_primary_stays_exclusive_over_a_sequence_of_operations(db, alice):
    uid = alice.id
    a = address_service.create_address(db, uid, AddressCreate(city="A", is_primary=True))
    b = address_service.create_address(db, uid, AddressCreate(city="B"))
    c = address_service.create_address(db, uid, AddressCreate(city="C", is_primary=True))
    assert [x.id for x in _live_primaries(db, uid)] == [c.id]

    address_service.update_address(db, b.id, uid, AddressUpdate(is_primary=True))
    assert [x.id for x in _live_primaries(db, uid)] == [b.id]

    address_service.make_primary(db, a.id, uid)
    assert [x.id for x in _live_primaries(db, uid)] == [a.id]

    address_service.update_address(db, c.id, uid, AddressUpdate(city="C2"))
    assert [x.id for x in _live_primaries(db, uid)] == [a.id]


def test_primary_flag_is_per_user(db, alice, bob):
    mine = address_service.create_address(db, alice.id, AddressCreate(city="A", is_primary=True))
    address_service.create_address(db, bob.id, AddressCreate(city="B", is_primary=True))

    assert [x.id for x in _live_primaries(db, alice.id)] == [mine.id]


def test_deleting_primary_leaves_no_primary(client, db, alice):
    headers = auth_headers(alice)
    a = client.post("/addresses/me", json={"city": "A", "is_primary": True}, headers=headers).json()
    client.post("/addresses/me", json={"city": "B"}, headers=headers)

    res = client.delete(f"/addresses/me/{a['data']['address']['id']}", headers=headers)

    assert res.status_code == 200
    assert _live_primaries(db, alice.id) == []

    listed = client.get("/addresses/me", headers=headers).json()["data"]["addresses"]
    assert [x["city"] for x in listed] == ["B"]


def test_other_users_address_reads_as_not_found(client, alice, bob):
    created = client.post("/addresses/me", json={"city": "A"}, headers=auth_headers(alice)).json()
    address_id = created["data"]["address"]["id"]
    headers = auth_headers(bob)

    res = client.patch(f"/addresses/me/{address_id}", json={"city": "X"}, headers=headers)
    assert res.status_code == 404
    assert res.json()["message"] == "Address not found"

    assert client.post(f"/addresses/me/{address_id}/make-primary", headers=headers).status_code == 404
    assert client.delete(f"/addresses/me/{address_id}", headers=headers).status_code == 404


def test_make_primary_refuses_deleted_address(client, alice):
    headers = auth_headers(alice)
    created = client.post("/addresses/me", json={"city": "A"}, headers=headers).json()
    address_id = created["data"]["address"]["id"]
    client.delete(f"/addresses/me/{address_id}", headers=headers)

    res = client.post(f"/addresses/me/{address_id}/make-primary", headers=headers)

    assert res.status_code == 404


def test_list_puts_primary_first_and_admin_can_list_for_user(client, alice, admin):
    headers = auth_headers(alice)
    client.post("/addresses/me", json={"city": "First"}, headers=headers)
    client.post("/addresses/me", json={"city": "Home", "is_primary": True}, headers=headers)
    client.post("/addresses/me", json={"city": "Last"}, headers=headers)

    listed = client.get("/addresses/me", headers=headers).json()["data"]["addresses"]
    assert listed[0]["city"] == "Home"
    assert len(listed) == 3

    res = client.get(f"/addresses/user/{alice.id}", headers=auth_headers(admin))
    assert len(res.json()["data"]["addresses"]) == 3
