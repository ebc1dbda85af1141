import pytest
from bson import ObjectId

from cart_service import CartService, recompute_total
from conftest import address_payload
from database import CARTS, ORDERS, PRODUCTS, USERS
from errors import InvalidState, NotFound


@pytest.fixture
def carts(db):
    return CartService(db)


@pytest.fixture
def user_id(db):
    return str(db[USERS].insert_one({"email": "u@shop.com", "role": "customer", "addresses": []}).inserted_id)


def assert_total_consistent(cart):
    assert cart["total"] == pytest.approx(sum(i["price"] * i["quantity"] for i in cart["items"]))


def test_recompute_total():
    assert recompute_total([]) == 0
    assert recompute_total([{"price": 2.5, "quantity": 2}, {"price": 1, "quantity": 3}]) == pytest.approx(8)
    assert recompute_total([{"price": 19.99, "quantity": 3}]) == 59.97


def test_add_same_product_increments_quantity(carts, user_id, make_product):
    product_id = make_product(price=10)
    carts.add_item(user_id, product_id, 1)
    cart = carts.add_item(user_id, product_id, 2)
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["total"] == pytest.approx(30)


def test_total_holds_after_every_mutation(carts, user_id, make_product):
    a = make_product(name="A", price=19.99)
    b = make_product(name="B", price=5.25)
    for cart in (
        carts.add_item(user_id, a, 2),
        carts.add_item(user_id, b, 3),
        carts.set_quantity(user_id, a, 5),
        carts.remove_item(user_id, b),
        carts.add_item(user_id, b, 1),
        carts.set_quantity(user_id, b, 0),
    ):
        assert_total_consistent(cart)


def test_line_snapshots_product_fields(carts, user_id, make_product):
    product_id = make_product(name="Lamp", price=12, images=["lamp.jpg", "lamp2.jpg"])
    line = carts.add_item(user_id, product_id, 1)["items"][0]
    assert line == {"productId": product_id, "name": "Lamp", "price": 12, "image": "lamp.jpg", "quantity": 1}


def test_add_missing_or_inactive_product_fails(carts, user_id, make_product, db):
    with pytest.raises(NotFound):
        carts.add_item(user_id, str(ObjectId()), 1)
    product_id = make_product()
    db[PRODUCTS].update_one({"_id": ObjectId(product_id)}, {"$set": {"status": "inactive"}})
    with pytest.raises(NotFound):
        carts.add_item(user_id, product_id, 1)


def test_set_quantity_zero_removes_line(carts, user_id, make_product):
    product_id = make_product()
    carts.add_item(user_id, product_id, 2)
    cart = carts.set_quantity(user_id, product_id, 0)
    assert cart["items"] == []
    assert cart["total"] == 0


def test_set_quantity_on_absent_line_fails(carts, user_id, make_product):
    carts.add_item(user_id, make_product(name="A"), 1)
    with pytest.raises(NotFound):
        carts.set_quantity(user_id, make_product(name="B"), 3)


def test_set_quantity_without_cart_fails(carts, user_id):
    with pytest.raises(NotFound):
        carts.set_quantity(user_id, str(ObjectId()), 1)


def test_get_and_clear(carts, user_id, make_product, db):
    assert carts.get(user_id) == {"userId": user_id, "items": [], "total": 0}
    carts.add_item(user_id, make_product(), 1)
    assert db[CARTS].count_documents({"userId": user_id}) == 1
    carts.clear(user_id)
    assert db[CARTS].count_documents({"userId": user_id}) == 0


def test_checkout_empty_cart_fails(carts, user_id):
    with pytest.raises(InvalidState):
        carts.checkout(user_id, "any", "card")


def test_checkout_with_foreign_address_fails(carts, user_id, make_product, db):
    db[USERS].insert_one({"email": "other@shop.com", "addresses": [{"id": "theirs", "isDefault": True}]})
    carts.add_item(user_id, make_product(), 1)
    with pytest.raises(InvalidState):
        carts.checkout(user_id, "theirs", "card")
    assert db[ORDERS].count_documents({}) == 0


def test_checkout_freezes_prices_and_clears_cart(carts, user_id, make_product, db):
    db[USERS].update_one({"_id": ObjectId(user_id)},
                         {"$set": {"addresses": [address_payload(id="home", street="1 Main", isDefault=True)]}})
    product_id = make_product(price=10)
    carts.add_item(user_id, product_id, 2)
    db[PRODUCTS].update_one({"_id": ObjectId(product_id)}, {"$set": {"price": 99}})

    order = carts.checkout(user_id, "home", "card")
    assert order["status"] == "pending"
    assert order["items"][0]["price"] == 10
    assert order["total"] == pytest.approx(20)
    assert order["shippingAddress"]["street"] == "1 Main"
    assert order["paymentMethod"] == "card"
    assert db[ORDERS].count_documents({"userId": user_id}) == 1
    assert carts.get(user_id)["items"] == []

    db[USERS].update_one({"_id": ObjectId(user_id)}, {"$set": {"addresses.0.street": "Moved"}})
    stored = db[ORDERS].find_one({"_id": ObjectId(order["id"])})
    assert stored["shippingAddress"]["street"] == "1 Main"


def test_cart_routes_end_to_end(client, customer, make_product):
    headers = customer["headers"]
    product_id = make_product(price=15)

    assert client.get("/api/cart", headers=headers).json()["items"] == []
    res = client.post("/api/cart/add", json={"productId": product_id, "quantity": 2}, headers=headers)
    assert res.status_code == 200
    assert res.json()["cart"]["total"] == pytest.approx(30)

    res = client.put("/api/cart/update", json={"productId": product_id, "quantity": 1}, headers=headers)
    assert res.json()["cart"]["total"] == pytest.approx(15)

    res = client.delete(f"/api/cart/remove/{product_id}", headers=headers)
    assert res.json()["cart"]["items"] == []

    client.post("/api/cart/add", json={"productId": product_id, "quantity": 1}, headers=headers)
    assert client.delete("/api/cart/clear", headers=headers).status_code == 200
    assert client.get("/api/cart", headers=headers).json()["total"] == 0


def test_cart_route_validation(client, customer):
    res = client.post("/api/cart/add", json={"productId": "", "quantity": 0}, headers=customer["headers"])
    assert res.status_code == 400
    assert {d["field"] for d in res.json()["details"]} == {"productId", "quantity"}
    res = client.put("/api/cart/update", json={"productId": "x", "quantity": 1}, headers=customer["headers"])
    assert res.status_code == 404


def test_checkout_route(client, customer, make_product, db):
    headers = customer["headers"]
    res = client.post("/api/cart/checkout", json={"shippingAddressId": "x", "paymentMethod": "card"}, headers=headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Cart is empty"

    address = client.post("/api/addresses", json=address_payload(), headers=headers).json()["address"]
    client.post("/api/cart/add", json={"productId": make_product(price=5), "quantity": 3}, headers=headers)

    res = client.post("/api/cart/checkout", json={"shippingAddressId": "bogus", "paymentMethod": "card"},
                      headers=headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid shipping address"

    res = client.post("/api/cart/checkout", json={"shippingAddressId": address["id"], "paymentMethod": "card"},
                      headers=headers)
    assert res.status_code == 201
    order = res.json()["order"]
    assert order["total"] == pytest.approx(15)
    assert order["shippingAddress"]["id"] == address["id"]
    assert client.get("/api/cart", headers=headers).json()["items"] == []
    assert db[ORDERS].count_documents({}) == 1


def test_stored_and_order_totals_are_in_cents(carts, user_id, make_product, db):
    db[USERS].update_one({"_id": ObjectId(user_id)},
                         {"$set": {"addresses": [address_payload(id="home", isDefault=True)]}})
    carts.add_item(user_id, make_product(price=19.99), 3)
    assert db[CARTS].find_one({"userId": user_id})["total"] == 59.97
    order = carts.checkout(user_id, "home", "card")
    assert order["total"] == 59.97
