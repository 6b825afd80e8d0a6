"""
Tests for the per-user cart: creation, merge, removal and totals.
"""
import pytest
from bson import ObjectId

from cart import CartService


def add(client, token, ids):
    return client.post("/cart/add", json={"products": ids}, headers={"token": token})


def remove(client, token, product_id):
    return client.request("DELETE", "/cart/product/delete", json={"productID": product_id}, headers={"token": token})


def ids_of(cart):
    return [p["id"] for p in cart["products"]]


class TestAddToCart:

    def test_first_add_creates_cart(self, client, db, token, make_product):
        p1 = make_product("Shoe", 50)
        p2 = make_product("Hat", 20)

        response = add(client, token, [p1["id"], p2["id"]])

        assert response.status_code == 201
        cart = response.json()["cart"]
        assert ids_of(cart) == [p1["id"], p2["id"]]
        assert cart["total"] == 70
        user = db["user"].find_one({"email": "a@x.com"})
        assert str(user["cart"]) == cart["id"]

    def test_merge_is_a_set_union(self, client, db, token, make_product):
        p1 = make_product("Shoe", 50)
        p2 = make_product("Hat", 20)
        p3 = make_product("Sock", 5)
        add(client, token, [p1["id"], p2["id"]])

        response = add(client, token, [p2["id"], p3["id"]])

        assert response.status_code == 201
        cart = response.json()["cart"]
        assert ids_of(cart) == [p1["id"], p2["id"], p3["id"]]
        assert cart["total"] == 75
        stored = db["cart"].find_one({"_id": ObjectId(cart["id"])})
        assert len(stored["products"]) == 3
        assert stored["total"] == 75

    def test_duplicate_ids_in_one_request_count_once(self, client, token, make_product):
        p1 = make_product("Shoe", 50)

        cart = add(client, token, [p1["id"], p1["id"]]).json()["cart"]

        assert ids_of(cart) == [p1["id"]]
        assert cart["total"] == 50

    def test_re_adding_existing_products_changes_nothing(self, client, token, make_product):
        p1 = make_product("Shoe", 50)
        add(client, token, [p1["id"]])

        cart = add(client, token, [p1["id"]]).json()["cart"]

        assert ids_of(cart) == [p1["id"]]
        assert cart["total"] == 50

    def test_unknown_product_adds_nothing_to_total(self, client, db, token, make_product):
        p1 = make_product("Shoe", 50)
        ghost = str(ObjectId())

        cart = add(client, token, [p1["id"], ghost]).json()["cart"]

        assert cart["total"] == 50
        # the reference is kept but only existing products are expanded
        stored = db["cart"].find_one({"_id": ObjectId(cart["id"])})
        assert ObjectId(ghost) in stored["products"]
        assert ids_of(cart) == [p1["id"]]

    def test_empty_product_list(self, client, token):
        assert add(client, token, []).status_code == 400

    def test_malformed_product_id(self, client, token):
        assert add(client, token, ["nope"]).status_code == 400

    def test_add_requires_token(self, client):
        response = client.post("/cart/add", json={"products": [str(ObjectId())]})
        assert response.status_code == 401

    def test_carts_are_per_user(self, client, token, make_product):
        p1 = make_product("Shoe", 50)
        add(client, token, [p1["id"]])
        client.post("/register", json={"email": "b@x.com", "password": "pw", "name": "B"})
        other = client.post("/login", json={"email": "b@x.com", "password": "pw"}).json()["token"]

        response = client.get("/cart", headers={"token": other})

        assert response.json() == {"cart": None}


class TestGetCart:

    def test_cart_expands_products(self, client, token, make_product):
        p1 = make_product("Shoe", 50)
        add(client, token, [p1["id"]])

        response = client.get("/cart", headers={"token": token})

        assert response.status_code == 200
        cart = response.json()["cart"]
        assert cart["products"] == [p1]
        assert cart["total"] == 50

    def test_no_cart_yet(self, client, token):
        response = client.get("/cart", headers={"token": token})

        assert response.status_code == 200
        assert response.json() == {"cart": None}

    def test_total_is_stale_after_price_change(self, client, token, make_product):
        """The stored total reflects prices at the last cart mutation."""
        p1 = make_product("Shoe", 50)
        add(client, token, [p1["id"]])
        client.patch(
            f"/product/edit/{p1['id']}",
            json={"productData": {"name": "Shoe", "price": 70}},
            headers={"token": token},
        )

        cart = client.get("/cart", headers={"token": token}).json()["cart"]

        assert cart["total"] == 50
        assert cart["products"][0]["price"] == 70


class TestRemoveFromCart:

    def test_remove_recomputes_total(self, client, token, make_product):
        p1 = make_product("Shoe", 50)
        p2 = make_product("Hat", 20)
        add(client, token, [p1["id"], p2["id"]])

        response = remove(client, token, p1["id"])

        assert response.status_code == 200
        cart = response.json()["cart"]
        assert ids_of(cart) == [p2["id"]]
        assert cart["total"] == 20

    def test_remove_uses_current_prices(self, client, token, make_product):
        p1 = make_product("Shoe", 50)
        p2 = make_product("Hat", 20)
        add(client, token, [p1["id"], p2["id"]])
        client.patch(
            f"/product/edit/{p2['id']}",
            json={"productData": {"name": "Hat", "price": 25}},
            headers={"token": token},
        )

        cart = remove(client, token, p1["id"]).json()["cart"]

        assert cart["total"] == 25

    def test_remove_product_not_in_cart(self, client, token, make_product):
        p1 = make_product("Shoe", 50)
        p2 = make_product("Hat", 20)
        add(client, token, [p1["id"]])

        response = remove(client, token, p2["id"])

        assert response.status_code == 404
        assert response.json()["message"] == "Product Not Found in Cart"

    def test_remove_without_cart(self, client, token):
        response = remove(client, token, str(ObjectId()))

        assert response.status_code == 404
        assert response.json()["message"] == "Cart Not Found"

    def test_remove_requires_product_id(self, client, token):
        response = client.request("DELETE", "/cart/product/delete", json={}, headers={"token": token})
        assert response.status_code == 400


class TestCartService:
    """Service-level checks without the HTTP layer."""

    @pytest.fixture
    def user(self, db):
        res = db["user"].insert_one({"name": "A", "email": "a@x.com", "role": "user", "cart": None})
        return db["user"].find_one({"_id": res.inserted_id})

    def test_dangling_cart_reference_starts_a_new_cart(self, db, user):
        product = db["product"].insert_one({"name": "Shoe", "price": 50}).inserted_id
        user["cart"] = ObjectId()

        cart = CartService(db).add_to_cart([str(product)], user)

        assert cart["total"] == 50
        assert db["cart"].count_documents({}) == 1

    def test_deleted_product_drops_out_of_expansion(self, db, user):
        service = CartService(db)
        keep = db["product"].insert_one({"name": "Shoe", "price": 50}).inserted_id
        gone = db["product"].insert_one({"name": "Hat", "price": 20}).inserted_id
        service.add_to_cart([str(keep), str(gone)], user)
        db["product"].delete_one({"_id": gone})
        user = db["user"].find_one({"_id": user["_id"]})

        cart = service.get_cart(user)

        assert [p["name"] for p in cart["products"]] == ["Shoe"]
        assert cart["total"] == 70


def test_end_to_end_flow(client):
    assert client.post("/register", json={"email": "a@x.com", "password": "pw", "name": "A"}).status_code == 201
    login = client.post("/login", json={"email": "a@x.com", "password": "pw"})
    assert login.status_code == 200
    token = login.json()["token"]

    created = client.post(
        "/add-product",
        json={"name": "Shoe", "description": "d", "image": "i", "price": 50, "brand": "b", "stock": 1},
        headers={"token": token},
    )
    assert created.status_code == 201
    shoe_id = created.json()["product"]["id"]

    added = add(client, token, [shoe_id])
    assert added.status_code == 201
    assert added.json()["cart"]["total"] == 50

    removed = remove(client, token, shoe_id)
    assert removed.status_code == 200
    assert removed.json()["cart"]["total"] == 0
    assert removed.json()["cart"]["products"] == []
