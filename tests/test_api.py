import jwt

import auth
from factories import auth_headers, make_category, make_product, make_user


def test_register_login_and_me(client, db):
    res = client.post("/auth/register", json={"name": "Ann", "email": "ann@example.com", "password": "hunter22"})
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["data"]["role"] == "user"
    assert "password_hash" not in body["data"]

    dup = client.post("/auth/register", json={"name": "Ann", "email": "ann@example.com", "password": "hunter22"})
    assert dup.status_code == 400
    assert dup.json() == {"success": False, "message": "User already exists"}

    bad = client.post("/auth/login", json={"email": "ann@example.com", "password": "wrong-one"})
    assert bad.status_code == 401

    res = client.post("/auth/login", json={"email": "ann@example.com", "password": "hunter22"})
    assert res.status_code == 200
    token = res.json()["token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["data"]["email"] == "ann@example.com"


def test_missing_or_bad_token_is_unauthenticated(client):
    assert client.get("/cart").status_code == 401
    res = client.get("/cart", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401
    assert res.json()["success"] is False


def test_admin_routes_reject_regular_users(client, user):
    res = client.get("/dashboard/stats", headers=auth_headers(user))
    assert res.status_code == 403
    assert client.get("/orders", headers=auth_headers(user)).status_code == 403


def test_invalid_payload_is_a_400(client, user):
    res = client.post("/cart", json={"amount": 2}, headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["success"] is False


def test_cart_and_checkout_flow(client, db, user):
    headers = auth_headers(user)
    pid = make_product(db, price=250)

    assert client.get("/cart", headers=headers).json()["data"]["items"] == []

    assert client.post("/cart", json={"product_id": "0123456789abcdef01234567", "amount": 1}, headers=headers).status_code == 404
    res = client.post("/cart", json={"product_id": pid, "amount": 3}, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"]["item_count"] == 3

    res = client.patch(f"/cart/{pid}", json={"amount": 2}, headers=headers)
    assert res.json()["data"]["total"] == 500

    assert client.delete("/cart/0123456789abcdef01234567", headers=headers).status_code == 404

    res = client.post("/orders", headers=headers)
    assert res.status_code == 201
    order = res.json()["data"]
    assert order["total"] == 700.1
    assert client.get("/cart", headers=headers).json()["data"]["items"] == []

    assert client.post("/orders", headers=headers).status_code == 400

    mine = client.get("/orders/mine", headers=headers).json()
    assert mine["count"] == 1
    assert client.get(f"/orders/{order['id']}", headers=headers).status_code == 200


def test_order_access_and_admin_update(client, db, user, admin):
    pid = make_product(db)
    client.post("/cart", json={"product_id": pid, "amount": 1}, headers=auth_headers(user))
    order_id = client.post("/orders", headers=auth_headers(user)).json()["data"]["id"]

    stranger = make_user(db, email="eve@example.com")
    assert client.get(f"/orders/{order_id}", headers=auth_headers(stranger)).status_code == 403
    assert client.get("/orders/0123456789abcdef01234567", headers=auth_headers(admin)).status_code == 404

    assert client.patch(f"/orders/{order_id}", json={"status": "delivered"}, headers=auth_headers(user)).status_code == 403
    res = client.patch(
        f"/orders/{order_id}",
        json={"status": "delivered", "payment_intent_id": "pi_1"},
        headers=auth_headers(admin),
    )
    data = res.json()["data"]
    assert data["is_paid"] is True
    assert data["is_delivered"] is True

    stats = client.get("/dashboard/stats", headers=auth_headers(admin)).json()["data"]
    assert stats["total_orders"] == 1
    assert stats["total_revenue"] == data["total"]


def test_product_listing_filters_and_paginates(client, db):
    cat = make_category(db, name="Seating")
    for n in range(12):
        make_product(db, name=f"Chair {n}", price=10 * (n + 1), category_id=cat)
    make_product(db, name="Lamp", price=15)

    res = client.get("/products", params={"category": cat})
    body = res.json()
    assert body["count"] == 10
    assert body["pagination"] == {"next": {"page": 2, "limit": 10}}

    body = client.get("/products", params={"category": cat, "page": 2}).json()
    assert body["count"] == 2
    assert body["pagination"] == {"prev": {"page": 1, "limit": 10}}

    body = client.get("/products", params={"search": "chair", "min_price": 30, "max_price": 50}).json()
    assert sorted(p["price"] for p in body["data"]) == [30, 40, 50]

    body = client.get(f"/products/category/{cat}", params={"limit": 5, "page": 2}).json()
    assert body["count"] == 5
    assert body["pagination"] == {"next": {"page": 3, "limit": 5}, "prev": {"page": 1, "limit": 5}}


def test_catalog_admin_crud(client, db, admin, user):
    headers = auth_headers(admin)
    res = client.post("/categories", json={"name": "Tables"}, headers=headers)
    assert res.status_code == 201
    cat = res.json()["data"]["id"]
    assert client.post("/categories", json={"name": "Tables"}, headers=headers).status_code == 400
    assert client.post("/categories", json={"name": "Other"}, headers=auth_headers(user)).status_code == 403
    assert [c["name"] for c in client.get("/categories").json()["data"]] == ["Tables"]

    payload = {"name": "Desk", "price": 120, "description": "Oak desk", "category_id": cat, "company": "liddy"}
    res = client.post("/products", json=payload, headers=headers)
    assert res.status_code == 201
    product = res.json()["data"]
    assert product["images"] == ["/uploads/example.jpeg"]
    assert product["user_id"] == str(admin["_id"])

    bad = client.post("/products", json={**payload, "company": "acme"}, headers=headers)
    assert bad.status_code == 400

    res = client.patch(f"/products/{product['id']}", json={"price": 99}, headers=headers)
    assert res.json()["data"]["price"] == 99
    assert res.json()["data"]["name"] == "Desk"

    assert client.delete(f"/products/{product['id']}", headers=headers).status_code == 200
    assert client.get(f"/products/{product['id']}").status_code == 404
    assert client.get("/products/not-an-id").status_code == 400


def test_reviews_update_product_rating(client, db, user, admin):
    pid = make_product(db)
    other = make_user(db, email="bob@example.com")
    review = {"product_id": pid, "rating": 4, "title": "Nice", "comment": "Sturdy"}

    res = client.post("/reviews", json=review, headers=auth_headers(user))
    assert res.status_code == 201
    review_id = res.json()["data"]["id"]
    assert client.post("/reviews", json=review, headers=auth_headers(user)).status_code == 400
    client.post("/reviews", json={**review, "rating": 1}, headers=auth_headers(other))
    assert client.get("/reviews").json()["count"] == 2

    product = client.get(f"/products/{pid}").json()["data"]
    assert product["num_of_reviews"] == 2
    assert product["average_rating"] == 2.5

    update = {"rating": 5, "title": "Great", "comment": "Still sturdy"}
    assert client.patch(f"/reviews/{review_id}", json=update, headers=auth_headers(other)).status_code == 403
    client.patch(f"/reviews/{review_id}", json=update, headers=auth_headers(user))
    assert client.get(f"/products/{pid}").json()["data"]["average_rating"] == 3.0

    assert client.delete(f"/reviews/{review_id}", headers=auth_headers(admin)).status_code == 200
    product = client.get(f"/products/{pid}").json()["data"]
    assert (product["num_of_reviews"], product["average_rating"]) == (1, 1.0)


def test_wishlist(client, db, user):
    headers = auth_headers(user)
    first = make_product(db, name="Chair")
    second = make_product(db, name="Lamp")

    assert client.get("/wishlist", headers=headers).json()["count"] == 0
    client.post("/wishlist", json={"product_id": first}, headers=headers)
    client.post("/wishlist", json={"product_id": second}, headers=headers)
    client.post("/wishlist", json={"product_id": first}, headers=headers)

    body = client.get("/wishlist", headers=headers).json()
    assert [p["id"] for p in body["data"]] == [first, second]

    client.delete(f"/wishlist/{first}", headers=headers)
    assert [p["id"] for p in client.get("/wishlist", headers=headers).json()["data"]] == [second]


def test_users_are_admin_only(client, db, user, admin):
    body = client.get("/users", headers=auth_headers(admin)).json()
    assert [u["email"] for u in body["data"]] == ["jane@example.com"]
    assert all("password_hash" not in u for u in body["data"])
    assert client.get(f"/users/{user['_id']}", headers=auth_headers(admin)).status_code == 200
    assert client.get("/users", headers=auth_headers(user)).status_code == 403


def test_product_patch_rejects_nulls_and_unknown_category(client, db, admin, user):
    headers = auth_headers(admin)
    pid = make_product(db, name="Desk", price=120)

    for field in ("price", "name", "company", "inventory", "description"):
        res = client.patch(f"/products/{pid}", json={field: None}, headers=headers)
        assert res.status_code == 400
        assert res.json()["success"] is False
    assert client.patch(f"/products/{pid}", json={"category_id": ""}, headers=headers).status_code == 400
    assert client.patch(
        f"/products/{pid}", json={"category_id": "0123456789abcdef01234567"}, headers=headers
    ).status_code == 404

    stored = db["product"].find_one({})
    assert stored["price"] == 120
    assert stored["name"] == "Desk"

    res = client.post("/cart", json={"product_id": pid, "amount": 1}, headers=auth_headers(user))
    assert res.status_code == 200
    assert res.json()["data"]["total"] == 120


def test_token_with_foreign_subject_is_unauthenticated(client):
    token = jwt.encode({"sub": "not-an-object-id", "email": "x@example.com"}, auth.JWT_SECRET, algorithm=auth.JWT_ALGO)
    res = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 401
    assert res.json()["success"] is False
