def _add(client, headers, product_id, size=10, quantity=1):
    return client.post(
        "/api/cart/add",
        json={"productId": str(product_id), "size": size, "quantity": quantity},
        headers=headers,
    )


def test_cart_requires_login(client):
    assert client.get("/api/cart").status_code == 401


def test_new_user_gets_empty_cart(client, make_user):
    _, headers = make_user()
    res = client.get("/api/cart", headers=headers)
    assert res.json() == {"success": True, "data": []}


def test_add_merges_same_product_and_size(client, make_user, make_product):
    _, headers = make_user()
    pid = make_product(name="Court")

    _add(client, headers, pid, quantity=1)
    _add(client, headers, pid, quantity=2)
    items = _add(client, headers, pid, size=11).json()["data"]

    assert len(items) == 2
    first = next(i for i in items if i["size"] == 10)
    assert first["quantity"] == 3
    assert first["product"]["name"] == "Court"


def test_add_unknown_product(client, make_user):
    _, headers = make_user()
    res = _add(client, headers, "0123456789abcdef01234567")
    assert res.status_code == 404
    assert res.json()["message"] == "Product not found"


def test_add_rejects_zero_quantity(client, make_user, make_product):
    _, headers = make_user()
    assert _add(client, headers, make_product(), quantity=0).status_code == 400


def test_update_and_remove(client, make_user, make_product):
    _, headers = make_user()
    pid = make_product()
    _add(client, headers, pid, size=10)
    _add(client, headers, pid, size=11)

    updated = client.put(
        "/api/cart/update",
        json={"productId": str(pid), "size": 10, "quantity": 4},
        headers=headers,
    ).json()["data"]
    assert [i["quantity"] for i in updated if i["size"] == 10] == [4]

    dropped = client.put(
        "/api/cart/update",
        json={"productId": str(pid), "size": 10, "quantity": 0},
        headers=headers,
    ).json()["data"]
    assert [i["size"] for i in dropped] == [11]

    removed = client.request(
        "DELETE", "/api/cart/remove", json={"productId": str(pid), "size": 11}, headers=headers,
    ).json()["data"]
    assert removed == []


def test_clear(client, db, make_user, make_product):
    _, headers = make_user()
    _add(client, headers, make_product())

    assert client.delete("/api/cart/clear", headers=headers).json() == {"success": True, "data": []}
    assert client.get("/api/cart", headers=headers).json()["data"] == []
    assert db["cart"].count_documents({}) == 1


def test_cart_shows_deleted_product_as_null(client, db, make_user, make_product):
    _, headers = make_user()
    pid = make_product()
    _add(client, headers, pid)
    db["product"].delete_one({"_id": pid})

    [item] = client.get("/api/cart", headers=headers).json()["data"]
    assert item["product"] is None


def test_update_without_cart(client, make_user, make_product):
    _, headers = make_user()
    res = client.put(
        "/api/cart/update",
        json={"productId": str(make_product()), "size": 10, "quantity": 2},
        headers=headers,
    )
    assert res.status_code == 404
