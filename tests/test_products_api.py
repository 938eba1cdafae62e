NEW_PRODUCT = {
    "name": "  Cloud Runner ",
    "description": "Light daily trainer",
    "price": 120,
    "brand": "Acme",
    "category": "running",
    "sizes": [{"size": 9, "stock": 4}, {"size": 10, "stock": 2}],
    "images": ["https://img.example.com/cloud.jpg"],
    "averageRating": 5,
    "totalReviews": 99,
}


def test_list_and_filter(client, make_product):
    make_product(name="Racer", brand="Swift", category="running", price=90.0, sizes={10: 1})
    make_product(name="Oxford", brand="Regal", category="formal", price=150.0, sizes={9: 2})
    make_product(name="Court", brand="Swift", category="sports", price=60.0, sizes={9.5: 1})

    everything = client.get("/api/products").json()
    assert everything["count"] == 3

    def names(params):
        return sorted(p["name"] for p in client.get("/api/products", params=params).json()["data"])

    assert names({"brand": "Swift"}) == ["Court", "Racer"]
    assert names({"category": "formal"}) == ["Oxford"]
    assert names({"minPrice": 70, "maxPrice": 200}) == ["Oxford", "Racer"]
    assert names({"size": 9.5}) == ["Court"]
    assert names({"search": "oxf"}) == ["Oxford"]
    assert names({"search": "swift", "maxPrice": 80}) == ["Court"]


def test_search_escapes_regex(client, make_product):
    make_product(name="Runner (2024)")
    make_product(name="Runner 2024")

    res = client.get("/api/products/search", params={"q": "(2024)"}).json()
    assert [p["name"] for p in res["data"]] == ["Runner (2024)"]
    assert client.get("/api/products/search").json() == {"success": True, "data": []}


def test_featured(client, make_product):
    make_product(name="Star", featured=True)
    make_product(name="Plain")
    data = client.get("/api/products/featured").json()["data"]
    assert [p["name"] for p in data] == ["Star"]


def test_get_product(client, make_product):
    pid = make_product(name="Loafer")
    assert client.get(f"/api/products/{pid}").json()["data"]["name"] == "Loafer"
    assert client.get("/api/products/0123456789abcdef01234567").status_code == 404
    assert client.get("/api/products/garbage").status_code == 404


def test_create_requires_admin(client, make_user):
    _, user = make_user()
    assert client.post("/api/products", json=NEW_PRODUCT).status_code == 401
    assert client.post("/api/products", json=NEW_PRODUCT, headers=user).status_code == 403


def test_admin_creates_product_with_zero_rating(client, make_user):
    _, admin = make_user(role="admin")
    res = client.post("/api/products", json=NEW_PRODUCT, headers=admin)

    assert res.status_code == 201
    data = res.json()["data"]
    assert data["name"] == "Cloud Runner"
    assert data["averageRating"] == 0
    assert data["totalReviews"] == 0
    assert data["sizes"][1] == {"size": 10.0, "stock": 2}


def test_create_rejects_bad_product(client, make_user):
    _, admin = make_user(role="admin")
    duplicate_sizes = dict(NEW_PRODUCT, sizes=[{"size": 9, "stock": 1}, {"size": 9, "stock": 2}])
    negative_stock = dict(NEW_PRODUCT, sizes=[{"size": 9, "stock": -1}])
    bad_category = dict(NEW_PRODUCT, category="boots")

    for body in (duplicate_sizes, negative_stock, bad_category):
        res = client.post("/api/products", json=body, headers=admin)
        assert res.status_code == 400
        assert res.json()["success"] is False


def test_update_product(client, make_user, make_product):
    _, admin = make_user(role="admin")
    pid = make_product(name="Old", sizes={10: 1})

    res = client.put(
        f"/api/products/{pid}",
        json={"name": "New", "sizes": [{"size": 10, "stock": 8}]},
        headers=admin,
    )
    data = res.json()["data"]
    assert data["name"] == "New"
    assert data["sizes"] == [{"size": 10.0, "stock": 8}]

    assert client.put(f"/api/products/{pid}", json={}, headers=admin).status_code == 400
    dupes = {"sizes": [{"size": 8, "stock": 1}, {"size": 8, "stock": 1}]}
    assert client.put(f"/api/products/{pid}", json=dupes, headers=admin).status_code == 400
    assert client.put("/api/products/garbage", json={"name": "X"}, headers=admin).status_code == 404


def test_delete_product(client, db, make_user, make_product):
    _, admin = make_user(role="admin")
    pid = make_product()

    assert client.delete(f"/api/products/{pid}", headers=admin).json()["message"] == "Product deleted successfully"
    assert db["product"].count_documents({}) == 0
    assert client.delete(f"/api/products/{pid}", headers=admin).status_code == 404
