def test_root_and_status(http):
    assert http.get("/").json() == {"message": "Storefront Data API is running"}
    assert http.get("/api").json()["status"] == "ok"


def test_full_database_dump(seeded, http):
    res = http.get("/api/db")
    assert res.status_code == 200
    body = res.json()
    assert len(body["products"]) == 2
    assert body["orders"] == []


def test_diagnostics(seeded, http):
    body = http.get("/test").json()
    assert body["connection_status"] == "Connected"
    assert "users" in body["collections"]


def test_list_with_equality_filter(seeded, http):
    res = http.get("/users", params={"email": "asha@example.com"})
    assert res.status_code == 200
    assert [u["id"] for u in res.json()] == [1]


def test_list_with_search(seeded, http):
    assert [p["name"] for p in http.get("/products", params={"q": "foot"}).json()] == ["Football"]


def test_get_missing_record_is_404(seeded, http):
    res = http.get("/products/99")
    assert res.status_code == 404
    assert res.json()["detail"] == "Not found"


def test_unknown_collection_is_404(http):
    res = http.get("/coupons")
    assert res.status_code == 404
    assert res.json()["detail"] == "Collection not found"


def test_post_assigns_id_and_returns_201(seeded, http):
    res = http.post("/products", json={"name": "Gloves", "price": 300})
    assert res.status_code == 201
    assert res.json()["id"] == 3
    assert http.get("/products/3").json()["name"] == "Gloves"


def test_post_duplicate_id_conflicts(seeded, http):
    res = http.post("/products", json={"id": 1, "name": "Dup"})
    assert res.status_code == 409


def test_put_replaces_and_keeps_id(seeded, http):
    res = http.put("/products/1", json={"id": 555, "name": "Bat v2", "price": 1300})
    assert res.status_code == 200
    body = res.json()
    assert body["id"] == 1
    assert body["name"] == "Bat v2"
    assert "brand" not in body


def test_patch_merges_fields(seeded, http):
    res = http.patch("/users/1", json={"isBlock": True})
    assert res.status_code == 200
    user = http.get("/users/1").json()
    assert user["isBlock"] is True
    assert user["email"] == "asha@example.com"


def test_patch_missing_is_404(seeded, http):
    assert http.patch("/orders/123", json={"status": "Shipped"}).status_code == 404


def test_delete(seeded, http):
    assert http.delete("/products/2").json() == {"ok": True}
    assert http.get("/products/2").status_code == 404
    assert http.delete("/products/2").status_code == 404


def test_corrupt_database_returns_500(store, http):
    with open(store.path, "w") as f:
        f.write("{oops")
    res = http.get("/products")
    assert res.status_code == 500
    assert res.json() == {"error": "invalid json"}


def test_failed_write_returns_500_and_stores_nothing(seeded, http, monkeypatch):
    def read_only(src, dst):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr("database.os.replace", read_only)
    res = http.post("/products", json={"name": "Shin Pads"})
    assert res.status_code == 500
    assert res.json() == {"error": "could not write database"}
    assert len(http.get("/products").json()) == 2
