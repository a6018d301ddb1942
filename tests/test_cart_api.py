def test_empty_cart(client, auth_headers):
    resp = client.get("/cart", headers=auth_headers())
    assert resp.status_code == 200
    assert resp.json() == {"user_id": "buyer-1", "items": [], "total_quantity": 0, "total": 0.0}


def test_add_accumulates_quantity(client, auth_headers, add_product):
    pid = add_product(name="Fincan", price_cents=250, quantity=8)

    client.post("/cart/items", json={"product_id": pid, "quantity": 2}, headers=auth_headers())
    resp = client.post("/cart/items", json={"product_id": pid, "quantity": 3}, headers=auth_headers())

    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == [{
        "product_id": pid,
        "name": "Fincan",
        "price": 2.5,
        "stock": 8,
        "availability": True,
        "seller_id": "seller-1",
        "qty": 5,
        "subtotal": 12.5,
    }]
    assert body["total_quantity"] == 5
    assert body["total"] == 12.5


def test_add_unknown_product(client, auth_headers):
    resp = client.post("/cart/items", json={"product_id": 404, "quantity": 1}, headers=auth_headers())
    assert resp.status_code == 404


def test_add_rejects_zero_quantity(client, auth_headers, add_product):
    pid = add_product()
    resp = client.post("/cart/items", json={"product_id": pid, "quantity": 0}, headers=auth_headers())
    assert resp.status_code == 422


def test_update_and_remove_item(client, auth_headers, add_product):
    pid = add_product(price_cents=100)
    client.post("/cart/items", json={"product_id": pid}, headers=auth_headers())

    updated = client.put(f"/cart/items/{pid}", json={"quantity": 4}, headers=auth_headers())
    assert updated.json()["items"][0]["qty"] == 4

    removed = client.delete(f"/cart/items/{pid}", headers=auth_headers())
    assert removed.status_code == 200
    assert removed.json()["items"] == []

    assert client.delete(f"/cart/items/{pid}", headers=auth_headers()).status_code == 404
    assert client.put(f"/cart/items/{pid}", json={"quantity": 1}, headers=auth_headers()).status_code == 404


def test_carts_are_per_user(client, auth_headers, add_product):
    pid = add_product()
    client.post("/cart/items", json={"product_id": pid}, headers=auth_headers("buyer-1"))
    assert client.get("/cart", headers=auth_headers("buyer-2")).json()["items"] == []


def test_clear_cart(client, auth_headers, add_product):
    pid = add_product()
    client.post("/cart/items", json={"product_id": pid}, headers=auth_headers())

    resp = client.delete("/cart", headers=auth_headers())

    assert resp.status_code == 204
    assert client.get("/cart", headers=auth_headers()).json()["items"] == []


def test_add_retries_when_line_was_inserted_concurrently(client, auth_headers, add_product, add_to_cart, monkeypatch):
    from marketplace.routers import carts

    pid = add_product(price_cents=100)
    # Another request inserted the line after this one looked for it
    add_to_cart("buyer-1", pid, 2)
    real_find_line = carts._find_line
    calls = []

    def stale_then_real(db, uid, product_id):
        calls.append(product_id)
        return None if len(calls) == 1 else real_find_line(db, uid, product_id)

    monkeypatch.setattr(carts, "_find_line", stale_then_real)

    resp = client.post("/cart/items", json={"product_id": pid, "quantity": 3}, headers=auth_headers())

    assert resp.status_code == 200
    assert resp.json()["items"][0]["qty"] == 5
    assert len(calls) == 2
