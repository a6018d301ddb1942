import pytest

from marketplace.services.checkout import place_order


@pytest.fixture
def place(session_factory, add_product, add_to_cart):
    def _place(buyer_id="buyer-1", seller_id="seller-1", price_cents=1000):
        pid = add_product(price_cents=price_cents, seller_id=seller_id)
        add_to_cart(buyer_id, pid, 1)
        with session_factory() as db:
            return place_order(db, buyer_id=buyer_id, shipping_address="İzmir")
    return _place


def test_list_orders_newest_first_with_pagination(client, auth_headers, place):
    ids = [place(price_cents=100 * (i + 1)).id for i in range(3)]
    place(buyer_id="buyer-2")

    resp = client.get("/orders", params={"limit": 2}, headers=auth_headers())

    assert resp.status_code == 200
    body = resp.json()
    assert [o["id"] for o in body["orders"]] == [ids[2], ids[1]]
    assert body["pagination"] == {
        "currentPage": 1,
        "totalPages": 2,
        "totalCount": 3,
        "hasNextPage": True,
        "hasPrevPage": False,
    }

    page2 = client.get("/orders", params={"limit": 2, "page": 2}, headers=auth_headers()).json()
    assert [o["id"] for o in page2["orders"]] == [ids[0]]
    assert page2["pagination"]["hasPrevPage"] is True


def test_list_orders_status_filter(client, auth_headers, place):
    place()
    confirmed = place()
    client.put(f"/orders/{confirmed.id}/status", json={"status": "Confirmed"}, headers=auth_headers("seller-1"))

    body = client.get("/orders", params={"status": "Confirmed"}, headers=auth_headers()).json()

    assert [o["id"] for o in body["orders"]] == [confirmed.id]


def test_order_detail_shape(client, auth_headers, place):
    order = place(price_cents=1050)

    resp = client.get(f"/orders/{order.id}", headers=auth_headers())

    assert resp.status_code == 200
    body = resp.json()
    assert body["orderNumber"] == order.order_number
    assert body["buyerId"] == "buyer-1"
    assert body["sellerId"] == "seller-1"
    assert body["subtotal"] == 10.5
    assert body["platformFee"] == 58.0
    assert body["total"] == 68.5
    assert body["payment"] == {"method": "pending", "status": "pending"}
    assert body["items"][0]["price"] == 10.5


@pytest.mark.parametrize("uid, expected", [("buyer-1", 200), ("seller-1", 200), ("someone-else", 403)])
def test_order_detail_access(client, auth_headers, place, uid, expected):
    order = place()
    assert client.get(f"/orders/{order.id}", headers=auth_headers(uid)).status_code == expected


def test_order_detail_not_found(client, auth_headers):
    assert client.get("/orders/999", headers=auth_headers()).status_code == 404


def test_seller_updates_status(client, auth_headers, place):
    order = place()

    resp = client.put(f"/orders/{order.id}/status", json={"status": "Shipped"}, headers=auth_headers("seller-1"))

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Order status updated successfully"
    assert body["order"]["status"] == "Shipped"


def test_buyer_cannot_update_status(client, auth_headers, place):
    order = place()

    resp = client.put(f"/orders/{order.id}/status", json={"status": "Delivered"}, headers=auth_headers())

    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"


def test_invalid_status_is_rejected(client, auth_headers, place):
    order = place()

    resp = client.put(f"/orders/{order.id}/status", json={"status": "Lost"}, headers=auth_headers("seller-1"))

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "invalid_status"
    assert "Pending" in body["details"]["valid_statuses"]


def test_admin_updates_any_order(client, as_admin, place):
    order = place()
    resp = client.put(f"/orders/{order.id}/status", json={"status": "Cancelled"})
    assert resp.status_code == 200
    assert resp.json()["order"]["status"] == "Cancelled"


def test_admin_update_missing_order(client, as_admin):
    resp = client.put("/orders/999/status", json={"status": "Cancelled"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "order_not_found"


def test_admin_lists_all_orders(client, as_admin, place):
    place()
    place(buyer_id="buyer-2")
    resp = client.get("/admin/orders")
    assert resp.status_code == 200
    assert len(resp.json()) == 2


def test_non_admin_cannot_list_all_orders(client, auth_headers):
    assert client.get("/admin/orders", headers=auth_headers()).status_code == 403
