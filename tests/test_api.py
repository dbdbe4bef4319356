from decimal import Decimal
import inspect

from fastapi.routing import APIRoute

from farmsales.core.dependencies import get_current_user
from farmsales.core.security import create_access_token
from farmsales.main import app
from farmsales.models.order import OrderStatus

from conftest import ADMIN, GUARD, OTHER_REP, SALES_REP

ORDERS = "/api/v1/orders"


def create_order(client, seed, **extra):
    payload = {
        "customer_id": seed.customer.id,
        "items": [
            {"product_id": seed.thighs.id, "quantity": "40"},
            {"product_id": seed.eggs.id, "quantity": "60"},
        ],
    }
    payload.update(extra)
    return client.post(ORDERS, json=payload)


def test_create_and_fetch_order(client, seed):
    resp = create_order(client, seed, is_vat_applicable=True)
    assert resp.status_code == 201
    body = resp.json()
    assert body["display_id"] == "SO-000001"
    assert body["status"] == "Pending"
    assert Decimal(body["total_amount"]) == Decimal("18880.00")
    assert Decimal(body["vat_amount"]) == Decimal("2880.00")
    assert len(body["items"]) == 2

    fetched = client.get(f"{ORDERS}/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["display_id"] == "SO-000001"


def test_invalid_payload_is_rejected(client, seed):
    resp = client.post(ORDERS, json={"customer_id": seed.customer.id, "items": []})
    assert resp.status_code == 422


def test_sales_rep_workflow_over_http(client, seed, current_actor):
    order_id = create_order(client, seed).json()["id"]
    assigned = client.post(f"{ORDERS}/{order_id}/assign", json={"sales_rep_id": SALES_REP.id, "vehicle_number": "lb-4521"})
    assert assigned.status_code == 200
    assert assigned.json()["vehicle_number"] == "LB-4521"

    current_actor.actor = SALES_REP
    menu = client.get(f"{ORDERS}/{order_id}/transitions").json()
    assert [option["status"] for option in menu] == ["Assigned", "Products Loaded"]

    loaded = client.post(f"{ORDERS}/{order_id}/transition", json={"status": "Products Loaded"})
    assert loaded.status_code == 200
    assert loaded.json()["order"]["status"] == "Products Loaded"
    assert loaded.json()["receipt"] is None

    current_actor.actor = GUARD
    preview = client.post(f"{ORDERS}/{order_id}/security-check/preview", json={"actual_total": "95"})
    assert preview.status_code == 200
    assert preview.json()["is_valid"] is True
    assert [Decimal(line["actual_quantity"]) for line in preview.json()["lines"]] == [
        Decimal("38.000"), Decimal("57.000")
    ]

    checked = client.post(f"{ORDERS}/{order_id}/transition", json={"status": "Security Checked", "actual_total": "95"})
    assert checked.json()["order"]["security_check_status"] == "completed"

    current_actor.actor = SALES_REP
    client.post(f"{ORDERS}/{order_id}/transition", json={"status": "Departed Farm"})
    delivered = client.post(
        f"{ORDERS}/{order_id}/transition",
        json={"status": "Delivered", "payment": {"amount": "16000.00", "payment_method": "Cash"}},
    )
    assert delivered.status_code == 200
    body = delivered.json()
    assert body["order"]["status"] == "Delivered"
    assert body["order"]["payment_status"] == "fully_paid"
    assert body["receipt"]["receipt_no"] == "SO-000001-P1"
    assert Decimal(body["receipt"]["remaining_balance"]) == Decimal("0")

    payments = client.get(f"{ORDERS}/{order_id}/payments").json()
    assert [p["receipt_no"] for p in payments] == ["SO-000001-P1"]


def test_invalid_transition_returns_conflict_body(client, make_order, current_actor):
    order = make_order(status=OrderStatus.ASSIGNED)
    current_actor.actor = SALES_REP

    resp = client.post(f"{ORDERS}/{order.id}/transition", json={"status": "Departed Farm"})

    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] is True
    assert body["error_code"] == "INVALID_ORDER_STATUS_TRANSITION"
    assert "Assigned" in body["message"]


def test_tolerance_failure_is_unprocessable(client, make_order, current_actor):
    order = make_order(status=OrderStatus.PRODUCTS_LOADED)
    current_actor.actor = GUARD

    resp = client.post(f"{ORDERS}/{order.id}/transition", json={"status": "Security Checked", "actual_total": "140"})

    assert resp.status_code == 422
    assert resp.json()["error_code"] == "TOLERANCE_EXCEEDED"
    assert resp.json()["field"] == "actual_total"


def test_other_reps_order_is_forbidden(client, make_order, current_actor):
    order = make_order(status=OrderStatus.ASSIGNED)
    current_actor.actor = OTHER_REP
    resp = client.get(f"{ORDERS}/{order.id}")
    assert resp.status_code == 403
    assert resp.json()["error_code"] == "FORBIDDEN"


def test_list_orders_filters_by_status(client, make_order):
    make_order()
    departed = make_order(status=OrderStatus.DEPARTED_FARM)

    resp = client.get(ORDERS, params={"status": "Departed Farm"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert [o["id"] for o in body["items"]] == [departed.id]


def test_final_weights_preview(client, make_order, seed, current_actor):
    order = make_order(lines=[(seed.thighs, Decimal("10"))], status=OrderStatus.DEPARTED_FARM)
    current_actor.actor = SALES_REP

    resp = client.post(
        f"{ORDERS}/{order.id}/final-weights/preview",
        json={"weights": {str(order.items[0].id): "9.5"}},
    )

    assert resp.status_code == 200
    assert Decimal(resp.json()["new_total"]) == Decimal("950.00")
    assert Decimal(resp.json()["difference"]) == Decimal("-50.00")


def test_returns_endpoints(client, make_order, current_actor):
    order = make_order(status=OrderStatus.DELIVERED)
    item_id = order.items[0].id
    current_actor.actor = SALES_REP

    created = client.post(f"/api/v1/order-items/{item_id}/returns", json={"quantity": "1.5", "reason": "Damaged"})
    assert created.status_code == 201
    assert Decimal(created.json()["returned_quantity"]) == Decimal("1.5")

    too_much = client.post(f"/api/v1/order-items/{item_id}/returns", json={"quantity": "100", "reason": "Damaged"})
    assert too_much.status_code == 422

    listed = client.get(f"/api/v1/order-items/{item_id}/returns")
    assert len(listed.json()) == 1


def test_returns_need_a_delivered_order_and_its_rep(client, make_order, current_actor):
    pending_item = make_order().items[0].id
    delivered_item = make_order(status=OrderStatus.DELIVERED).items[0].id
    body = {"quantity": "1", "reason": "Damaged"}

    current_actor.actor = OTHER_REP
    assert client.post(f"/api/v1/order-items/{delivered_item}/returns", json=body).status_code == 403

    current_actor.actor = GUARD
    assert client.get(f"/api/v1/order-items/{delivered_item}/returns").status_code == 403

    current_actor.actor = ADMIN
    assert client.post(f"/api/v1/order-items/{pending_item}/returns", json=body).status_code == 422


def test_on_demand_sale_and_group_payment(client, seed, current_actor):
    current_actor.actor = SALES_REP
    sale = client.post("/api/v1/on-demand/sales", json={
        "customer_id": seed.customer.id,
        "lines": [
            {"product_id": seed.thighs.id, "quantity": "3"},
            {"product_id": seed.eggs.id, "quantity": "3.5"},
        ],
    })
    assert sale.status_code == 201
    receipt_no = sale.json()[0]["receipt_no"]

    paid = client.post(
        f"/api/v1/on-demand/groups/{receipt_no}/payments",
        json={"amount": "333.33", "payment_method": "Cash"},
    )
    assert paid.status_code == 200
    assert paid.json()["receipt_no"] == f"{receipt_no}-P1"

    group = client.get(f"/api/v1/on-demand/groups/{receipt_no}").json()
    assert Decimal(group["total_amount"]) == Decimal("1000.00")
    assert Decimal(group["collected_amount"]) == Decimal("333.33")
    assert group["payment_status"] == "partially_paid"

    missing = client.get("/api/v1/on-demand/groups/ODR-20240315-FFFFFF")
    assert missing.status_code == 404


def test_products_and_customers(client):
    created = client.post("/api/v1/products", json={
        "name": "Whole Chicken",
        "unit_type": "Packs",
        "weight_per_pack_kg": "1.8",
        "price": "1250.00",
        "quantity": "40",
        "category_code": "wc",
    })
    assert created.status_code == 201
    product = created.json()
    assert product["category_code"] == "WC"

    assert client.get(f"/api/v1/products/{product['id']}").status_code == 200
    assert [p["name"] for p in client.get("/api/v1/products").json()] == ["Whole Chicken"]

    no_factor = client.post("/api/v1/products", json={"name": "Box", "unit_type": "Packs", "price": "10"})
    assert no_factor.status_code == 422

    customer = client.post("/api/v1/customers", json={"name": "Hill Hotel", "email": "orders@hillhotel.lk"})
    assert customer.status_code == 201
    fetched = client.get(f"/api/v1/customers/{customer.json()['id']}")
    assert fetched.json()["email"] == "orders@hillhotel.lk"

    assert client.get("/api/v1/customers/9999").status_code == 404


def test_catalog_changes_need_a_manager(client, current_actor):
    current_actor.actor = SALES_REP
    resp = client.post("/api/v1/customers", json={"name": "Hill Hotel"})
    assert resp.status_code == 403


def test_requests_need_a_token(client, seed, make_order):
    order = make_order(status=OrderStatus.ASSIGNED)
    app.dependency_overrides.pop(get_current_user)

    assert client.get(f"{ORDERS}/{order.id}").status_code == 401
    assert client.get(f"{ORDERS}/{order.id}", headers={"Authorization": "Bearer not-a-token"}).status_code == 401

    token = create_access_token(SALES_REP.id, SALES_REP.role)
    resp = client.get(f"{ORDERS}/{order.id}", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.headers["X-Request-Id"]

    admin_token = create_access_token(ADMIN.id, ADMIN.role)
    resp = client.get(ORDERS, headers={"Authorization": f"Bearer {admin_token}"})
    assert resp.json()["total"] == 1


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["database"] == "up"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_route_handlers_run_in_the_threadpool():
    # handlers do blocking database work, so none may be a coroutine
    handlers = [route.endpoint for route in app.routes if isinstance(route, APIRoute)]
    assert handlers
    assert not [h.__name__ for h in handlers if inspect.iscoroutinefunction(h)]
