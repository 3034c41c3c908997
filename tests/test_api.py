import csv
import io
from concurrent.futures import ThreadPoolExecutor

from smartcanteen.errors import ConcurrentUpdate
from smartcanteen.forecast import guard
from smartcanteen.models import Document
from smartcanteen.store import CanteenState
from smartcanteen.utils import tomorrow

CURRY = {
    "id": "1",
    "name": "Chicken Curry & Rice",
    "category": "Main",
    "unit": "Portions",
    "baseQuantity": 100,
    "price": 220,
    "calories": 650,
    "carbonGrams": 1200,
}
PASTA = {"id": "2", "name": "Vegetable Pasta", "baseQuantity": 80, "carbonGrams": 350}


def setup_menu(client, *items):
    for item in items or (CURRY, PASTA):
        assert client.post("/api/menu", json=item).status_code == 201


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["forecast_provider"] == "offline"


def test_menu_crud(client):
    setup_menu(client)
    assert [i["id"] for i in client.get("/api/menu").json()] == ["1", "2"]
    assert client.post("/api/menu", json=CURRY).status_code == 400

    r = client.put("/api/menu/2", json={"base_quantity": 90})
    assert r.status_code == 200
    assert r.json()["baseQuantity"] == 90

    r = client.put("/api/menu/1/flash-sale", json={"enabled": True, "percentage": 30})
    assert r.json()["isFlashSale"] is True
    assert r.json()["flashSalePercentage"] == 30
    assert r.json()["flashSaleActive"] is True

    assert client.delete("/api/menu/2").status_code == 200
    assert client.get("/api/menu/2").status_code == 404
    assert client.put("/api/menu/2", json={"name": "x"}).status_code == 404


def test_surprise_dish_falls_back_offline(client):
    setup_menu(client)
    r = client.post("/api/menu/surprise-dish", json={"leftover_ids": ["1", "2"]})
    assert r.status_code == 201
    body = r.json()
    assert body["name"] == "Chef's Daily Surprise Fusion"
    assert body["isSurpriseDish"] is True
    assert body["ingredients"] == ["Chicken Curry & Rice", "Vegetable Pasta"]
    assert body["flashSaleActive"] is True
    assert client.post("/api/menu/surprise-dish", json={"leftover_ids": ["nope"]}).status_code == 404


def test_audit_submission(client):
    setup_menu(client)
    r = client.post("/api/history", json={
        "menu_item_id": "1", "date": "2023-10-23", "prepared": 100, "consumed": 85,
    })
    assert r.status_code == 201
    assert r.json()["waste"] == 15
    assert r.json()["dayOfWeek"] == "Monday"

    bad = {"menu_item_id": "1", "prepared": 10, "consumed": 20}
    assert client.post("/api/history", json=bad).status_code == 400
    assert client.post("/api/history", json={**bad, "prepared": "lots"}).status_code == 422
    assert client.post("/api/history", json={**bad, "menu_item_id": "9"}).status_code == 404

    assert len(client.get("/api/history").json()) == 1
    summary = client.get("/api/history/summary").json()
    assert summary["total_waste"] == 15


def test_history_hides_removed_items_but_export_keeps_them(client):
    setup_menu(client)
    client.post("/api/history", json={"menu_item_id": "2", "date": "2023-10-23", "prepared": 80, "consumed": 75})
    client.delete("/api/menu/2")

    assert client.get("/api/history").json() == []

    r = client.get("/api/history/export.csv")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0][0] == "Date"
    assert rows[1][1] == "Unknown"


def test_orders_flow(client):
    setup_menu(client)
    r = client.post("/api/orders", json={"items": {"1:LARGE": 2, "2:SMALL": 1}, "item_comments": {"1:LARGE": "extra rice"}})
    assert r.status_code == 201
    order = r.json()
    assert order["status"] == "PREPARING"

    assert client.post("/api/orders", json={"items": {"1": 2}}).status_code == 422
    assert client.post("/api/orders", json={"items": {"1:HUGE": 2}}).status_code == 422
    assert client.post("/api/orders", json={"items": {"1:LARGE": 0}}).status_code == 422
    assert client.post("/api/orders", json={"items": {"7:LARGE": 1}}).status_code == 404

    r = client.post("/api/orders/add-to-last", json={"items": {"1:LARGE": 1}})
    assert r.json()["items"]["1:LARGE"] == 3

    pending = client.get("/api/orders/pending").json()
    assert pending["orders"] == {"1:LARGE": 3, "2:SMALL": 1}
    assert pending["by_item"] == {"1": 3, "2": 1}

    order_id = order["id"]
    assert client.put(f"/api/orders/{order_id}/status", json={"status": "PICKED_UP"}).status_code == 409
    assert client.put(f"/api/orders/{order_id}/status", json={"status": "READY"}).status_code == 200
    assert client.put(f"/api/orders/{order_id}/status", json={"status": "PICKED_UP"}).status_code == 200
    assert client.put("/api/orders/ORD-0/status", json={"status": "READY"}).status_code == 404

    assert client.get("/api/orders").json() == []
    assert [o["id"] for o in client.get("/api/orders/history").json()] == [order_id]
    assert client.get("/api/orders/counts").json()["PICKED_UP"] == 1


def test_add_to_last_without_orders(client):
    setup_menu(client)
    assert client.post("/api/orders/add-to-last", json={"items": {"1:SMALL": 1}}).status_code == 404


def test_preorders_feed_tomorrows_forecast(client):
    setup_menu(client, CURRY)
    r = client.post("/api/orders/preorders", json={"items": {"1:REGULAR": 400}})
    assert r.status_code == 201
    assert client.get("/api/orders/pending", params={"day": "today"}).json()["orders"] == {}

    run = client.post("/api/forecast", json={"target_date": tomorrow().isoformat()}).json()
    assert run["predictions"][0]["predictedQuantity"] == 400


def test_forecast_falls_back_offline(client):
    setup_menu(client, CURRY)
    client.post("/api/history", json={"menu_item_id": "1", "date": "2023-10-23", "prepared": 100, "consumed": 85})

    r = client.post("/api/forecast", json={"target_date": "2023-10-27"})
    assert r.status_code == 200
    run = r.json()
    assert run["source"] == "fallback"
    assert run["fallback_reason"] == "disabled"
    assert run["mode"] == "NORMAL"
    [p] = run["predictions"]
    assert p["menuItemId"] == "1"
    assert p["predictedQuantity"] == 93
    assert p["confidenceScore"] == 0.78


def test_forecast_uses_active_mode(client):
    setup_menu(client, CURRY)
    assert client.put("/api/session/mode", json={"mode": "FEST"}).json()["mode"] == "FEST"
    run = client.post("/api/forecast").json()
    assert run["mode"] == "FEST"
    assert run["predictions"][0]["predictedQuantity"] == 168


def test_forecast_refuses_duplicate_in_flight_request(client):
    setup_menu(client, CURRY)
    with guard.running(tomorrow()):
        r = client.post("/api/forecast")
    assert r.status_code == 409
    assert client.post("/api/forecast").status_code == 200


def test_apply_replaces_the_plan(client):
    setup_menu(client)
    predictions = client.post("/api/forecast").json()["predictions"]

    r = client.post("/api/forecast/apply", json={"predictions": predictions})
    assert r.status_code == 200
    assert set(r.json()) == {"1", "2"}

    only_pasta = [p for p in predictions if p["menuItemId"] == "2"]
    client.post("/api/forecast/apply", json={"predictions": only_pasta})
    plan = client.get("/api/forecast/plan").json()
    assert list(plan) == ["2"]
    assert plan["2"]["quantity"] == only_pasta[0]["predictedQuantity"]

    prep = client.get("/api/kitchen/prep-list").json()
    targets = {row["menu_item_id"]: row["target"] for row in prep}
    assert targets == {"1": 100, "2": only_pasta[0]["predictedQuantity"]}

    assert client.post("/api/forecast/apply", json={"predictions": []}).status_code == 422


def test_waste_closeout(client):
    setup_menu(client)
    client.post("/api/orders", json={"items": {"1:LARGE": 30, "1:SMALL": 10}})

    r = client.post("/api/kitchen/waste", json={"menu_item_id": "1", "quantity": 12})
    assert r.status_code == 201
    entry = r.json()
    assert (entry["prepared"], entry["consumed"], entry["waste"], entry["preOrders"]) == (52, 40, 12, 40)

    assert client.get("/api/orders/pending").json()["orders"] == {}
    assert client.post("/api/kitchen/waste", json={"menu_item_id": "9", "quantity": 1}).status_code == 404

    feed = client.get("/api/notifications", params={"role": "ADMIN"}).json()
    assert feed["notifications"][0]["title"] == "Audit Logged"


def test_session_and_notifications(client):
    setup_menu(client)
    assert client.get("/api/session").json() == {"mode": "NORMAL", "role": "ADMIN"}
    assert client.put("/api/session/role", json={"role": "STUDENT"}).json()["role"] == "STUDENT"
    assert client.put("/api/session/mode", json={"mode": "WEEKEND"}).status_code == 422

    client.post("/api/orders", json={"items": {"1:SMALL": 1}})
    feed = client.get("/api/notifications").json()
    assert feed["role"] == "STUDENT"
    assert feed["unread"] == 1
    assert feed["notifications"][0]["title"] == "Order Confirmed"

    assert client.post("/api/notifications/read").json() == {"marked": 1}
    assert client.get("/api/notifications").json()["unread"] == 0
    assert client.get("/api/notifications", params={"role": "STAFF"}).json()["notifications"] == []


def test_newer_stored_document_is_a_server_error(client, db):
    db.add(Document(name="catalog", schema_version=99, payload=[]))
    db.commit()
    r = client.get("/api/menu")
    assert r.status_code == 500
    assert "catalog" in r.json()["detail"]


def test_menu_update_with_explicit_nulls(client):
    setup_menu(client, {**CURRY, "description": "Mild curry"})

    r = client.put("/api/menu/1", json={"name": None})
    assert r.status_code == 422
    assert client.get("/api/menu/1").json()["name"] == "Chicken Curry & Rice"

    r = client.put("/api/menu/1", json={"description": None})
    assert r.status_code == 200
    assert "description" not in r.json()


def test_overlapping_audits_are_all_kept(client):
    setup_menu(client)

    def submit(i):
        return client.post("/api/history", json={
            "menu_item_id": "1", "date": f"2023-10-{10 + i}", "prepared": 100, "consumed": 80 + i,
        }).status_code

    with ThreadPoolExecutor(max_workers=8) as pool:
        codes = list(pool.map(submit, range(8)))

    assert codes == [201] * 8
    assert sorted(e["consumed"] for e in client.get("/api/history").json()) == list(range(80, 88))


def test_overlapping_orders_keep_all_demand(client):
    setup_menu(client)

    def order(_):
        return client.post("/api/orders", json={"items": {"1:SMALL": 1}}).status_code

    with ThreadPoolExecutor(max_workers=6) as pool:
        codes = list(pool.map(order, range(6)))

    assert codes == [201] * 6
    assert client.get("/api/orders/pending").json()["orders"] == {"1:SMALL": 6}
    assert len(client.get("/api/orders").json()) == 6


def test_lost_write_race_is_a_conflict(client, monkeypatch):
    setup_menu(client)

    def stale_commit(self, db):
        raise ConcurrentUpdate("history")

    monkeypatch.setattr(CanteenState, "commit", stale_commit)
    r = client.post("/api/history", json={"menu_item_id": "1", "prepared": 10, "consumed": 5})
    assert r.status_code == 409
    assert "history" in r.json()["detail"]
