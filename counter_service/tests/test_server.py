"""Tests for the counter service HTTP API."""

import pytest
from fastapi.testclient import TestClient

from counter_service import __version__
from counter_service.config import Settings
from counter_service.schemas import InventoryRecord
from counter_service.server import CounterState, app


def test_version():
    """Testing package Version."""
    assert __version__ == "0.1.0"


@pytest.fixture
def counter_state(seed, data_file, mocker):
    """Fresh service state on a seeded document with no remote endpoints."""
    seed({"Carne": 5, "Frango": 5})
    state = CounterState()
    state.configure(Settings(data_file=data_file))
    mocker.patch("counter_service.server.state", state)
    return state


@pytest.fixture
def test_client(counter_state):
    """Create a test client for the FastAPI app."""
    with TestClient(app) as client:
        yield client


def _create(client, customer="Ana", flavor="Carne", qty=2):
    return client.post(
        "/orders", json={"customerName": customer, "items": [{"type": "skewer", "flavor": flavor, "qty": qty}]}
    )


def test_health_check(test_client):
    """Test the health check endpoint."""
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_create_and_get_order(test_client):
    response = _create(test_client)
    assert response.status_code == 201
    order = response.json()
    assert order["status"] == "todo"
    assert order["items"][0]["deliveredQty"] == 0

    assert test_client.get(f"/orders/{order['id']}").json()["customerName"] == "Ana"
    assert [o["id"] for o in test_client.get("/orders").json()] == [order["id"]]

    stock = {record["flavor"]: record["quantity"] for record in test_client.get("/inventory").json()}
    assert stock == {"Carne": 3, "Frango": 5}


def test_create_order_insufficient_stock(test_client):
    response = _create(test_client, qty=6)

    assert response.status_code == 400
    assert response.json()["detail"] == "Insufficient stock for Carne. Available: 5, requested: 6"


def test_unknown_order_is_404(test_client):
    assert test_client.get("/orders/missing").status_code == 404
    assert test_client.put("/orders/missing", json={"customerName": "X"}).status_code == 404
    assert test_client.delete("/orders/missing").status_code == 404


def test_change_status_and_deliver_items(test_client):
    order = _create(test_client).json()
    item_id = order["items"][0]["id"]

    response = test_client.patch(f"/orders/{order['id']}", json={"status": "in_progress"})
    assert response.json()["status"] == "in_progress"

    response = test_client.patch(f"/orders/{order['id']}/items/{item_id}", json={"deliveredQty": 2})
    assert response.status_code == 200
    assert response.json()["deliveredQty"] == 2
    assert test_client.get(f"/orders/{order['id']}").json()["status"] == "done"

    response = test_client.patch(f"/orders/{order['id']}/items/{item_id}", json={"deliveredQty": 3})
    assert response.status_code == 400


def test_update_order_items(test_client):
    order = _create(test_client).json()

    response = test_client.put(
        f"/orders/{order['id']}",
        json={"items": [{"type": "skewer", "flavor": "Frango", "qty": 1}, {"type": "beverage", "beverage": "Suco", "qty": 1}]},
    )

    assert response.status_code == 200
    stock = {record["flavor"]: record["quantity"] for record in test_client.get("/inventory").json()}
    assert stock == {"Carne": 5, "Frango": 4}


def test_delete_item_and_order(test_client):
    order = test_client.post(
        "/orders",
        json={
            "customerName": "Ana",
            "items": [{"type": "skewer", "flavor": "Carne", "qty": 1}, {"type": "skewer", "flavor": "Frango", "qty": 1}],
        },
    ).json()
    first, second = (item["id"] for item in order["items"])

    assert test_client.delete(f"/orders/{order['id']}/items/{first}").status_code == 204
    assert test_client.delete(f"/orders/{order['id']}/items/{second}").status_code == 400
    assert test_client.delete(f"/orders/{order['id']}").status_code == 204
    assert test_client.get("/orders").json() == []


def test_invalid_body_is_422(test_client):
    response = test_client.post("/orders", json={"customerName": "Ana", "items": [{"type": "pizza", "qty": 1}]})
    assert response.status_code == 422


def test_update_inventory(test_client, counter_state, mocker):
    push = mocker.spy(counter_state.coordinator, "push_inventory")
    notify = mocker.spy(counter_state.notifier, "notify")

    response = test_client.patch("/inventory", json={"updates": {"Carne": 12, "Bacon": 2}})

    assert response.status_code == 200
    assert {record["flavor"]: record["quantity"] for record in response.json()} == {"Carne": 12, "Frango": 5}
    push.assert_called_once_with({"Carne": 12})
    assert notify.call_args.args[0].event == "inventory.updated"


def test_realtime_inventory_falls_back_to_local(test_client):
    response = test_client.get("/inventory/realtime")

    assert response.status_code == 200
    assert response.json()["source"] == "local"
    assert len(response.json()["inventory"]) == 2


def test_realtime_inventory_from_remote(test_client, counter_state, mocker):
    mocker.patch.object(
        counter_state.adapter,
        "fetch_inventory",
        mocker.AsyncMock(return_value=[InventoryRecord(flavor="Carne", quantity=9)]),
    )

    body = test_client.get("/inventory/realtime").json()

    assert body["source"] == "external-reloaded"
    assert body["inventory"] == [{"flavor": "Carne", "quantity": 9, "initialQuantity": None}]


def test_products(test_client):
    body = test_client.get("/products").json()

    assert body["flavors"] == ["Carne", "Frango"]
    assert "Coca-Cola" in body["beverages"]


def test_revalidate_without_remote(test_client):
    body = test_client.post("/revalidate").json()

    assert body["success"] is True
    assert body["synced"] == {"inventory": False, "orders": False}
