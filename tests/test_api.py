"""
Tests for the HTTP surface: authentication, action dispatch and error shapes.
"""
import pytest

from labtrack.models.sheets import DELETE_LOG, ITEMS, SETTINGS
from labtrack.schemas.notification import Priority
from labtrack.services.ledger_service import list_records

pytestmark = pytest.mark.api

ACTIONS_URL = "/api/v1/actions"
DATA_URL = "/api/v1/data"


def _post(client, action, token="member-token", **payload):
    return client.post(ACTIONS_URL, json={"token": token, "action": action, **payload})


def _add_microscope(client, token="member-token"):
    response = _post(client, "addItem", token, item={"id": "1", "name": "Microscope", "qty": 1, "minQty": 0})
    assert response.status_code == 200
    return response.json()


class TestAuthentication:

    def test_missing_token_rejected_before_action(self, client, verifier, store):
        response = client.post(ACTIONS_URL, json={"action": "noSuchThing"})
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert verifier.calls == []

    def test_non_json_body(self, client):
        response = client.post(ACTIONS_URL, content=b"not json", headers={"content-type": "application/json"})
        assert response.status_code == 401

    def test_outsider_domain(self, client, store):
        response = _post(client, "addItem", "outsider-token", item={"name": "Scope"})
        assert response.status_code == 401
        assert store.rows(ITEMS) == []

    def test_forged_token(self, client):
        response = client.get(DATA_URL, params={"token": "forged"})
        assert response.status_code == 401
        assert set(response.json()) == {"error", "detail"}

    def test_bearer_header(self, client):
        response = client.get(DATA_URL, headers={"Authorization": "Bearer admin-token"})
        assert response.status_code == 200
        assert response.json()["userRole"] == "admin"


class TestSnapshot:

    def test_member_snapshot(self, client):
        _add_microscope(client)
        data = client.get(DATA_URL, params={"token": "member-token"}).json()
        assert data["userRole"] == "member"
        assert [it["name"] for it in data["items"]] == ["Microscope"]
        assert data["items"][0]["usedBy"] == []
        assert set(data) >= {"items", "deliveries", "checkouts", "orders", "deleteLog", "settings"}

    def test_no_token(self, client):
        assert client.get(DATA_URL).status_code == 401


class TestActions:

    def test_add_item_notifies(self, client, transport):
        body = _add_microscope(client)
        assert body == {"ok": True, "id": "1"}
        assert transport.titles == ["New Item Added: Microscope"]

    def test_checkout_and_return(self, client, store, transport):
        _add_microscope(client)
        checkout_id = _post(client, "addCheckout", checkout={"itemId": "1", "item": "Microscope", "user": "alice"}).json()["id"]
        assert list_records(store, ITEMS)[0]["status"] == "In Use"

        assert _post(client, "returnItem", checkoutId=checkout_id).json() == {"ok": True}
        assert list_records(store, ITEMS)[0]["status"] == "Available"

        again = _post(client, "returnItem", checkoutId=checkout_id).json()
        assert again == {"ok": True, "alreadyReturned": True}
        assert transport.titles.count("Item Returned: Microscope") == 1

    def test_order_flow(self, client, transport):
        order_id = _post(client, "addOrder", order={"item": "Ethanol", "qty": 2, "unit": "L", "urgency": "High"}).json()["id"]
        assert transport.sent[-1].priority == Priority.HIGH
        assert _post(client, "updateOrderStatus", orderId=order_id, status="Ordered").json() == {"ok": True}
        assert transport.titles[-1] == "Order Status Updated: Ethanol"

    def test_delivery(self, client, transport):
        body = _post(client, "addDelivery", delivery={"item": "Gloves", "qty": 5, "from": "Fisher"}).json()
        assert body["ok"] and body["id"].startswith("DL-")
        assert transport.titles == ["Delivery Received: Gloves"]

    def test_important_mode_filters(self, client, transport, set_mode):
        set_mode("important")
        _add_microscope(client)
        assert transport.sent == []
        assert _post(client, "deleteItem", "admin-token", itemId="1").json() == {"ok": True}
        assert transport.titles == ["Item Deleted: Microscope"]

    def test_admin_deletes_item(self, client, store):
        _add_microscope(client)
        _post(client, "deleteItem", "admin-token", itemId="1")
        assert store.rows(ITEMS) == []
        assert list_records(store, DELETE_LOG)[0]["deletedBy"] == "Boss"

    def test_admin_saves_settings(self, client, store):
        response = _post(client, "saveSettings", "admin-token", key="slack_mode", value="digest")
        assert response.json() == {"ok": True}
        assert ["slack_mode", "digest"] in store.rows(SETTINGS)

    def test_send_digest(self, client, transport):
        body = _post(client, "sendDigest", "admin-token").json()
        assert body["ok"]
        assert body["digest"]["delivered"] is True
        assert transport.titles[0].startswith("Daily Digest")


class TestErrors:

    @pytest.mark.parametrize("action,payload", [
        ("deleteItem", {"itemId": "1"}),
        ("deleteOrder", {"orderId": "PO-1"}),
        ("saveSettings", {"key": "admins", "value": ["alice@lab.test"]}),
        ("sendDigest", {}),
    ])
    def test_member_forbidden(self, client, store, transport, action, payload):
        _add_microscope(client)
        before = {name: store.rows(name) for name in (ITEMS, SETTINGS, DELETE_LOG)}
        sent = len(transport.sent)
        response = _post(client, action, **payload)
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
        assert {name: store.rows(name) for name in (ITEMS, SETTINGS, DELETE_LOG)} == before
        assert len(transport.sent) == sent

    def test_not_found(self, client):
        response = _post(client, "updateItem", item={"id": "404", "name": "x"})
        assert response.status_code == 404
        assert response.json() == {"error": "NotFound", "detail": "No item with id 404"}

    def test_unknown_action(self, client):
        response = _post(client, "launchRocket")
        assert response.status_code == 422
        assert response.json() == {"error": "ValidationFailure", "detail": "Unknown action: launchRocket"}

    def test_missing_action(self, client):
        assert _post(client, None).status_code == 422

    @pytest.mark.parametrize("action", [["addItem"], {"name": "addItem"}, 7])
    def test_non_string_action(self, client, store, action):
        response = _post(client, action, item={"name": "Scope"})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationFailure"
        assert store.rows(ITEMS) == []

    def test_used_by_not_settable_on_add(self, client, store):
        _post(client, "addItem", item={"id": "1", "name": "Scope", "usedBy": ["bob"]})
        assert list_records(store, ITEMS)[0]["usedBy"] == []

    def test_invalid_payload(self, client, store):
        response = _post(client, "addItem", item={"name": "Scope", "qty": -3})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationFailure"
        assert store.rows(ITEMS) == []

    def test_missing_payload_section(self, client):
        response = _post(client, "returnItem")
        assert response.status_code == 422
        assert "checkoutId" in response.json()["detail"]

    def test_duplicate_id(self, client):
        _add_microscope(client)
        response = _post(client, "addItem", item={"id": "1", "name": "Other"})
        assert response.status_code == 422

    def test_unexpected_error_is_generic(self, client, monkeypatch):
        from labtrack.services import ledger_service

        def boom(*args, **kwargs):
            raise RuntimeError("disk on fire")
        monkeypatch.setattr(ledger_service, "add_delivery", boom)
        response = _post(client, "addDelivery", delivery={"item": "Gloves"})
        assert response.status_code == 500
        assert response.json() == {"error": "ServerError", "detail": "Internal server error"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
