"""
HTTP API tests.

Verifies:
- Business-rule failures map to their status codes (400/403/404/409)
- Money is returned as 2-decimal strings
- A full visit can be booked, served, paid with split tenders and closed
"""

import pytest


def _book(client, services=None, **extra):
    body = {
        "customer_ref": "C-1",
        "professional_ref": "P-7",
        "start_at": "2026-03-02T14:00:00Z",
        "services": services if services is not None else ["SVC-CUT"],
    }
    body.update(extra)
    resp = client.post("/api/appointments", json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["appointment"]


def _act(client, appointment_id, action, **extra):
    return client.post(f"/api/appointments/{appointment_id}/transitions", json=dict(action=action, **extra))


def _walk(client, appointment_id, *actions):
    appointment = None
    for action in actions:
        resp = _act(client, appointment_id, action)
        assert resp.status_code == 200, (action, resp.get_json())
        appointment = resp.get_json()["appointment"]
    return appointment


# =============================================================================
# SYSTEM / REFERENCE DATA
# =============================================================================


class TestSystem:
    def test_health_degraded_without_instruments(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "degraded"

    def test_health_healthy(self, client, instruments):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["active_instruments"] == 3

    def test_list_instruments(self, client, instruments):
        active = client.get("/api/payment-instruments").get_json()["instruments"]
        assert {i["name"] for i in active} == {"Cash", "PIX", "Credit card"}

        everything = client.get("/api/payment-instruments?include_inactive=true").get_json()["instruments"]
        assert len(everything) == 4
        credit = next(i for i in everything if i["name"] == "Credit card")
        assert credit["percentage_fee"] == "3.00"
        assert credit["fixed_fee"] == "0.50"


# =============================================================================
# APPOINTMENTS
# =============================================================================


class TestAppointments:
    def test_book_captures_prices(self, client, coordinator):
        appointment = _book(client, ["SVC-CUT", {"service_ref": "SVC-COLOR", "price": 99.9}])

        assert appointment["status"] == "CREATED"
        assert [s["price_at_booking"] for s in appointment["services"]] == ["50.00", "99.90"]
        assert appointment["total_price"] == "149.90"
        assert appointment["end_at"] == "2026-03-02T16:15:00Z"

    def test_book_validation(self, client, coordinator):
        resp = client.post("/api/appointments", json={"customer_ref": "C-1", "professional_ref": "P-7"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_INPUT"

        resp = client.post("/api/appointments", json={
            "customer_ref": "C-1",
            "professional_ref": "P-7",
            "start_at": "2026-03-02T14:00:00Z",
            "services": ["SVC-NOPE"],
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "UNKNOWN_CATALOG_ITEM"

        resp = client.post("/api/appointments", json=["not", "an", "object"])
        assert resp.status_code == 400

    def test_action_menu_by_role(self, client, coordinator):
        appointment = _book(client)
        url = f"/api/appointments/{appointment['id']}/actions"

        assert client.get(url).get_json()["actions"] == ["confirm", "cancel", "edit", "open_ledger"]
        assert client.get(url + "?role=PROFESSIONAL").get_json()["actions"] == ["edit", "open_ledger"]
        assert client.get(url + "?role=JANITOR").status_code == 400

    @pytest.mark.parametrize(
        "actions,action,body,status,code",
        [
            ([], "check_in", {}, 409, "INVALID_TRANSITION"),
            ([], "teleport", {}, 409, "INVALID_TRANSITION"),
            (["confirm"], "cancel", {"role": "PROFESSIONAL"}, 403, "ACTION_NOT_PERMITTED"),
            (
                ["confirm", "check_in", "start_service", "finish_service"],
                "complete_without_settlement",
                {"role": "RECEPTION"},
                403,
                "ACTION_NOT_PERMITTED",
            ),
            (["confirm", "no_show"], "reschedule", {}, 400, "INVALID_INPUT"),
            ([], "confirm", {"allow_debt": "maybe"}, 400, "INVALID_INPUT"),
        ],
    )
    def test_transition_failures(self, client, coordinator, actions, action, body, status, code):
        appointment = _book(client)
        _walk(client, appointment["id"], *actions)

        resp = _act(client, appointment["id"], action, **body)

        assert resp.status_code == status
        assert resp.get_json()["code"] == code

    def test_transition_requires_action_and_appointment(self, client, coordinator):
        appointment = _book(client)
        assert client.post(f"/api/appointments/{appointment['id']}/transitions", json={}).status_code == 400

        resp = _act(client, 9999, "confirm")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"
        assert client.get("/api/appointments/9999").status_code == 404

    def test_reschedule_returns_created(self, client, coordinator):
        appointment = _book(client)
        _walk(client, appointment["id"], "cancel")

        resp = _act(client, appointment["id"], "reschedule", new_start="2026-03-09T10:00:00Z")

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["from_status"] == "CANCELED"
        assert data["to_status"] == "CREATED"
        assert data["appointment"]["rescheduled_from_id"] == appointment["id"]
        assert data["appointment"]["start_at"] == "2026-03-09T10:00:00Z"

    def test_edit_through_transitions(self, client, coordinator):
        appointment = _book(client)

        resp = _act(client, appointment["id"], "edit", changes={"start_at": "2026-03-02T15:00:00Z"})

        assert resp.status_code == 200
        data = resp.get_json()["appointment"]
        assert data["start_at"] == "2026-03-02T15:00:00Z"
        assert data["end_at"] == "2026-03-02T15:45:00Z"

    def test_open_commanda_for_appointment(self, client, coordinator):
        appointment = _book(client)
        url = f"/api/appointments/{appointment['id']}/commanda"

        first = client.post(url, json={})
        assert first.status_code == 201
        assert first.get_json()["created"] is True
        assert first.get_json()["summary"]["total"] == "50.00"

        second = client.post(url, json={})
        assert second.status_code == 200
        assert second.get_json()["commanda"]["id"] == first.get_json()["commanda"]["id"]


# =============================================================================
# COMMANDAS
# =============================================================================


class TestCommandas:
    def test_full_visit_with_split_tenders(self, client, coordinator, instruments):
        appointment = _book(client)
        served = _walk(client, appointment["id"], "confirm", "check_in", "start_service", "finish_service")
        assert served["status"] == "AWAITING_PAYMENT"
        base = f"/api/commandas/{served['commanda_id']}"

        commanda = client.get(base).get_json()
        assert commanda["summary"]["total"] == "50.00"
        assert len(commanda["commanda"]["items"]) == 1

        resp = client.post(base + "/payments", json={"instrument_id": instruments["credit"], "amount": 20})
        assert resp.status_code == 201
        payment = resp.get_json()["payment"]
        assert payment["fee_amount"] == "1.10"
        assert payment["net_amount"] == "18.90"

        check = client.get(base + "/can-close").get_json()
        assert check["closable"] is False
        assert [r["code"] for r in check["reasons"]] == ["SHORTFALL", "DEBT_NOT_AUTHORIZED"]
        assert check["reasons"][0]["amount"] == "30.00"

        resp = client.post(base + "/close", json={})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "UNCLOSABLE_LEDGER"

        client.post(base + "/payments", json={"instrument_id": instruments["cash"], "amount": "30.00"})
        assert client.get(base + "/can-close").get_json()["closable"] is True

        summary = client.get(base + "/summary").get_json()["summary"]
        assert summary["total_received"] == "50.00"
        assert summary["total_net"] == "48.90"

        resp = client.post(base + "/close", json={"actor": "reception-1"})
        assert resp.status_code == 200
        closed = resp.get_json()["commanda"]
        assert closed["status"] == "CLOSED"
        assert closed["closed_by"] == "reception-1"

        assert client.get(f"/api/appointments/{appointment['id']}").get_json()["appointment"]["status"] == "DONE"

        again = client.post(base + "/close", json={})
        assert again.status_code == 409
        assert again.get_json()["code"] == "LEDGER_CLOSED"

    def test_items_and_discounts(self, client, coordinator):
        resp = client.post("/api/commandas", json={"customer_ref": "C-9"})
        assert resp.status_code == 201
        base = f"/api/commandas/{resp.get_json()['commanda']['id']}"

        resp = client.post(base + "/items", json={"kind": "PRODUCT", "catalog_ref": "PRD-SHAMPOO", "quantity": 2})
        assert resp.status_code == 201
        item = resp.get_json()["item"]
        assert item["final_price"] == "71.80"

        resp = client.post(f"{base}/items/{item['id']}/discount", json={"percentage": 10})
        assert resp.get_json()["item"]["final_price"] == "64.62"

        resp = client.patch(f"{base}/items/{item['id']}", json={"quantity": 1})
        assert resp.get_json()["item"]["final_price"] == "32.31"

        resp = client.put(base + "/discount", json={"amount": "2.31"})
        assert resp.get_json()["summary"]["total"] == "30.00"

        resp = client.patch(base + "/flags", json={"allow_debt": True})
        assert resp.get_json()["commanda"]["allow_debt"] is True

        resp = client.delete(f"{base}/items/{item['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["commanda"]["items"] == []
        assert resp.get_json()["summary"]["total"] == "0.00"

    def test_item_and_payment_validation(self, client, coordinator, instruments):
        base = f"/api/commandas/{client.post('/api/commandas', json={}).get_json()['commanda']['id']}"

        assert client.post(base + "/items", json={"kind": "PRODUCT"}).status_code == 400
        resp = client.post(base + "/items", json={"kind": "PRODUCT", "catalog_ref": "PRD-NOPE"})
        assert resp.get_json()["code"] == "UNKNOWN_CATALOG_ITEM"

        resp = client.post(base + "/payments", json={"instrument_id": instruments["cash"], "amount": "1e3"})
        assert resp.status_code == 400
        resp = client.post(base + "/payments", json={"instrument_id": instruments["cash"], "amount": "100000000000000000000"})
        assert resp.status_code == 400
        resp = client.post(base + "/payments", json={"instrument_id": instruments["retired"], "amount": "10.00"})
        assert resp.get_json()["code"] == "UNKNOWN_INSTRUMENT"
        assert resp.get_json()["details"]["inactive"] is True

        assert client.get("/api/commandas/9999").status_code == 404

    def test_payment_removal_and_cancel(self, client, coordinator, instruments):
        base = f"/api/commandas/{client.post('/api/commandas', json={}).get_json()['commanda']['id']}"
        resp = client.post(base + "/payments", json={"instrument_id": instruments["pix"], "amount": "15.00"})
        payment_id = resp.get_json()["payment"]["id"]

        resp = client.delete(f"{base}/payments/{payment_id}")
        assert resp.status_code == 200
        assert resp.get_json()["commanda"]["payments"] == []

        resp = client.post(base + "/cancel", json={"reason": "duplicate tab"})
        assert resp.status_code == 200
        assert resp.get_json()["commanda"]["status"] == "CANCELED"

        resp = client.post(base + "/items", json={"kind": "PRODUCT", "catalog_ref": "PRD-SHAMPOO"})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "LEDGER_CLOSED"
