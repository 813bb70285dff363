import re

import pytest

from conftest import amc_payload


def create(client, **overrides) -> dict:
    response = client.post("/amc", json=amc_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_and_fetch(client):
    body = create(client)

    assert re.match(r"^AMC-\d{4}-\d{4}$", body["contractNumber"])
    assert body["status"] == "active"
    assert body["scheduledVisits"] == 4
    assert body["remainingVisits"] == 4
    assert [v["scheduledDate"] for v in body["visitSchedule"]] == [
        "2025-04-01",
        "2025-07-01",
        "2025-10-01",
        "2026-01-01",
    ]
    assert body["nextVisitDate"] == "2025-04-01"

    by_id = client.get(f"/amc/{body['id']}").json()
    by_number = client.get(f"/amc/number/{body['contractNumber'].lower()}").json()
    assert by_id["contractNumber"] == by_number["contractNumber"] == body["contractNumber"]


def test_unknown_contract_is_404(client):
    response = client.get("/amc/404")

    assert response.status_code == 404
    assert response.json() == {"detail": "AMC contract not found", "code": "contract_not_found"}


def test_duplicate_asset_is_409(client):
    create(client, engineSerialNumber="ENG-DUP")

    response = client.post("/amc", json=amc_payload(engineSerialNumber="ENG-DUP"))

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_asset"


def test_invalid_window_is_422(client):
    response = client.post("/amc", json=amc_payload(endDate="2024-12-31"))

    assert response.status_code == 422


def test_visit_workflow(client):
    contract_id = create(client, generateSchedule=False, numberOfVisits=2)["id"]

    response = client.post(
        f"/amc/{contract_id}/visits",
        json={"scheduledDate": "2025-05-01", "assignedTo": "tech-1", "visitType": "inspection"},
    )
    assert response.status_code == 200
    assert response.json()["nextVisitDate"] == "2025-05-01"

    response = client.patch(
        f"/amc/{contract_id}/visits/0/reschedule", json={"scheduledDate": "2025-05-15"}
    )
    assert response.json()["visitSchedule"][0]["scheduledDate"] == "2025-05-15"

    response = client.post(
        f"/amc/{contract_id}/visits/0/complete",
        json={
            "completedDate": "2025-05-15",
            "serviceReport": "All good",
            "issues": [{"description": "Worn belt", "severity": "medium"}],
            "customerSignature": "data:image/png;base64,AAAA",
        },
    )
    body = response.json()
    assert response.status_code == 200
    assert body["completedVisits"] == 1
    assert body["completionPercentage"] == 50
    assert body["visitSchedule"][0]["status"] == "completed"
    assert body["visitSchedule"][0]["hasCustomerSignature"] is True

    again = client.post(
        f"/amc/{contract_id}/visits/0/complete", json={"completedDate": "2025-05-16"}
    )
    assert again.status_code == 400
    assert again.json()["code"] == "already_completed"

    regenerate = client.post(f"/amc/{contract_id}/regenerate-visits")
    assert regenerate.status_code == 400
    assert regenerate.json()["code"] == "has_completed_visits"


def test_bulk_schedule_rejects_bad_entry(client):
    contract = create(client)

    response = client.post(
        f"/amc/{contract['id']}/visits/bulk",
        json={"visits": [{"scheduledDate": "2025-03-01"}]},
    )

    assert response.status_code == 400
    assert response.json() == {
        "detail": "Visit 1: Assigned engineer is required",
        "code": "invalid_visit_payload",
    }
    assert client.get(f"/amc/{contract['id']}").json()["visitSchedule"] == contract["visitSchedule"]


def test_manual_visit_over_quota(client):
    contract_id = create(client)["id"]

    response = client.post(f"/amc/{contract_id}/visits", json={"scheduledDate": "2025-05-01"})

    assert response.status_code == 400
    assert response.json()["code"] == "quota_exceeded"


def test_renew_with_price_adjustment(client):
    contract_id = create(client)["id"]

    response = client.post(
        f"/amc/{contract_id}/renew",
        json={
            "newStartDate": "2026-01-01",
            "newEndDate": "2027-01-01",
            "priceAdjustment": {"type": "percentage", "value": 10},
            "addProducts": ["prod-2"],
        },
    )
    body = response.json()

    assert response.status_code == 200
    assert body["contractValue"] == pytest.approx(1100)
    assert body["nextVisitDate"] == "2026-01-31"
    assert body["products"] == ["prod-1", "prod-2"]


def test_bulk_renew_reports_failures(client):
    ok = create(client, engineSerialNumber="ENG-OK")
    cancelled = create(client, engineSerialNumber="ENG-CX", status="cancelled")

    response = client.post(
        "/amc/bulk-renew", json={"contractIds": [ok["id"], cancelled["id"]]}
    )
    body = response.json()

    assert response.status_code == 200
    assert [c["id"] for c in body["renewedContracts"]] == [ok["id"]]
    assert body["failed"][0]["contractId"] == cancelled["id"]


def test_status_archive_and_delete(client):
    contract_id = create(client)["id"]

    delete = client.delete(f"/amc/{contract_id}")
    assert delete.status_code == 400
    assert delete.json()["code"] == "active_contract"

    suspended = client.put(
        f"/amc/{contract_id}/status", json={"status": "suspended", "reason": "Unpaid"}
    )
    assert suspended.json()["status"] == "suspended"
    assert suspended.json()["terms"] == "Status Update: Unpaid"

    expired = client.put(f"/amc/{contract_id}/status", json={"status": "expired"})
    assert expired.status_code == 422

    activated = client.post(f"/amc/{contract_id}/activate")
    assert activated.json()["status"] == "active"

    archived = client.post(f"/amc/{contract_id}/archive", json={"reason": "Asset sold"})
    assert archived.json()["status"] == "cancelled"

    delete = client.delete(f"/amc/{contract_id}")
    assert delete.status_code == 200
    assert delete.json()["deletedCount"] == 1
    assert client.get(f"/amc/{contract_id}").status_code == 404


def test_bulk_delete(client):
    first = create(client, engineSerialNumber="ENG-1", status="draft")
    second = create(client, engineSerialNumber="ENG-2", status="pending")

    response = client.post(
        "/amc/bulk-delete", json={"contractIds": [first["id"], second["id"]]}
    )

    assert response.status_code == 200
    assert response.json()["deletedCount"] == 2


def test_pending_visits_and_expiring(client):
    create(client, engineSerialNumber="ENG-P")
    create(client, engineSerialNumber="ENG-N", generateSchedule=False)

    pending = client.get("/amc/pending-visits").json()
    assert [c["engineSerialNumber"] for c in pending] == ["ENG-P"]

    # Both windows ended in the past relative to today
    assert client.get("/amc/expiring", params={"days": 30}).json() == []


def test_update_contract_details(client):
    contract = create(client)

    response = client.put(
        f"/amc/{contract['id']}",
        json={
            "customerRef": "cust-002",
            "engineSerialNumber": "  ENG-NEW ",
            "contractValue": 1500,
            "endDate": "2026-06-30",
            "products": ["prod-1", "prod-3", "prod-1"],
        },
    )
    body = response.json()

    assert response.status_code == 200, response.text
    assert body["contractNumber"] == contract["contractNumber"]
    assert body["customerRef"] == "cust-002"
    assert body["engineSerialNumber"] == "ENG-NEW"
    assert body["contractValue"] == 1500
    assert body["endDate"] == "2026-06-30"
    assert body["products"] == ["prod-1", "prod-3"]
    assert body["status"] == "active"
    assert body["visitSchedule"] == contract["visitSchedule"]


@pytest.mark.parametrize(
    "field, value",
    [("contractNumber", "AMC-2025-9999"), ("status", "cancelled"), ("contractValue", -1)],
)
def test_update_rejects_immutable_and_invalid_fields(client, field, value):
    contract = create(client)

    response = client.put(f"/amc/{contract['id']}", json={field: value})

    assert response.status_code == 422
    unchanged = client.get(f"/amc/{contract['id']}").json()
    assert unchanged["contractNumber"] == contract["contractNumber"]
    assert unchanged["status"] == contract["status"]
    assert unchanged["contractValue"] == contract["contractValue"]


def test_update_to_a_covered_asset_is_409(client):
    create(client, engineSerialNumber="ENG-TAKEN")
    contract = create(client, engineSerialNumber="ENG-MINE")

    response = client.put(f"/amc/{contract['id']}", json={"engineSerialNumber": "ENG-TAKEN"})

    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_asset"
    assert client.get(f"/amc/{contract['id']}").json()["engineSerialNumber"] == "ENG-MINE"


def test_update_keeping_own_serial_is_allowed(client):
    contract = create(client, engineSerialNumber="ENG-MINE")

    response = client.put(f"/amc/{contract['id']}", json={"engineSerialNumber": "ENG-MINE"})

    assert response.status_code == 200


@pytest.mark.parametrize(
    "payload",
    [
        {"endDate": "2024-12-31"},
        {"startDate": "2026-01-01"},
        {"startDate": "2026-02-01", "endDate": "2026-01-15"},
    ],
)
def test_update_window_is_checked_against_stored_dates(client, payload):
    contract = create(client)

    response = client.put(f"/amc/{contract['id']}", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_contract_terms"
    assert client.get(f"/amc/{contract['id']}").json()["endDate"] == contract["endDate"]


def test_update_quota_below_schedule_is_rejected(client):
    contract = create(client)

    response = client.put(f"/amc/{contract['id']}", json={"numberOfVisits": 2})

    assert response.status_code == 400
    assert response.json()["code"] == "quota_exceeded"


def test_update_unknown_contract_is_404(client):
    assert client.put("/amc/404", json={"terms": "x"}).status_code == 404
