from datetime import date

import pytest

from models import PAYMENTS_SHEET, Payment


def add_payment(store, amount, year, pid="P1", email="john@example.com", status="completed"):
    store.add_payment(Payment(id=pid, member_id=email, amount=amount,
                              date=f"{year}-04-01", year=str(year), status=status))


def test_requires_login(client, seeded):
    response = client.get("/api/members")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Authentication required"}


def test_admin_lists_everyone(admin_client):
    members = admin_client.get("/api/members").get_json()
    assert [m["email"] for m in members] == ["admin@example.com", "john@example.com", "jane@example.com"]
    assert members[1]["joinDate"] == "2024-03-15"
    assert members[1]["outstandingYTD"] == 90


def test_member_lists_only_self(member_client):
    members = member_client.get("/api/members").get_json()
    assert [m["email"] for m in members] == ["john@example.com"]


def test_member_cannot_read_someone_else(member_client):
    response = member_client.get("/api/members/jane@example.com")
    assert response.status_code == 403

    response = member_client.get("/api/members/jane@example.com/payments")
    assert response.status_code == 403
    assert response.get_json() == {"error": "You can only view your own payments"}


def test_member_reads_own_record_with_payments(member_client, store):
    add_payment(store, 30, 2024)
    body = member_client.get("/api/members/john@example.com").get_json()
    assert body["name"] == "John Doe"
    assert [p["id"] for p in body["payments"]] == ["P1"]
    assert body["payments"][0]["memberId"] == "john@example.com"


def test_missing_member(admin_client):
    response = admin_client.get("/api/members/nobody@example.com")
    assert response.status_code == 404


def test_member_cannot_create(member_client):
    response = member_client.post("/api/members", json={"name": "X", "email": "x@example.com"})
    assert response.status_code == 403
    assert response.get_json() == {"error": "Admin access required"}


def test_create_member_validation(admin_client):
    response = admin_client.post("/api/members", json={"name": "No Email"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Name and email are required"}


def test_create_and_update_member(admin_client):
    response = admin_client.post("/api/members", json={
        "name": "Peter Parker", "email": "peter@example.com", "joinDate": "2024-02-01",
        "phoneNumber": "07700 111222",
    })
    assert response.status_code == 201
    created = response.get_json()
    assert created["outstandingYTD"] == 120
    assert created["memberStatus"] == "active"

    response = admin_client.put("/api/members/peter@example.com", json={"memberStatus": "inactive"})
    assert response.status_code == 200
    assert response.get_json()["memberStatus"] == "inactive"
    assert response.get_json()["phoneNumber"] == "07700 111222"


def test_update_missing_member(admin_client):
    response = admin_client.put("/api/members/nobody@example.com", json={"name": "X"})
    assert response.status_code == 404


def test_delete_member(admin_client):
    response = admin_client.delete("/api/members/jane@example.com")
    assert response.get_json() == {"success": True, "message": "Member deleted successfully"}
    assert admin_client.get("/api/members/jane@example.com").status_code == 404


def test_admin_member_cannot_be_deleted(admin_client):
    response = admin_client.delete("/api/members/admin@example.com")
    assert response.status_code == 403
    assert response.get_json() == {"error": "Admin members cannot be deleted"}


def test_record_payment(admin_client, seeded):
    response = admin_client.post("/api/members/john@example.com/payments",
                                 json={"amount": "25", "method": "Card", "date": "2024-06-02"})

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    assert body["member"]["outstandingYTD"] == 65
    assert body["member"]["duesAmountPaid"] == 55
    assert body["payment"]["method"] == "card"
    assert body["payment"]["date"] == "2024-06-02"
    assert body["payment"]["month"]
    assert "warning" not in body


def test_record_payment_rejects_non_numeric_amount(admin_client):
    response = admin_client.post("/api/members/john@example.com/payments", json={"amount": "lots"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "A numeric amount is required"}


@pytest.mark.parametrize("amount", [0, -50, "-10.5"])
def test_record_payment_rejects_non_positive_amount(admin_client, store, amount):
    response = admin_client.post("/api/members/john@example.com/payments", json={"amount": amount})

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid payment amount"}
    member = store.get_member("john@example.com")
    assert (member.dues_paid, member.outstanding) == (30, 90)
    assert store.get_payments() == []


def test_record_payment_reports_partial_failure(admin_client, seeded):
    seeded.worksheet(PAYMENTS_SHEET).fail_on.add("append_row")
    response = admin_client.post("/api/members/john@example.com/payments", json={"amount": 10})

    assert response.status_code == 201
    body = response.get_json()
    assert body["member"]["outstandingYTD"] == 80
    assert "warning" in body


def test_sheet_failure_is_500(admin_client, seeded):
    seeded.worksheet("Members").fail_on.add("get_all_values")
    response = admin_client.get("/api/members")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to fetch members"}


def test_dues_month_grid(member_client, store):
    add_payment(store, 70, 2024)

    response = member_client.get("/api/members/john@example.com/dues?year=2024")

    assert response.status_code == 200
    body = response.get_json()
    assert body["memberId"] == "john@example.com"
    assert body["joinDate"] == "2024-03-15"
    statuses = [m["status"] for m in body["months"]]
    assert statuses == ["N/A"] * 2 + ["Paid"] * 7 + ["Not Paid"] * 3
    assert body["paidThrough"] == "September"
    assert body["outstanding"] == 30
    assert body["availableYears"][0] == date.today().year
    assert 2024 in body["availableYears"]


def test_dues_next_year_uses_carryover(member_client, store):
    add_payment(store, 150, 2024)

    body = member_client.get("/api/members/john@example.com/dues?year=2025").get_json()

    assert body["carryoverIn"] == 50
    assert [m["status"] for m in body["months"]][:6] == ["Paid"] * 5 + ["Not Paid"]


def test_dues_bad_year(member_client):
    response = member_client.get("/api/members/john@example.com/dues?year=twenty")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Year must be a four digit number"}


def test_dues_of_another_member_forbidden(member_client):
    response = member_client.get("/api/members/jane@example.com/dues")
    assert response.status_code == 403


def test_health(client):
    assert client.get("/api/health").get_json() == {"status": "ok", "sheetsConnected": True}


def test_response_keys_keep_handler_order(app, client):
    assert app.json.sort_keys is False
    body = client.get("/api/health").get_data(as_text=True)
    assert body.index('"status"') < body.index('"sheetsConnected"')


def test_unknown_route_is_json(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert "error" in response.get_json()
