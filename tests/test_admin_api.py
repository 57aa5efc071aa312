import json

import pytest

from conftest import login
from models import EMAIL_LOGS_SHEET, MEMBERS_SHEET, PAYMENTS_SHEET, USERS_SHEET, Payment


@pytest.fixture
def sheets_enabled(app):
    app.config["GOOGLE_SHEET_ID"] = "sheet-id"
    app.config["GOOGLE_CLIENT_EMAIL"] = "svc@example.iam.gserviceaccount.com"
    app.config["GOOGLE_PRIVATE_KEY"] = "key"
    return app


def test_member_is_forbidden(member_client):
    response = member_client.get("/api/admin/stats")
    assert response.status_code == 403
    assert response.get_json() == {"error": "Admin access required"}

    response = member_client.post("/api/admin/members", json={})
    assert response.get_json() == {"message": "Admin access required"}


def test_admin_member_crud_uses_message_bodies(admin_client):
    response = admin_client.post("/api/admin/members", json={"name": "Only Name"})
    assert response.status_code == 400
    assert response.get_json() == {"message": "Name and email are required"}

    response = admin_client.post("/api/admin/members", json={"name": "Tom", "email": "tom@example.com"})
    assert response.status_code == 201

    response = admin_client.get("/api/admin/members/tom@example.com")
    assert response.get_json()["payments"] == []

    response = admin_client.delete("/api/admin/members/tom@example.com")
    assert response.get_json() == {"message": "Member deleted successfully"}

    response = admin_client.get("/api/admin/members/tom@example.com")
    assert response.status_code == 404
    assert "message" in response.get_json()


def test_admin_list_members_without_payments(admin_client):
    members = admin_client.get("/api/admin/members").get_json()
    assert len(members) == 3
    assert "payments" not in members[0]


def test_admin_cannot_delete_admin(admin_client):
    response = admin_client.delete("/api/admin/members/admin@example.com")
    assert response.status_code == 403
    assert response.get_json() == {"message": "Admin members cannot be deleted"}


def test_member_payment_validation(admin_client):
    url = "/api/admin/members/john@example.com/payments"

    response = admin_client.post(url, json={"amount": 10, "method": "cash"})
    assert response.status_code == 400
    assert response.get_json() == {"message": "Amount, method and date are required"}

    response = admin_client.post(url, json={"amount": -5, "method": "cash", "date": "2024-05-01"})
    assert response.status_code == 400
    assert response.get_json() == {"message": "Invalid payment amount"}


def test_member_payment_against_balance(admin_client):
    response = admin_client.post("/api/admin/members/john@example.com/payments",
                                 json={"amount": 90, "method": "transfer", "date": "2024-05-01"})
    assert response.status_code == 201
    body = response.get_json()
    assert body["message"] == "Payment recorded successfully"
    assert body["member"]["outstandingYTD"] == 0


def test_payment_against_yearly_dues(admin_client, seeded):
    response = admin_client.post("/api/admin/payments", json={
        "memberId": "john@example.com", "amount": 45, "date": "2025-01-05",
        "month": "January", "year": "2025", "method": "cash",
    })

    assert response.status_code == 201
    body = response.get_json()
    assert body["status"] == 201
    assert body["message"] == "Payment recorded successfully"
    assert body["data"]["amount"] == 45
    assert body["data"]["year"] == "2025"

    member_row = seeded.worksheet(MEMBERS_SHEET).rows[2]
    assert member_row[9:12] == ["75", "45", "2025"]


def test_payment_missing_fields(admin_client):
    response = admin_client.post("/api/admin/payments", json={"memberId": "john@example.com", "amount": 10})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Missing required payment information", "status": 400}


def test_payment_invalid_amount(admin_client):
    response = admin_client.post("/api/admin/payments", json={
        "memberId": "john@example.com", "amount": "abc", "date": "2025-01-05", "month": "January", "year": "2025",
    })
    assert response.get_json() == {"error": "Invalid payment amount", "status": 400}


def test_payment_unknown_member(admin_client):
    response = admin_client.post("/api/admin/payments", json={
        "memberId": "ghost@example.com", "amount": 10, "date": "2025-01-05", "month": "January", "year": "2025",
    })
    assert response.status_code == 404
    assert response.get_json()["status"] == 404


def test_send_reminder(admin_client, seeded):
    response = admin_client.post("/api/admin/send-reminder", json={"memberId": "john@example.com"})

    assert response.status_code == 200
    assert response.get_json() == {
        "data": {"email": "john@example.com"},
        "message": "Payment reminder sent to john@example.com",
        "status": 200,
    }
    log_row = seeded.worksheet(EMAIL_LOGS_SHEET).rows[-1]
    assert log_row[1:4] == ["john@example.com", "simulated", "payment_reminder"]


def test_send_reminder_requires_member(admin_client):
    response = admin_client.post("/api/admin/send-reminder", json={})
    assert response.get_json() == {"error": "Member ID is required", "status": 400}


def test_stats(admin_client, store):
    store.add_payment(Payment(id="P1", member_id="john@example.com", amount=30, date="2024-03-20"))
    stats = admin_client.get("/api/admin/stats").get_json()
    assert stats["totalMembers"] == 3
    assert stats["totalCollected"] == 30
    assert stats["recentPayments"][0]["memberName"] == "John Doe"


def test_stats_failure(admin_client, seeded):
    seeded.worksheet(PAYMENTS_SHEET).fail_on.add("get_all_values")
    response = admin_client.get("/api/admin/stats")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to fetch statistics"}


def test_email_stats(admin_client, store):
    store.log_email("john@example.com", "sent", "test")
    stats = admin_client.get("/api/admin/email-stats").get_json()
    assert stats["totalSent"] == 1
    assert stats["failedToday"] == 0


def test_initialize_without_sheet_config_reports_mock_mode(admin_client):
    response = admin_client.post("/api/admin/initialize")
    assert response.get_json()["usingMockData"] is True


def test_initialize_creates_missing_sheets(admin_client, sheets_enabled, seeded):
    del seeded.sheets[EMAIL_LOGS_SHEET]

    body = admin_client.post("/api/admin/initialize").get_json()

    assert body["success"] is True
    assert body["created"] == [EMAIL_LOGS_SHEET]
    assert seeded.worksheet(EMAIL_LOGS_SHEET).rows[0][0] == "Timestamp"
    assert seeded.worksheet(MEMBERS_SHEET).rows[1][0] == "Admin User"


def test_seed_needs_admin_password(admin_client, sheets_enabled):
    response = admin_client.post("/api/admin/seed")
    assert response.status_code == 400


def test_seed_inserts_demo_rows_and_hides_password(admin_client, sheets_enabled, seeded):
    sheets_enabled.config["ADMIN_PASSWORD"] = "demo-password"

    response = admin_client.post("/api/admin/seed")

    body = response.get_json()
    assert body["members"] == 5
    assert body["payments"] == 4
    assert "password" not in body
    assert "demo-password" not in json.dumps(body)
    emails = [row[0] for row in seeded.worksheet(USERS_SHEET).rows]
    assert "treasurer@example.com" in emails


def test_seed_failure(admin_client, sheets_enabled, seeded):
    sheets_enabled.config["ADMIN_PASSWORD"] = "demo-password"
    seeded.worksheet(PAYMENTS_SHEET).fail_on.add("append_rows")

    response = admin_client.post("/api/admin/seed")
    assert response.status_code == 500
    assert response.get_json()["message"] == "Failed to insert demo data"


def test_setup_writes_local_admin(app, client):
    response = client.post("/api/admin/setup")
    assert response.status_code == 400

    app.config["ADMIN_EMAIL"] = "root@example.com"
    app.config["ADMIN_PASSWORD"] = "rootpass"
    first = client.post("/api/admin/setup").get_json()
    second = client.post("/api/admin/setup").get_json()

    assert first["message"] == "Admin user created successfully"
    assert second["message"] == "Admin user already exists"

    with open(app.config["LOCAL_USERS_FILE"]) as f:
        stored = json.load(f)
    assert stored[0]["email"] == "root@example.com"
    assert stored[0]["password"] != "rootpass"


def test_config_status_never_leaks_values(admin_client, app):
    app.config["SMTP_PASSWORD"] = "hunter2"
    body = admin_client.get("/api/admin/config-status").get_json()

    assert body["settings"]["SMTP_PASSWORD"] is True
    assert body["settings"]["RESEND_API_KEY"] is False
    assert body["sheetsConnected"] is True
    assert body["mailProvider"] == "simulation"
    assert "hunter2" not in json.dumps(body)


def test_admin_routes_need_login(client):
    response = client.get("/api/admin/stats")
    assert response.status_code == 401
    assert login(client, "nobody@example.com", "x").status_code == 401
