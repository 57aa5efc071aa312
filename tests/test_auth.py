import bcrypt
import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from auth import verify_password
from conftest import PASSWORD, add_user_row, login
from local_users import LocalUserStore
from models import USERS_SHEET


def test_login_requires_email_and_password(client):
    response = client.post("/api/auth/login", json={"email": "john@example.com"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Email and password are required"}


@pytest.mark.parametrize("password", [12345, ["secret123"], {"p": 1}])
def test_login_rejects_non_string_password(client, seeded, password):
    response = client.post("/api/auth/login", json={"email": "john@example.com", "password": password})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Password must be a string"}


def test_login_with_sheet_user(client, seeded):
    response = login(client, "John@Example.com")

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["user"] == {"id": "john@example.com", "email": "john@example.com",
                            "name": "John Doe", "isAdmin": False}


def test_wrong_password(client, seeded):
    response = login(client, "john@example.com", "nope")
    assert response.status_code == 401
    assert response.get_json() == {"error": "Invalid email or password"}


def test_unknown_user(client, seeded):
    assert login(client, "ghost@example.com").status_code == 401


def test_session_endpoint_follows_login_and_logout(client, seeded):
    assert client.get("/api/auth/session").get_json() == {"authenticated": False, "user": None}

    login(client, "admin@example.com")
    body = client.get("/api/auth/session").get_json()
    assert body["authenticated"] is True
    assert body["user"]["isAdmin"] is True

    assert client.post("/api/auth/logout").get_json() == {"success": True}
    assert client.get("/api/auth/session").get_json()["authenticated"] is False


def test_bootstrap_admin(app, client):
    app.config["ADMIN_EMAIL"] = "boss@example.com"
    app.config["ADMIN_PASSWORD"] = "topsecret"

    response = login(client, "BOSS@example.com", "topsecret")
    assert response.status_code == 200
    assert response.get_json()["user"]["isAdmin"] is True

    assert login(client, "boss@example.com", "wrong").status_code == 401


def test_legacy_bcrypt_hash(client, spreadsheet):
    hashed = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")
    spreadsheet.worksheet(USERS_SHEET).append_row(["old@example.com", hashed, "false", "Old Timer"])

    response = login(client, "old@example.com")
    assert response.status_code == 200
    assert response.get_json()["user"]["name"] == "Old Timer"


def test_sheet_user_without_name_uses_member_name(client, seeded):
    add_user_row(seeded, "nameless@example.com")
    seeded.worksheet("Members").append_row(["Nora Nameless", "nameless@example.com"])

    body = login(client, "nameless@example.com").get_json()
    assert body["user"]["name"] == "Nora Nameless"


def test_sheet_user_without_name_or_member(client, spreadsheet):
    add_user_row(spreadsheet, "lonely@example.com")
    body = login(client, "lonely@example.com").get_json()
    assert body["user"]["name"] == "Member"


def test_local_user_fallback_when_sheet_fails(app, client, seeded):
    LocalUserStore(app.config["LOCAL_USERS_FILE"]).add_user(
        "local@example.com", generate_password_hash("localpass"), name="Local Admin", is_admin=True)
    seeded.worksheet(USERS_SHEET).fail_on.add("get_all_values")

    response = login(client, "local@example.com", "localpass")
    assert response.status_code == 200
    assert response.get_json()["user"]["isAdmin"] is True


def test_local_user_without_sheet(tmp_path):
    app = create_app("testing")
    app.config["LOCAL_USERS_FILE"] = str(tmp_path / "nested" / "users.json")
    store = LocalUserStore(app.config["LOCAL_USERS_FILE"])
    store.add_user("solo@example.com", generate_password_hash("solo-pass"))

    response = login(app.test_client(), "solo@example.com", "solo-pass")
    assert response.status_code == 200


def test_local_store_backup_and_duplicates(tmp_path):
    path = tmp_path / "users.json"
    store = LocalUserStore(str(path))

    assert store.load_users() == []
    assert store.add_user("a@example.com", "hash-a") is True
    assert store.add_user("A@example.com", "hash-b") is False
    assert store.add_user("b@example.com", "hash-b") is True

    assert (tmp_path / "users.json.backup").exists()
    assert [u["email"] for u in store.load_users()] == ["a@example.com", "b@example.com"]
    assert store.load_users()[0]["id"].startswith("local-")


def test_local_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "users.json"
    path.write_text("{not json")
    assert LocalUserStore(str(path)).load_users() == []


@pytest.mark.parametrize("stored, password, expected", [
    (generate_password_hash("pw"), "pw", True),
    (generate_password_hash("pw"), "other", False),
    ("", "pw", False),
    ("plaintext", "plaintext", False),
    ("$2b$not-a-real-hash", "pw", False),
])
def test_verify_password(stored, password, expected):
    assert verify_password(stored, password) is expected
