import re

import pytest
from gspread.exceptions import GSpreadException, WorksheetNotFound
from werkzeug.security import generate_password_hash

from app import create_app
from models import Member, UserCredentials, SHEET_HEADERS, MEMBERS_SHEET, USERS_SHEET

PASSWORD = "secret123"

_CELL = re.compile(r"^([A-Z]+)(\d+)$")


def _column_index(letters):
    index = 0
    for char in letters:
        index = index * 26 + (ord(char) - ord("A") + 1)
    return index - 1


def _parse_range(range_name):
    """'A5:L5' -> (row, first column, last column), all 0-based"""
    start, _, end = range_name.partition(":")
    start_col, start_row = _CELL.match(start).groups()
    end_col, _ = _CELL.match(end or start).groups()
    return int(start_row) - 1, _column_index(start_col), _column_index(end_col)


class FakeWorksheet:
    """In-memory stand-in for the parts of gspread.Worksheet the app uses"""

    def __init__(self, title, rows=None):
        self.title = title
        self.rows = [list(r) for r in (rows or [])]
        self.formats = {}
        self.fail_on = set()

    def _check(self, operation):
        if operation in self.fail_on:
            raise GSpreadException(f"{operation} failed")

    def _trim(self):
        while self.rows and not any(str(c).strip() for c in self.rows[-1]):
            self.rows.pop()

    def get_all_values(self):
        self._check("get_all_values")
        self._trim()
        width = max((len(r) for r in self.rows), default=0)
        return [list(r) + [""] * (width - len(r)) for r in self.rows]

    def append_row(self, values, value_input_option=None):
        self._check("append_row")
        self._trim()
        self.rows.append(["" if v is None else str(v) for v in values])

    def append_rows(self, values, value_input_option=None):
        self._check("append_rows")
        for row in values:
            self.append_row(row, value_input_option)

    def update(self, range_name=None, values=None, value_input_option=None):
        self._check("update")
        row_index, first_col, _ = _parse_range(range_name)
        for offset, row_values in enumerate(values):
            target = row_index + offset
            while len(self.rows) <= target:
                self.rows.append([])
            row = self.rows[target]
            needed = first_col + len(row_values)
            row.extend([""] * (needed - len(row)))
            for i, value in enumerate(row_values):
                row[first_col + i] = "" if value is None else str(value)

    def batch_clear(self, ranges):
        self._check("batch_clear")
        for range_name in ranges:
            row_index, first_col, last_col = _parse_range(range_name)
            if row_index < len(self.rows):
                row = self.rows[row_index]
                for i in range(first_col, min(last_col + 1, len(row))):
                    row[i] = ""

    def format(self, range_name, fmt):
        self.formats[range_name] = fmt


class FakeSpreadsheet:
    def __init__(self, titles=()):
        self.sheets = {title: FakeWorksheet(title) for title in titles}

    def worksheet(self, title):
        if title not in self.sheets:
            raise WorksheetNotFound(title)
        return self.sheets[title]

    def worksheets(self):
        return list(self.sheets.values())

    def add_worksheet(self, title, rows=1000, cols=26):
        self.sheets[title] = FakeWorksheet(title)
        return self.sheets[title]


@pytest.fixture
def spreadsheet():
    book = FakeSpreadsheet()
    for title, headers in SHEET_HEADERS.items():
        book.sheets[title] = FakeWorksheet(title, [headers])
    return book


@pytest.fixture
def app(spreadsheet, tmp_path):
    app = create_app("testing", spreadsheet=spreadsheet)
    app.config["LOCAL_USERS_FILE"] = str(tmp_path / "users.json")
    return app


@pytest.fixture
def store(app):
    return app.extensions["sheet_store"]


@pytest.fixture
def client(app):
    return app.test_client()


def add_member_row(spreadsheet, **fields):
    member = Member(**fields)
    spreadsheet.worksheet(MEMBERS_SHEET).append_row(member.to_row())
    return member


def add_user_row(spreadsheet, email, password=PASSWORD, is_admin=False, name=""):
    user = UserCredentials(email=email, password=generate_password_hash(password),
                           is_admin=is_admin, name=name)
    spreadsheet.worksheet(USERS_SHEET).append_row(user.to_row())
    return user


@pytest.fixture
def seeded(spreadsheet):
    """An admin and two members, each with a login"""
    add_member_row(spreadsheet, name="Admin User", email="admin@example.com", is_admin=True,
                   join_date="01/01/2023", status="active", outstanding=120, year="2024")
    add_member_row(spreadsheet, name="John Doe", email="john@example.com",
                   join_date="15/03/2024", birthday="15/05/1990", status="active",
                   dues_paid=30, outstanding=90, year="2024")
    add_member_row(spreadsheet, name="Jane Smith", email="jane@example.com",
                   join_date="01/01/2024", status="inactive", outstanding=120, year="2024")
    add_user_row(spreadsheet, "admin@example.com", is_admin=True, name="Admin User")
    add_user_row(spreadsheet, "john@example.com", name="John Doe")
    add_user_row(spreadsheet, "jane@example.com", name="Jane Smith")
    return spreadsheet


def login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client, seeded):
    response = login(client, "admin@example.com")
    assert response.status_code == 200
    return client


@pytest.fixture
def member_client(client, seeded):
    response = login(client, "john@example.com")
    assert response.status_code == 200
    return client
