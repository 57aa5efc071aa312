"""
Spreadsheet connection, worksheet bootstrap and demo data
"""
import logging
import secrets
import sys
from datetime import date

import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from werkzeug.security import generate_password_hash

from config import get_config, sheets_configured, yearly_dues
from models import (
    Member, Payment, UserCredentials, SHEET_HEADERS, MONTH_NAMES,
    MEMBERS_SHEET, PAYMENTS_SHEET, USERS_SHEET
)
from sheets import REMOTE_ERRORS, SheetError, SheetStore, StoreError, USER_ENTERED

logger = logging.getLogger(__name__)

# Bad key material surfaces as ValueError or OSError before any request is made
CREDENTIAL_ERRORS = (GoogleAuthError, ValueError, OSError)

SCOPES = [
    'https://www.googleapis.com/auth/spreadsheets',
    'https://www.googleapis.com/auth/drive',
]

HEADER_FORMAT = {
    'textFormat': {'bold': True},
    'backgroundColor': {'red': 0.9, 'green': 0.9, 'blue': 0.9},
}


def _private_key(raw):
    """Keys pasted into env files often carry literal \\n sequences"""
    return raw.replace('\\n', '\n') if raw else raw


def build_credentials(config):
    """Service account credentials from a JSON key file or from env values"""
    path = config.get('GOOGLE_CREDENTIALS_PATH')
    if path:
        return Credentials.from_service_account_file(path, scopes=SCOPES)
    info = {
        'type': 'service_account',
        'client_email': config.get('GOOGLE_CLIENT_EMAIL'),
        'private_key': _private_key(config.get('GOOGLE_PRIVATE_KEY')),
        'token_uri': 'https://oauth2.googleapis.com/token',
    }
    return Credentials.from_service_account_info(info, scopes=SCOPES)


def open_spreadsheet(config):
    """Authorise the service account and open GOOGLE_SHEET_ID"""
    logger.info(
        f"Opening spreadsheet (sheet id set: {bool(config.get('GOOGLE_SHEET_ID'))}, "
        f"key file set: {bool(config.get('GOOGLE_CREDENTIALS_PATH'))}, "
        f"client email set: {bool(config.get('GOOGLE_CLIENT_EMAIL'))}, "
        f"private key set: {bool(config.get('GOOGLE_PRIVATE_KEY'))})"
    )
    try:
        gc = gspread.authorize(build_credentials(config))
        return gc.open_by_key(config['GOOGLE_SHEET_ID'])
    except REMOTE_ERRORS + CREDENTIAL_ERRORS as e:
        logger.error(f"Could not open spreadsheet: {e}")
        raise SheetError("Failed to open the spreadsheet") from e


def _header_range(headers):
    return f"A1:{chr(ord('A') + len(headers) - 1)}1"


def initialize_sheets(spreadsheet):
    """Create any missing worksheets and (re)write their header rows"""
    try:
        existing = {ws.title: ws for ws in spreadsheet.worksheets()}
        created = []
        for name, headers in SHEET_HEADERS.items():
            worksheet = existing.get(name)
            if worksheet is None:
                worksheet = spreadsheet.add_worksheet(title=name, rows=1000, cols=len(headers))
                created.append(name)
                logger.info(f"Created worksheet {name}")
            worksheet.update(range_name=_header_range(headers), values=[headers],
                             value_input_option=USER_ENTERED)
            worksheet.format(_header_range(headers), HEADER_FORMAT)
    except REMOTE_ERRORS as e:
        logger.error(f"Failed to initialize sheet structure: {e}")
        raise SheetError("Failed to initialize the spreadsheet") from e

    return {
        'success': True,
        'message': 'Google Sheet structure initialized successfully',
        'created': created,
    }


def demo_members(today=None):
    today = today or date.today()
    last_year = today.year - 1
    return [
        Member(name='John Doe', email='john.doe@example.com', phone='07700900001',
               join_date=f'15/01/{last_year}', birthday='15/05/1990', anniversary='20/06/2020',
               status='active', dues_paid=150, outstanding=90, year=str(today.year)),
        Member(name='Jane Smith', email='jane.smith@example.com', phone='07700900002',
               join_date=f'01/03/{last_year}', birthday='10/03/1988', anniversary='15/08/2019',
               status='active', dues_paid=100, outstanding=20, year=str(today.year)),
        Member(name='Mike Johnson', email='mike.johnson@example.com', phone='07700900003',
               join_date=f'10/01/{last_year}', birthday='20/11/1992', anniversary='10/02/2021',
               status='inactive', dues_paid=0, outstanding=120, year=str(today.year)),
        Member(name='Sarah Williams', email='sarah.williams@example.com', phone='07700900004',
               join_date=f'15/02/{today.year}', birthday='25/07/1995', anniversary='05/04/2022',
               status='active', dues_paid=30, outstanding=90, year=str(today.year)),
        Member(name='Admin User', email='admin@example.com', is_admin=True, phone='07700900005',
               join_date=f'20/01/{last_year}', birthday='30/09/1993', anniversary='15/01/2023',
               status='active', dues_paid=0, outstanding=120, year=str(today.year)),
    ]


def demo_payments(today=None):
    today = today or date.today()
    last_year = today.year - 1

    def payment(n, email, amount, year, month):
        return Payment(
            id=f'PMTDEMO{n:03d}', member_id=email, amount=amount,
            date=date(year, month, 1).isoformat(), method='transfer' if n % 2 else 'cash',
            month=MONTH_NAMES[month - 1], year=str(year), status='completed',
        )

    return [
        payment(1, 'john.doe@example.com', 120, last_year, 1),
        payment(2, 'john.doe@example.com', 30, today.year, 1),
        payment(3, 'jane.smith@example.com', 100, last_year, 3),
        payment(4, 'sarah.williams@example.com', 30, today.year, 2),
    ]


def seed_demo_data(spreadsheet, admin_password=None):
    """Initialise the sheet and append demo members, payments and two admin logins"""
    initialize_sheets(spreadsheet)
    password = admin_password or secrets.token_urlsafe(12)
    members = demo_members()
    payments = demo_payments()
    users = [
        UserCredentials(email='admin@example.com', password=generate_password_hash(password),
                        is_admin=True, name='Admin User'),
        UserCredentials(email='treasurer@example.com', password=generate_password_hash(password),
                        is_admin=True, name='Treasurer'),
    ]

    try:
        spreadsheet.worksheet(MEMBERS_SHEET).append_rows(
            [m.to_row() for m in members], value_input_option=USER_ENTERED)
        spreadsheet.worksheet(PAYMENTS_SHEET).append_rows(
            [p.to_row() for p in payments], value_input_option=USER_ENTERED)
        spreadsheet.worksheet(USERS_SHEET).append_rows(
            [u.to_row() for u in users], value_input_option=USER_ENTERED)
    except REMOTE_ERRORS as e:
        logger.error(f"Failed to insert demo data: {e}")
        raise SheetError("Failed to insert demo data") from e

    logger.info(f"Seeded {len(members)} members, {len(payments)} payments and {len(users)} users")
    return {
        'success': True,
        'message': 'Demo data inserted successfully',
        'members': len(members),
        'payments': len(payments),
        'users': [u.email for u in users],
        'password': password,
    }


def check_sheet_status(spreadsheet):
    """Print and return the number of data rows in each worksheet"""
    counts = {}
    try:
        for name in SHEET_HEADERS:
            try:
                values = spreadsheet.worksheet(name).get_all_values()
            except gspread.exceptions.WorksheetNotFound:
                counts[name] = None
                continue
            counts[name] = len([row for row in values[1:] if any(str(c).strip() for c in row)])
    except REMOTE_ERRORS as e:
        print(f"❌ Spreadsheet error: {e}")
        return None

    print("📊 Spreadsheet Status:")
    for name, count in counts.items():
        print(f"   {name}: {'missing' if count is None else count}")
    return counts


def create_admin_user(spreadsheet, email, name, password, config):
    store = SheetStore(spreadsheet, yearly_dues=yearly_dues(config))
    user = store.create_user(email, password, name=name, is_admin=True)
    print(f"✅ Created admin user: {user.name} ({user.email})")
    return user


def hash_user_passwords(spreadsheet, config):
    """Replace plaintext passwords in the Users sheet with werkzeug hashes"""
    store = SheetStore(spreadsheet, yearly_dues=yearly_dues(config))
    result = store.hash_plaintext_passwords()
    print(f"✅ Hashed {len(result['hashed'])} password(s), {result['skipped']} already hashed or empty")
    for email in result['hashed']:
        print(f"   {email}")
    return result


def _config_dict(config_mode=None):
    config_class = get_config(config_mode)
    return {key: getattr(config_class, key) for key in dir(config_class) if key.isupper()}


def print_usage():
    print("Usage: python database.py <command>")
    print("Commands:")
    print("  init            - Create worksheets and header rows")
    print("  status          - Show row counts per worksheet")
    print("  seed            - Insert demo members, payments and admin logins")
    print("  create-admin    - Create an admin login")
    print("  hash-passwords  - Hash any plaintext passwords left in the Users sheet")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print_usage()
        return 0

    command = argv[0]
    config = _config_dict()

    if not sheets_configured(config):
        print("❌ Google Sheets is not configured (set GOOGLE_SHEET_ID and service account credentials)")
        return 1

    if command == 'create-admin' and len(argv) != 4:
        print("Usage: python database.py create-admin <email> <name> <password>")
        return 1

    try:
        spreadsheet = open_spreadsheet(config)

        if command == 'init':
            result = initialize_sheets(spreadsheet)
            print(f"✅ {result['message']}")
            if result['created']:
                print(f"   Created: {', '.join(result['created'])}")

        elif command == 'status':
            check_sheet_status(spreadsheet)

        elif command == 'seed':
            result = seed_demo_data(spreadsheet, config.get('ADMIN_PASSWORD') or None)
            print(f"✅ {result['message']}")
            print(f"   Admin logins: {', '.join(result['users'])}")
            print(f"🔒 Password: {result['password']}")

        elif command == 'create-admin':
            email, name, password = argv[1:4]
            create_admin_user(spreadsheet, email, name, password, config)

        elif command == 'hash-passwords':
            hash_user_passwords(spreadsheet, config)

        else:
            print("Available commands: init, status, seed, create-admin, hash-passwords")
            return 1

    except StoreError as e:
        print(f"❌ {command} failed: {e}")
        return 1

    return 0


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    sys.exit(main())
