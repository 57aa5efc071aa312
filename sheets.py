"""
Spreadsheet store: every read and write of the Members, Payments, Users and
Email_Logs worksheets goes through SheetStore.

The store keeps no cache. Each call re-reads the worksheet it needs, finds
rows by scanning the email column and writes back by A1 range, so the sheet
can be edited by hand between requests.
"""
import logging
from datetime import date, datetime, timezone

from flask import current_app
from gspread.exceptions import GSpreadException
from requests.exceptions import RequestException
from werkzeug.security import generate_password_hash

from models import (
    Member, Payment, UserCredentials,
    MEMBERS_SHEET, PAYMENTS_SHEET, USERS_SHEET, EMAIL_LOGS_SHEET,
    MEMBER_COLUMNS, USER_COLUMNS, SHEET_HEADERS,
    apply_payment, outstanding_for_year, new_payment_id, row_range
)
from utils import parse_amount, parse_sheet_date

logger = logging.getLogger(__name__)

REMOTE_ERRORS = (GSpreadException, RequestException)

USER_ENTERED = 'USER_ENTERED'

# Hashes written by the previous bcrypt-based system
BCRYPT_PREFIXES = ('$2a$', '$2b$', '$2y$')
# werkzeug writes "<method>$<salt>$<hash>"
WERKZEUG_METHODS = ('scrypt', 'pbkdf2')


def is_password_hash(value):
    """True for a werkzeug or bcrypt hash, False for anything that looks like plaintext"""
    value = str(value or '')
    if value.startswith(BCRYPT_PREFIXES):
        return True
    method, _, rest = value.partition('$')
    return method.startswith(WERKZEUG_METHODS) and '$' in rest


class StoreError(Exception):
    """Base class for store failures"""


class SheetError(StoreError):
    """The spreadsheet could not be read or written"""


class NotFound(StoreError):
    pass


class AlreadyExists(StoreError):
    pass


class AccessDenied(StoreError):
    pass


class SheetStore:
    """Data access for the dues spreadsheet"""

    def __init__(self, spreadsheet, yearly_dues=120.0):
        self.spreadsheet = spreadsheet
        self.yearly_dues = yearly_dues

    # ------------------------------------------------------------------
    # low level helpers

    def _call(self, action, func, *args, **kwargs):
        """Run one remote call, turning library errors into SheetError"""
        try:
            return func(*args, **kwargs)
        except REMOTE_ERRORS as e:
            logger.error(f"Google Sheets error while trying to {action}: {e}")
            raise SheetError(f"Failed to {action}") from e

    def _worksheet(self, name):
        return self._call(f"open the {name} sheet", self.spreadsheet.worksheet, name)

    def _data_rows(self, name, action):
        """(sheet row number, row) for every data row below the header"""
        worksheet = self._worksheet(name)
        values = self._call(action, worksheet.get_all_values)
        return worksheet, [(index, row) for index, row in enumerate(values[1:], start=2)]

    @staticmethod
    def _matches(row, column, key):
        cell = row[column] if column < len(row) else ''
        return bool(cell) and str(cell).strip().lower() == str(key).strip().lower()

    def _find(self, name, column, key, action):
        worksheet, rows = self._data_rows(name, action)
        for row_number, row in rows:
            if self._matches(row, column, key):
                return worksheet, row_number, row
        return worksheet, None, None

    def _write_row(self, worksheet, row_number, values, action):
        self._call(
            action, worksheet.update,
            range_name=row_range(row_number, len(values)),
            values=[values],
            value_input_option=USER_ENTERED,
        )

    def _append_row(self, name, values, action):
        worksheet = self._worksheet(name)
        self._call(action, worksheet.append_row, values, value_input_option=USER_ENTERED)

    def _clear_row(self, worksheet, row_number, width, action):
        self._call(action, worksheet.batch_clear, [row_range(row_number, width)])

    # ------------------------------------------------------------------
    # users

    def get_users(self):
        _, rows = self._data_rows(USERS_SHEET, 'fetch users')
        return [UserCredentials.from_row(row) for _, row in rows
                if row and str(row[USER_COLUMNS['EMAIL']]).strip()]

    def get_user_by_email(self, email):
        _, _, row = self._find(USERS_SHEET, USER_COLUMNS['EMAIL'], email, 'fetch user')
        return UserCredentials.from_row(row) if row else None

    def create_user(self, email, password, name='', is_admin=False):
        """Add a login; also adds a Members row when the email has none"""
        email = str(email).strip()
        if self.get_user_by_email(email):
            raise AlreadyExists(f"User with email {email} already exists")

        user = UserCredentials(
            email=email,
            password=generate_password_hash(password),
            is_admin=bool(is_admin),
            name=name or email.split('@')[0],
        )
        self._append_row(USERS_SHEET, user.to_row(), 'create user')
        logger.info(f"Created user {email} (admin={user.is_admin})")

        _, member_row, _ = self._find(MEMBERS_SHEET, MEMBER_COLUMNS['EMAIL'], email, 'fetch members')
        if member_row is None:
            member = Member(
                name=user.name,
                email=email,
                is_admin=user.is_admin,
                join_date=date.today().strftime('%d/%m/%Y'),
                status='active',
                outstanding=self.yearly_dues,
            )
            self._append_row(MEMBERS_SHEET, member.to_row(), 'create member')
            logger.info(f"Added member row for new user {email}")
        return user

    def update_user(self, email, name=None, is_admin=None, password=None):
        worksheet, row_number, row = self._find(USERS_SHEET, USER_COLUMNS['EMAIL'], email, 'fetch user')
        if row_number is None:
            raise NotFound(f"User {email} not found")

        user = UserCredentials.from_row(row)
        if name is not None:
            user.name = name
        if is_admin is not None:
            user.is_admin = bool(is_admin)
        if password:
            user.password = generate_password_hash(password)

        self._write_row(worksheet, row_number, user.to_row(), 'update user')
        return user

    def delete_user(self, email):
        """Remove a login and its Members row; the member side is best effort"""
        worksheet, row_number, _ = self._find(USERS_SHEET, USER_COLUMNS['EMAIL'], email, 'fetch user')
        if row_number is None:
            raise NotFound(f"User {email} not found")
        self._clear_row(worksheet, row_number, len(SHEET_HEADERS[USERS_SHEET]), 'delete user')
        logger.info(f"Deleted user {email}")

        try:
            self.delete_member(email)
        except StoreError as e:
            logger.warning(f"User {email} deleted but member row was not removed: {e}")

    def hash_plaintext_passwords(self):
        """
        Replace plaintext passwords in the Users sheet with werkzeug hashes.

        Rows already holding a werkzeug or bcrypt hash are left alone, as are
        rows with no email or no password. Returns the emails rewritten and
        the number of rows skipped.
        """
        worksheet, rows = self._data_rows(USERS_SHEET, 'fetch users')
        hashed = []
        skipped = 0
        for row_number, row in rows:
            user = UserCredentials.from_row(row)
            if not user.email.strip() or not user.password or is_password_hash(user.password):
                skipped += 1
                continue
            user.password = generate_password_hash(user.password)
            self._write_row(worksheet, row_number, user.to_row(), 'hash user password')
            hashed.append(user.email)
            logger.info(f"Hashed plaintext password for {user.email}")
        return {'hashed': hashed, 'skipped': skipped}

    # ------------------------------------------------------------------
    # members

    def get_members(self, requesting_email=None, is_admin=True):
        _, rows = self._data_rows(MEMBERS_SHEET, 'fetch members')
        members = [Member.from_row(row) for _, row in rows
                   if len(row) > MEMBER_COLUMNS['EMAIL'] and str(row[MEMBER_COLUMNS['EMAIL']]).strip()]
        if not is_admin:
            members = [m for m in members if self._same_email(m.email, requesting_email)]
        return members

    @staticmethod
    def _same_email(a, b):
        return bool(a) and bool(b) and a.strip().lower() == b.strip().lower()

    def get_member(self, member_id, requesting_email=None, is_admin=True):
        if not is_admin and not self._same_email(member_id, requesting_email):
            raise AccessDenied("You can only view your own member record")
        _, _, row = self._find(MEMBERS_SHEET, MEMBER_COLUMNS['EMAIL'], member_id, 'fetch member')
        if row is None:
            raise NotFound(f"Member {member_id} not found")
        return Member.from_row(row)

    def get_member_with_payments(self, member_id, requesting_email=None, is_admin=True):
        member = self.get_member(member_id, requesting_email, is_admin)
        member.payments = self.get_member_payments(member.email)
        return member

    def create_member(self, data):
        member = Member.from_payload(data, default_outstanding=self.yearly_dues)
        self._append_row(MEMBERS_SHEET, member.to_row(), 'create member')
        logger.info(f"Created member {member.email}")
        return member

    def update_member(self, member_id, data):
        worksheet, row_number, row = self._find(MEMBERS_SHEET, MEMBER_COLUMNS['EMAIL'], member_id, 'fetch member')
        if row_number is None:
            raise NotFound(f"Member {member_id} not found")
        member = Member.from_row(row).apply_updates(data)
        self._write_row(worksheet, row_number, member.to_row(), 'update member')
        return member

    def update_member_dues(self, member_id, dues_paid, outstanding, year=None):
        worksheet, row_number, row = self._find(MEMBERS_SHEET, MEMBER_COLUMNS['EMAIL'], member_id, 'fetch member')
        if row_number is None:
            raise NotFound(f"Member {member_id} not found")
        member = Member.from_row(row)
        member.dues_paid = parse_amount(dues_paid)
        member.outstanding = parse_amount(outstanding)
        if year:
            member.year = str(year)
        self._write_row(worksheet, row_number, member.to_row(), 'update member dues')
        return member

    def delete_member(self, member_id):
        worksheet, row_number, _ = self._find(MEMBERS_SHEET, MEMBER_COLUMNS['EMAIL'], member_id, 'fetch member')
        if row_number is None:
            raise NotFound(f"Member {member_id} not found")
        self._clear_row(worksheet, row_number, len(SHEET_HEADERS[MEMBERS_SHEET]), 'delete member')
        logger.info(f"Deleted member {member_id}")

    # ------------------------------------------------------------------
    # payments

    def get_payments(self):
        _, rows = self._data_rows(PAYMENTS_SHEET, 'fetch payments')
        return [Payment.from_row(row) for _, row in rows if row and str(row[0]).strip()]

    def get_member_payments(self, member_id):
        """A member's payments, newest first"""
        payments = [p for p in self.get_payments() if self._same_email(p.member_id, member_id)]
        payments.sort(key=lambda p: parse_sheet_date(p.date) or date.min, reverse=True)
        return payments

    def add_payment(self, payment):
        self._append_row(PAYMENTS_SHEET, payment.to_row(), 'record payment')
        logger.info(f"Recorded payment {payment.id} of {payment.amount} for {payment.member_id}")
        return payment

    def record_payment(self, member_id, amount, details=None, against_yearly_dues=False):
        """
        Update the member's totals, then append the payment row.

        The two writes are independent. When the member update succeeds but
        the payment append fails, the update stands and the result carries a
        warning instead of raising.

        With against_yearly_dues the new outstanding balance is the yearly
        dues less everything paid so far; otherwise the payment is taken off
        the current balance.
        """
        details = details or {}
        member = self.get_member(member_id)
        amount = parse_amount(amount)

        if against_yearly_dues:
            new_paid = member.dues_paid + amount
            new_outstanding = outstanding_for_year(self.yearly_dues, new_paid)
        else:
            new_paid, new_outstanding = apply_payment(member.dues_paid, member.outstanding, amount)
        year = details.get('year') if against_yearly_dues else None
        member = self.update_member_dues(member.email, new_paid, new_outstanding, year)

        payment = Payment(
            id=new_payment_id(),
            member_id=member.email,
            amount=amount,
            date=details.get('date') or date.today().isoformat(),
            method=details.get('method') or 'cash',
            month=details.get('month', ''),
            year=str(details.get('year', '')),
            status=details.get('status') or 'completed',
        )

        result = {'payment': payment, 'member': member}
        try:
            self.add_payment(payment)
        except SheetError as e:
            logger.error(f"Member {member.email} updated but payment row was not saved: {e}")
            result['warning'] = 'Member balance was updated but the payment record could not be saved'
        return result

    # ------------------------------------------------------------------
    # stats and email log

    def get_dashboard_stats(self):
        members = self.get_members()
        payments = self.get_payments()
        names = {m.email.lower(): m.name for m in members}

        recent = sorted(payments, key=lambda p: parse_sheet_date(p.date) or date.min, reverse=True)[:5]
        recent_payments = []
        for payment in recent:
            data = payment.to_dict()
            data['memberName'] = names.get(payment.member_id.lower(), 'Unknown Member')
            recent_payments.append(data)

        active = sum(1 for m in members if m.status == 'active')
        return {
            'totalMembers': len(members),
            'activeMembers': active,
            'inactiveMembers': len(members) - active,
            'totalCollected': round(sum(p.amount for p in payments if p.is_completed), 2),
            'totalOutstanding': round(sum(m.outstanding for m in members), 2),
            'recentPayments': recent_payments,
        }

    def log_email(self, recipient, status, email_type, detail=''):
        """Append one line to Email_Logs; failures are logged, never raised"""
        row = [datetime.now(timezone.utc).isoformat(), recipient, status, email_type, str(detail or '')]
        try:
            self._append_row(EMAIL_LOGS_SHEET, row, 'log email')
        except SheetError as e:
            logger.warning(f"Could not write email log for {recipient}: {e}")

    def get_email_stats(self):
        _, rows = self._data_rows(EMAIL_LOGS_SHEET, 'fetch email logs')
        rows = [row for _, row in rows if row and str(row[0]).strip()]
        today = datetime.now(timezone.utc).date().isoformat()
        failed_today = sum(
            1 for row in rows
            if str(row[0])[:10] == today and len(row) > 2 and row[2] == 'failed'
        )
        return {
            'totalSent': len(rows),
            'failedToday': failed_today,
            'lastSentAt': rows[-1][0] if rows else None,
        }


def get_store():
    """The store attached to the running app, or None when sheets are not configured"""
    return current_app.extensions.get('sheet_store')


def require_store():
    """The configured store; raises SheetError when the spreadsheet is not set up"""
    store = get_store()
    if store is None:
        raise SheetError("Google Sheets is not configured")
    return store


HTTP_STATUS = {
    NotFound: 404,
    AlreadyExists: 409,
    AccessDenied: 403,
    SheetError: 500,
}


def http_status(error):
    for error_class, status in HTTP_STATUS.items():
        if isinstance(error, error_class):
            return status
    return 500
