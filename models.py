"""
Data models for the dues spreadsheet: Members, Payments and Users sheets
"""
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, List, Optional

from utils import (
    parse_amount, parse_bool, format_bool, format_sheet_date, to_iso_date,
    parse_year, parse_sheet_date, MONTH_NAMES
)

MEMBERS_SHEET = 'Members'
PAYMENTS_SHEET = 'Payments'
USERS_SHEET = 'Users'
EMAIL_LOGS_SHEET = 'Email_Logs'

# Column positions (0-based). Readers index rows by position, so the order
# of these headers is the sheet schema.
MEMBER_COLUMNS = {
    'NAME': 0,          # A
    'EMAIL': 1,         # B
    'PASSWORD': 2,      # C (always empty in Members)
    'IS_ADMIN': 3,      # D
    'PHONE': 4,         # E
    'JOIN_DATE': 5,     # F
    'BIRTHDAY': 6,      # G
    'ANNIVERSARY': 7,   # H
    'STATUS': 8,        # I
    'DUES_PAID': 9,     # J
    'OUTSTANDING': 10,  # K
    'YEAR': 11,         # L
}

PAYMENT_COLUMNS = {
    'ID': 0,         # A
    'MEMBER_ID': 1,  # B
    'AMOUNT': 2,     # C
    'DATE': 3,       # D
    'METHOD': 4,     # E
    'MONTH': 5,      # F
    'YEAR': 6,       # G
    'STATUS': 7,     # H
}

USER_COLUMNS = {
    'EMAIL': 0,     # A
    'PASSWORD': 1,  # B
    'IS_ADMIN': 2,  # C
    'NAME': 3,      # D
}

SHEET_HEADERS = {
    MEMBERS_SHEET: ['Name', 'Email', 'Password', 'IsAdmin', 'Phone Number', 'Join Date',
                    'Birthday', 'Anniversary', 'Status', 'Dues Amount', 'Outstanding', 'Year'],
    PAYMENTS_SHEET: ['ID', 'Member Email', 'Amount', 'Date', 'Method', 'Month', 'Year', 'Status'],
    USERS_SHEET: ['Email', 'Password', 'IsAdmin', 'Name'],
    EMAIL_LOGS_SHEET: ['Timestamp', 'Recipient', 'Status', 'Type', 'Detail'],
}

MEMBER_STATUSES = ('active', 'inactive', 'on leave')
PAYMENT_METHODS = ('cash', 'card', 'transfer', 'cheque')
PAYMENT_STATUSES = ('completed', 'pending')


def _cell(row, index, default=''):
    """Cell value from a sheet row; the API drops trailing empty cells"""
    if index < len(row) and row[index] is not None:
        return row[index]
    return default


def _first(data, *keys, default=None):
    """First key present in a request payload (UI sends camelCase and legacy names)"""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _column_letter(index):
    return chr(ord('A') + index)


def row_range(row_number, width):
    """Worksheet-relative A1 range covering one full row, e.g. A5:L5"""
    return f"A{row_number}:{_column_letter(width - 1)}{row_number}"


@dataclass
class Member:
    """One row of the Members sheet; email doubles as the member id"""
    name: str
    email: str
    is_admin: bool = False
    phone: str = ''
    join_date: str = ''
    birthday: str = ''
    anniversary: str = ''
    status: str = 'inactive'
    dues_paid: float = 0.0
    outstanding: float = 0.0
    year: str = field(default_factory=lambda: str(datetime.now().year))
    payments: Optional[List['Payment']] = None

    @property
    def id(self):
        return self.email

    @classmethod
    def from_row(cls, row):
        return cls(
            name=str(_cell(row, MEMBER_COLUMNS['NAME'])).strip(),
            email=str(_cell(row, MEMBER_COLUMNS['EMAIL'])).strip(),
            is_admin=parse_bool(_cell(row, MEMBER_COLUMNS['IS_ADMIN'])),
            phone=str(_cell(row, MEMBER_COLUMNS['PHONE'])).strip(),
            join_date=format_sheet_date(_cell(row, MEMBER_COLUMNS['JOIN_DATE'])),
            birthday=format_sheet_date(_cell(row, MEMBER_COLUMNS['BIRTHDAY'])),
            anniversary=format_sheet_date(_cell(row, MEMBER_COLUMNS['ANNIVERSARY'])),
            status=(str(_cell(row, MEMBER_COLUMNS['STATUS'])).strip() or 'inactive').lower(),
            dues_paid=parse_amount(_cell(row, MEMBER_COLUMNS['DUES_PAID'], '0')),
            outstanding=parse_amount(_cell(row, MEMBER_COLUMNS['OUTSTANDING'], '0')),
            year=str(_cell(row, MEMBER_COLUMNS['YEAR'])).strip() or str(datetime.now().year),
        )

    def to_row(self):
        return [
            self.name,
            self.email,
            '',
            format_bool(self.is_admin),
            self.phone,
            format_sheet_date(self.join_date),
            format_sheet_date(self.birthday),
            format_sheet_date(self.anniversary),
            self.status,
            _format_number(self.dues_paid),
            _format_number(self.outstanding),
            str(self.year),
        ]

    @classmethod
    def from_payload(cls, data, default_outstanding=0.0):
        """Build a new member from an API payload"""
        member = cls(
            name=str(_first(data, 'name', default='')).strip(),
            email=str(_first(data, 'email', default='')).strip(),
            is_admin=parse_bool(_first(data, 'isAdmin', 'is_admin', default=False)),
            join_date=format_sheet_date(_first(data, 'joinDate', 'join_date')) or date.today().strftime('%d/%m/%Y'),
            status=str(_first(data, 'memberStatus', 'status', default='active')).lower(),
        )
        member.apply_updates(data, default_outstanding=default_outstanding)
        return member

    def apply_updates(self, data, default_outstanding=None):
        """Merge a partial update payload into this member"""
        name = _first(data, 'name')
        if name:
            self.name = str(name).strip()
        email = _first(data, 'email')
        if email:
            self.email = str(email).strip()
        is_admin = _first(data, 'isAdmin', 'is_admin')
        if is_admin is not None:
            self.is_admin = parse_bool(is_admin)
        phone = _first(data, 'phoneNumber', 'phone')
        if phone is not None:
            self.phone = str(phone).strip()
        for attr, keys in (('join_date', ('joinDate', 'join_date')),
                           ('birthday', ('birthday',)),
                           ('anniversary', ('anniversary', 'anniversaryDate'))):
            value = _first(data, *keys)
            if value:
                setattr(self, attr, format_sheet_date(value))
        status = _first(data, 'memberStatus', 'status')
        if status:
            self.status = str(status).strip().lower()
        paid = _first(data, 'duesAmountPaid', 'amountPaid', 'dues_paid')
        if paid is not None:
            self.dues_paid = parse_amount(paid)
        outstanding = _first(data, 'outstandingYTD', 'balance', 'outstanding')
        if outstanding is not None:
            self.outstanding = parse_amount(outstanding)
        elif default_outstanding is not None:
            self.outstanding = default_outstanding
        year = _first(data, 'year')
        if year:
            self.year = str(year)
        return self

    def to_dict(self, include_payments=True):
        data = {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phoneNumber': self.phone,
            'joinDate': to_iso_date(self.join_date),
            'birthday': to_iso_date(self.birthday),
            'anniversary': to_iso_date(self.anniversary),
            'memberStatus': self.status,
            'duesAmountPaid': self.dues_paid,
            'outstandingYTD': self.outstanding,
            'year': self.year,
            'isAdmin': self.is_admin,
        }
        if include_payments and self.payments is not None:
            data['payments'] = [payment.to_dict() for payment in self.payments]
        return data


@dataclass
class Payment:
    """One row of the Payments sheet, linked to a member by email"""
    id: str
    member_id: str
    amount: float
    date: str
    method: str = 'cash'
    month: str = ''
    year: str = ''
    status: str = 'completed'

    @classmethod
    def from_row(cls, row):
        status = str(_cell(row, PAYMENT_COLUMNS['STATUS'])).strip().lower()
        return cls(
            id=str(_cell(row, PAYMENT_COLUMNS['ID'])),
            member_id=str(_cell(row, PAYMENT_COLUMNS['MEMBER_ID'])).strip(),
            amount=parse_amount(_cell(row, PAYMENT_COLUMNS['AMOUNT'], '0')),
            date=to_iso_date(_cell(row, PAYMENT_COLUMNS['DATE'])),
            method=str(_cell(row, PAYMENT_COLUMNS['METHOD'])).strip().lower() or 'cash',
            month=str(_cell(row, PAYMENT_COLUMNS['MONTH'])).strip(),
            year=str(_cell(row, PAYMENT_COLUMNS['YEAR'])).strip(),
            status='completed' if status == 'completed' else 'pending',
        )

    def to_row(self):
        return [
            self.id,
            self.member_id,
            _format_number(self.amount),
            self.date,
            self.method,
            self.month,
            str(self.year),
            self.status,
        ]

    @property
    def is_completed(self):
        return self.status == 'completed'

    @property
    def effective_year(self) -> Optional[int]:
        """Year the payment counts toward: its year cell, else the year of its date"""
        year = parse_year(self.year)
        if year is not None:
            return year
        parsed = parse_sheet_date(self.date)
        return parsed.year if parsed else None

    def to_dict(self):
        data = asdict(self)
        data['memberId'] = data.pop('member_id')
        return data


@dataclass
class UserCredentials:
    """One row of the Users sheet (login record)"""
    email: str
    password: str = ''
    is_admin: bool = False
    name: str = ''

    @property
    def id(self):
        return self.email

    @classmethod
    def from_row(cls, row):
        return cls(
            email=str(_cell(row, USER_COLUMNS['EMAIL'])).strip(),
            password=str(_cell(row, USER_COLUMNS['PASSWORD'])),
            is_admin=parse_bool(_cell(row, USER_COLUMNS['IS_ADMIN'])),
            name=str(_cell(row, USER_COLUMNS['NAME'])),
        )

    def to_row(self):
        return [self.email, self.password, format_bool(self.is_admin), self.name]

    def to_dict(self):
        """Public view; the password hash never leaves the server"""
        return {
            'id': self.email,
            'name': self.name,
            'email': self.email,
            'isAdmin': self.is_admin,
        }


def apply_payment(dues_paid, outstanding, amount):
    """New (dues paid, outstanding) after a payment; the balance never goes below zero"""
    new_paid = parse_amount(dues_paid) + parse_amount(amount)
    new_outstanding = max(0.0, parse_amount(outstanding) - parse_amount(amount))
    return new_paid, new_outstanding


def outstanding_for_year(yearly_dues, dues_paid):
    """Outstanding balance when measured against the full-year dues"""
    return max(0.0, parse_amount(yearly_dues) - parse_amount(dues_paid))


def new_payment_id():
    return f"PMT{int(datetime.now().timestamp() * 1000)}"


def payment_defaults(data, today=None) -> Dict[str, str]:
    """Date/method/month/year for a payment payload, filling gaps from today"""
    today = today or date.today()
    return {
        'date': to_iso_date(_first(data, 'date', default='')) or today.isoformat(),
        'method': str(_first(data, 'method', default='cash')).strip().lower() or 'cash',
        'month': str(_first(data, 'month', default='')).strip() or MONTH_NAMES[today.month - 1],
        'year': str(_first(data, 'year', default='')).strip() or str(today.year),
    }


def _format_number(value):
    """Write whole amounts without a trailing .0 (the sheet shows what we send)"""
    value = parse_amount(value)
    if value.is_integer():
        return str(int(value))
    return str(value)
