"""
Value helpers for spreadsheet cells: amounts, dates, booleans and months
"""
import math
import re
from datetime import date, datetime
from typing import Optional

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

# Formats tried, in order, for dates typed into the sheet by hand
_DATE_FORMATS = [
    '%d/%m/%Y',
    '%Y-%m-%d',
    '%d-%m-%Y',
    '%d %B %Y',
    '%d %b %Y',
    '%B %d, %Y',
    '%b %d, %Y',
    '%d.%m.%Y',
]

_ISO_DATETIME = re.compile(r'^(\d{4}-\d{2}-\d{2})[T ]')
_NON_NUMERIC = re.compile(r'[^0-9.\-]+')


def parse_amount(value):
    """Parse a money cell ('£1,200.50', '120', 45.0) into a float, 0.0 when invalid"""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NON_NUMERIC.sub('', str(value))
    if not cleaned:
        return 0.0
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def parse_sheet_date(value) -> Optional[date]:
    """Parse any of the date spellings found in the sheet, None when unparseable"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    iso = _ISO_DATETIME.match(text)
    if iso:
        text = iso.group(1)

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_sheet_date(value):
    """Normalise a date to dd/mm/yyyy; unparseable text is returned unchanged"""
    if value is None or value == '':
        return ''
    parsed = parse_sheet_date(value)
    if parsed is None:
        return str(value)
    return parsed.strftime('%d/%m/%Y')


def to_iso_date(value):
    """Normalise a date to yyyy-mm-dd; unparseable text is returned unchanged"""
    if value is None or value == '':
        return ''
    parsed = parse_sheet_date(value)
    if parsed is None:
        return str(value)
    return parsed.isoformat()


def format_display_date(value, empty='Not provided'):
    parsed = parse_sheet_date(value)
    if parsed is None:
        return str(value) if value else empty
    return f"{parsed.day} {MONTH_NAMES[parsed.month - 1]} {parsed.year}"


def parse_bool(value):
    """Read a boolean cell; only a case-insensitive 'true' counts"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return False


def format_bool(value):
    return 'true' if value else 'false'


def format_currency(amount, symbol='£'):
    """Format an amount for display, e.g. £1,234.50"""
    value = parse_amount(amount)
    sign = '-' if value < 0 else ''
    return f"{sign}{symbol}{abs(value):,.2f}"


def month_index(month) -> Optional[int]:
    """1-based month number for a month name, abbreviation or number"""
    if month is None:
        return None
    if isinstance(month, int):
        return month if 1 <= month <= 12 else None
    text = str(month).strip()
    if text.isdigit():
        number = int(text)
        return number if 1 <= number <= 12 else None
    lowered = text.lower()
    for index, name in enumerate(MONTH_NAMES, start=1):
        if lowered == name.lower() or (len(lowered) >= 3 and name.lower().startswith(lowered)):
            return index
    return None


def month_name(index):
    return MONTH_NAMES[index - 1]


def parse_year(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if re.fullmatch(r'\d{4}', text):
        return int(text)
    try:
        number = float(text)
    except ValueError:
        return None
    if number.is_integer() and 1000 <= number <= 9999:
        return int(number)
    return None


def parse_payment_amount(value):
    """Amount from a request payload, or None when missing or not a finite number"""
    if value is None or isinstance(value, bool) or value == '':
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
    return number if math.isfinite(number) else None
