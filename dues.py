"""
Monthly dues status and year-over-year carryover.

Everything here is pure: callers pass the member's join date, the monthly
rate and the payment history, and get back "Paid" / "Not Paid" / "N/A"
classifications. Malformed input never raises; bad amounts count as zero and
an unparseable join date makes every month "N/A".

The rule:

* Only completed payments count. A payment belongs to the year in its year
  cell, or failing that the year of its date.
* For each year before the one asked about, that year's payments plus the
  carryover coming in are compared with what the year required (the monthly
  rate for every month from the join month, or January, through December).
  Any surplus rolls into the next year.
* In the year asked about, carryover plus that year's payments, divided by
  the rate and floored, gives the number of consecutive months covered
  starting from the join month (or January). Later months are "Not Paid".
"""
import math
from collections import defaultdict
from typing import Dict, List, Optional

from utils import (
    MONTH_NAMES, parse_amount, parse_sheet_date, parse_year, month_index
)

PAID = 'Paid'
NOT_PAID = 'Not Paid'
NOT_APPLICABLE = 'N/A'

# Guards floor() against float noise such as 0.1 + 0.2
_EPSILON = 1e-9


def _payment_parts(payment):
    """(status, amount, year) for a Payment object or a plain dict"""
    if isinstance(payment, dict):
        status = payment.get('status')
        amount = payment.get('amount')
        year = parse_year(payment.get('year'))
        if year is None:
            parsed = parse_sheet_date(payment.get('date'))
            year = parsed.year if parsed else None
    else:
        status = getattr(payment, 'status', None)
        amount = getattr(payment, 'amount', None)
        year = getattr(payment, 'effective_year', None)
    return str(status or '').strip().lower(), parse_amount(amount), year


def completed_totals_by_year(payments) -> Dict[int, float]:
    totals = defaultdict(float)
    for payment in payments or []:
        status, amount, year = _payment_parts(payment)
        if status != 'completed' or year is None:
            continue
        totals[year] += amount
    return dict(totals)


def first_billable_month(join, year):
    """1-based month where dues start in a given year"""
    return join.month if year == join.year else 1


def required_for_year(join, year, rate):
    """Dues owed for a whole year; nothing before the member joined"""
    if join is None or year < join.year or rate <= 0:
        return 0.0
    months = 12 - first_billable_month(join, year) + 1
    return rate * months


def carryover_into(year, join_date, payments, rate, totals=None):
    """Surplus from earlier years credited toward the given year"""
    join = parse_sheet_date(join_date)
    if join is None:
        return 0.0
    year = int(year)
    if totals is None:
        totals = completed_totals_by_year(payments)

    earlier_years = [y for y in totals if y < year]
    first_year = min([join.year] + earlier_years)

    carry = 0.0
    for current in range(first_year, year):
        available = carry + totals.get(current, 0.0)
        carry = max(0.0, available - required_for_year(join, current, rate))
    return carry


def months_covered(year, join_date, payments, rate, totals=None):
    """How many months, from the first billable month, the year's money pays for"""
    if rate <= 0:
        return 12
    if totals is None:
        totals = completed_totals_by_year(payments)
    year = int(year)
    total = carryover_into(year, join_date, payments, rate, totals) + totals.get(year, 0.0)
    return max(0, int(math.floor(total / rate + _EPSILON)))


def payment_status(month, year, join_date, payments, rate, totals=None):
    """'Paid', 'Not Paid' or 'N/A' for one month of one year"""
    join = parse_sheet_date(join_date)
    index = month_index(month)
    year = parse_year(year)
    if join is None or index is None or year is None:
        return NOT_APPLICABLE

    if (year, index) < (join.year, join.month):
        return NOT_APPLICABLE

    if rate <= 0:
        return PAID

    covered = months_covered(year, join, payments, rate, totals)
    start = first_billable_month(join, year)
    return PAID if index < start + covered else NOT_PAID


def year_statuses(year, join_date, payments, rate) -> List[Dict[str, str]]:
    """Status of all twelve months of a year, in calendar order"""
    totals = completed_totals_by_year(payments)
    return [
        {'month': name, 'status': payment_status(number, year, join_date, payments, rate, totals)}
        for number, name in enumerate(MONTH_NAMES, start=1)
    ]


def dues_summary(year, join_date, payments, rate):
    """Yearly picture for the member dashboard: what was owed, paid and carried"""
    year = parse_year(year)
    join = parse_sheet_date(join_date)
    totals = completed_totals_by_year(payments)
    months = year_statuses(year, join_date, payments, rate) if year is not None else []

    if join is None or year is None:
        return {
            'year': year,
            'monthlyRate': rate,
            'carryoverIn': 0.0,
            'paidThisYear': totals.get(year, 0.0) if year is not None else 0.0,
            'required': 0.0,
            'monthsDue': 0,
            'monthsCovered': 0,
            'outstanding': 0.0,
            'carryoverOut': 0.0,
            'paidThrough': None,
            'months': months,
        }

    carry_in = carryover_into(year, join, payments, rate, totals)
    paid = totals.get(year, 0.0)
    required = required_for_year(join, year, rate)
    months_due = 0 if year < join.year else 12 - first_billable_month(join, year) + 1
    covered = min(months_due, months_covered(year, join, payments, rate, totals)) if months_due else 0

    paid_through: Optional[str] = None
    if covered:
        paid_through = MONTH_NAMES[first_billable_month(join, year) + covered - 2]

    return {
        'year': year,
        'monthlyRate': rate,
        'carryoverIn': round(carry_in, 2),
        'paidThisYear': round(paid, 2),
        'required': round(required, 2),
        'monthsDue': months_due,
        'monthsCovered': covered,
        'outstanding': round(max(0.0, required - (carry_in + paid)), 2),
        'carryoverOut': round(max(0.0, carry_in + paid - required), 2),
        'paidThrough': paid_through,
        'months': months,
    }


def available_years(payments, join_date=None, current_year=None):
    """Years worth showing in a year picker, newest first"""
    years = set()
    for payment in payments or []:
        _, _, year = _payment_parts(payment)
        if year is not None:
            years.add(year)
    join = parse_sheet_date(join_date)
    if join is not None:
        years.add(join.year)
    if current_year is not None:
        years.add(int(current_year))
    return sorted(years, reverse=True)
