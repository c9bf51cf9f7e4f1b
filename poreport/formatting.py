from __future__ import annotations

import math
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any


_ISO_DATE_PREFIX = re.compile(r'^(\d{4})-(\d{2})-(\d{2})')
_DIGITS_ONLY = re.compile(r'^-?\d+(?:\.\d+)?$')
_EMPRESA_NUMBER = re.compile(r'(\d+)')
_DATE_FORMATS = ('%d/%m/%Y', '%d-%m-%Y', '%Y%m%d', '%Y/%m/%d')


def coerce_amount(value: Any) -> float:
    """Lenient numeric coercion: anything unusable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        token = str(value).strip().replace('$', '').replace(',', '').replace(' ', '')
        if not token:
            return 0.0
        try:
            number = float(token)
        except (TypeError, ValueError):
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def round2(value: float) -> float:
    rounded = round(float(value), 2)
    return 0.0 if rounded == 0 else rounded


def format_currency(value: Any) -> str:
    amount = coerce_amount(value)
    sign = '-' if round2(amount) < 0 else ''
    return f'{sign}${abs(amount):,.2f}'


def format_percent(value: Any, decimals: int = 2) -> str:
    return f'{coerce_amount(value):.{decimals}f}%'


def _from_epoch_millis(value: float) -> date | None:
    try:
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def parse_date(value: Any) -> date | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_epoch_millis(float(value))

    token = str(value).strip()
    if not token:
        return None
    match = _ISO_DATE_PREFIX.match(token)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(token, fmt).date()
        except ValueError:
            continue
    if _DIGITS_ONLY.match(token):
        return _from_epoch_millis(float(token))
    return None


def format_date(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ''


def company_label(empresa: Any) -> str:
    token = str(empresa or '').strip()
    match = _EMPRESA_NUMBER.search(token)
    if match:
        return f'Empresa {match.group(1)}'
    return token


def date_sort_key(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else '9999-12-31'
