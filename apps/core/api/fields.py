"""Lenient decoders for backend JSON fields.

The backend is inconsistent about ids (``_id`` or ``id``), embeds related
records in some endpoints and sends bare ids in others, and sends dates both as
ISO timestamps and as ``dd-mm-YYYY``. Missing or malformed values decode to an
empty default instead of raising.
"""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

DISPLAY_DATE_FORMAT = '%d-%m-%Y'


def to_decimal(value) -> Decimal:
    if isinstance(value, bool):
        return Decimal('0')
    try:
        result = Decimal(str(value if value not in (None, '') else '0'))
    except (InvalidOperation, ValueError):
        return Decimal('0')
    return result if result.is_finite() else Decimal('0')


def optional_decimal(value) -> Decimal | None:
    if value is None or value == '':
        return None
    return to_decimal(value)


def to_text(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def record_id(payload) -> str:
    if not isinstance(payload, dict):
        return ''
    return to_text(payload.get('_id') or payload.get('id'))


def reference_id(value) -> str:
    """Id of a related record given either the bare id or the embedded record."""
    if isinstance(value, dict):
        return record_id(value)
    return to_text(value)


def reference_name(value) -> str:
    if isinstance(value, dict):
        return to_text(value.get('name'))
    return ''


def _make_aware(value: datetime) -> datetime:
    if timezone.is_naive(value):
        return timezone.make_aware(value)
    return value


def parse_timestamp(value) -> datetime | None:
    if isinstance(value, datetime):
        return _make_aware(value)
    if isinstance(value, date):
        return _make_aware(datetime.combine(value, time.min))
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        parsed = parse_datetime(text)
        if parsed is not None:
            return _make_aware(parsed)
        parsed_date = parse_date(text)
    except ValueError:
        return None
    if parsed_date is None:
        try:
            parsed_date = datetime.strptime(text, DISPLAY_DATE_FORMAT).date()
        except ValueError:
            return None
    return _make_aware(datetime.combine(parsed_date, time.min))


def format_display_date(value) -> str:
    if not value:
        return ''
    return value.strftime(DISPLAY_DATE_FORMAT)
