from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from io import BytesIO

from PIL import Image, ImageDraw
from django.conf import settings
from django.utils import timezone

from apps.core.api.fields import format_display_date, parse_timestamp
from apps.core.students.models import Student

from .models import STATUS_OVERDUE, STATUS_PENDING, UNKNOWN, FeePayment

logger = logging.getLogger(__name__)

ZERO = Decimal('0')

WINDOW_TODAY = 'today'
WINDOW_WEEK = 'week'
WINDOW_MONTH = 'month'
WINDOW_YEAR = 'year'
WINDOW_CHOICES = (
    (WINDOW_TODAY, 'Today'),
    (WINDOW_WEEK, 'This Week'),
    (WINDOW_MONTH, 'This Month'),
    (WINDOW_YEAR, 'This Year'),
)
WINDOW_KINDS = tuple(kind for kind, _label in WINDOW_CHOICES)

END_OF_DAY = time(23, 59, 59, 999000)

PRIORITY_CRITICAL = 'Critical'
PRIORITY_OVERDUE = 'Overdue'
PRIORITY_UPCOMING = 'Upcoming'


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def _as_students(rows):
    return [row if isinstance(row, Student) else Student.from_api(row) for row in rows or [] if row is not None]


def _as_payments(rows):
    return [row if isinstance(row, FeePayment) else FeePayment.from_api(row) for row in rows or [] if row is not None]


@dataclass(frozen=True)
class DueRecord:
    student: Student
    paid_amount: Decimal
    due_amount: Decimal


def paid_totals_by_student(payments) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = {}
    for payment in _as_payments(payments):
        if not payment.is_paid or not payment.student_id:
            continue
        contribution = max(payment.settled_amount, ZERO)
        totals[payment.student_id] = totals.get(payment.student_id, ZERO) + contribution
    return totals


def _balances(students, payments):
    totals = paid_totals_by_student(payments)
    for student in _as_students(students):
        paid = totals.get(student.id, ZERO) if student.id else ZERO
        yield DueRecord(student=student, paid_amount=paid, due_amount=student.total_fee - paid)


def compute_due_fees(students, payments) -> list[DueRecord]:
    """Students that still owe money, in the order the students were given.

    Payments that reference no known student count towards nobody.
    """
    return [record for record in _balances(students, payments) if record.due_amount > 0]


def find_overpayments(students, payments) -> list[DueRecord]:
    overpaid = [record for record in _balances(students, payments) if record.due_amount < 0]
    if overpaid:
        logger.warning(
            'Paid amount exceeds total fee for %s student(s): %s',
            len(overpaid),
            ', '.join(record.student.id or record.student.display_name for record in overpaid),
        )
    return overpaid


def orphan_payments(students, payments) -> list[FeePayment]:
    known_ids = {student.id for student in _as_students(students) if student.id}
    return [payment for payment in _as_payments(payments) if payment.student_id not in known_ids]


@dataclass(frozen=True)
class StudentFeeSummary:
    total_fee: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    payments: list

    @property
    def is_fully_paid(self):
        return self.due_amount <= 0


def student_fee_summary(student: Student, payments) -> StudentFeeSummary:
    """Fee position of one student.

    Rows from the per-student fees endpoint may omit the student reference, so a
    blank ``student_id`` counts as this student's; rows naming another student
    are left out.
    """
    own_payments = [
        replace(payment, student_id=student.id) if not payment.student_id else payment
        for payment in _as_payments(payments)
        if payment.student_id in ('', student.id)
    ]
    paid = paid_totals_by_student(own_payments).get(student.id, ZERO)
    return StudentFeeSummary(
        total_fee=student.total_fee,
        paid_amount=paid,
        due_amount=student.total_fee - paid,
        payments=own_payments,
    )


def normalize_window(window_kind):
    if window_kind in WINDOW_KINDS:
        return window_kind
    return WINDOW_TODAY


def date_window(window_kind, reference=None):
    """Inclusive (start, end) bounds of the window containing ``reference``.

    Weeks run Sunday to Saturday. The bounds carry the reference's tzinfo, so a
    naive reference gives naive bounds.
    """
    reference = reference or timezone.localtime()
    day = reference.date()
    window_kind = normalize_window(window_kind)

    if window_kind == WINDOW_WEEK:
        first = day - timedelta(days=(day.weekday() + 1) % 7)
        last = first + timedelta(days=6)
    elif window_kind == WINDOW_MONTH:
        first = day.replace(day=1)
        last = day.replace(day=calendar.monthrange(day.year, day.month)[1])
    elif window_kind == WINDOW_YEAR:
        first = day.replace(month=1, day=1)
        last = day.replace(month=12, day=31)
    else:
        first = last = day

    tzinfo = reference.tzinfo
    return (
        datetime.combine(first, time.min, tzinfo=tzinfo),
        datetime.combine(last, END_OF_DAY, tzinfo=tzinfo),
    )


def _field_value(record, date_field):
    if isinstance(record, dict):
        value = record.get(date_field)
    else:
        value = getattr(record, date_field, None)
    if isinstance(value, str):
        return parse_timestamp(value)
    return value if isinstance(value, datetime) else None


def _comparable(value: datetime, tzinfo):
    if tzinfo is None:
        if timezone.is_aware(value):
            return timezone.localtime(value).replace(tzinfo=None)
        return value
    if timezone.is_naive(value):
        return value.replace(tzinfo=tzinfo)
    return value


def select_by_date_window(records, window_kind, reference=None, date_field='created_at'):
    start, end = date_window(window_kind, reference)
    selected = []
    for record in records or []:
        value = _field_value(record, date_field)
        if value is None:
            continue
        if start <= _comparable(value, start.tzinfo) <= end:
            selected.append(record)
    return selected


def select_paid_payments(payments, window_kind=None, reference=None):
    paid = [payment for payment in _as_payments(payments) if payment.is_paid]
    if window_kind is None:
        return paid
    return select_by_date_window(paid, window_kind, reference, date_field='paid_date')


@dataclass
class BalanceRow:
    student_id: str
    student_name: str
    student_class: str
    phone: str
    fee_type: str
    due_date: datetime | None
    days_overdue: int
    total_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    payments: list = field(default_factory=list)

    @property
    def balance_amount(self) -> Decimal:
        return self.total_amount - self.paid_amount

    @property
    def priority(self):
        if self.days_overdue > 7:
            return PRIORITY_CRITICAL
        if self.days_overdue > 0:
            return PRIORITY_OVERDUE
        return PRIORITY_UPCOMING


def _is_outstanding(payment: FeePayment):
    if payment.status in (STATUS_PENDING, STATUS_OVERDUE):
        return True
    return payment.paid_amount is not None and payment.paid_amount < payment.amount


def group_balance_fees(payments, today=None) -> list[BalanceRow]:
    """Outstanding fee records grouped per student, first-seen order.

    Days overdue come from the first outstanding record of each student.
    """
    today = today or timezone.localdate()
    rows: dict[str, BalanceRow] = {}

    for payment in _as_payments(payments):
        if not _is_outstanding(payment):
            continue
        key = payment.student_id or 'unknown'
        row = rows.get(key)
        if row is None:
            days_overdue = 0
            if payment.due_date:
                due_day = _comparable(payment.due_date, None).date()
                days_overdue = max(0, (today - due_day).days)
            row = BalanceRow(
                student_id=payment.student_id,
                student_name=payment.student_name or 'Unknown Student',
                student_class=payment.student_class or 'N/A',
                phone=payment.student_phone,
                fee_type=payment.fee_type or 'Fee',
                due_date=payment.due_date,
                days_overdue=days_overdue,
            )
            rows[key] = row
        elif row.payments:
            row.fee_type = 'Multiple Fees'

        row.payments.append(payment)
        row.total_amount += payment.amount
        row.paid_amount += payment.paid_amount or ZERO

    return list(rows.values())


def image_to_pdf_bytes(images):
    if not images:
        return b''
    rgb_images = [img.convert('RGB') for img in images]
    output = BytesIO()
    rgb_images[0].save(output, format='PDF', save_all=True, append_images=rgb_images[1:])
    return output.getvalue()


def receipt_number(payment: FeePayment) -> str:
    suffix = (payment.id or 'DRAFT')[-8:].upper()
    return f'RCPT-{suffix}'


def build_fee_receipt_image(payment: FeePayment, student: Student | None = None):
    width = 1240
    height = 1754
    page = Image.new('RGB', (width, height), color='white')
    draw = ImageDraw.Draw(page)

    student_name = student.display_name if student else payment.display_student_name
    roll_number = (student.roll_number if student else payment.student_roll_number) or '-'
    student_class = (student.department_name if student else payment.student_class) or UNKNOWN
    paid_on = payment.paid_date or payment.created_at

    draw.rectangle((30, 30, width - 30, height - 30), outline='black', width=3)
    draw.text((60, 60), f"{settings.PANEL_INSTITUTION_NAME} - Fee Receipt", fill='black')
    draw.text((60, 110), f"Receipt No: {receipt_number(payment)}", fill='black')
    draw.text((60, 150), f"Generated On: {timezone.localtime().strftime('%Y-%m-%d %H:%M')}", fill='black')
    draw.text((60, 190), f"Student: {student_name} (Roll No: {roll_number})", fill='black')
    draw.text((60, 230), f"Department: {student_class}", fill='black')
    draw.text((60, 270), f"Payment Date: {format_display_date(paid_on) or '-'}", fill='black')
    draw.text((60, 310), f"Mode: {payment.payment_method or '-'}", fill='black')
    draw.text((60, 350), f"Reference: {payment.transaction_id or payment.check_number or '-'}", fill='black')
    if payment.bank_name:
        draw.text((60, 390), f"Bank: {payment.bank_name}", fill='black')

    y = 470
    draw.text((60, y), 'Fee Type', fill='black')
    draw.text((860, y), 'Amount', fill='black')
    draw.line((60, y + 26, width - 60, y + 26), fill='black')
    y += 50

    draw.text((60, y), payment.fee_type or 'Fee', fill='black')
    draw.text((860, y), str(_quantize(payment.amount)), fill='black')
    y += 56

    draw.line((60, y, width - 60, y), fill='black')
    y += 30

    draw.text((60, y), f"Amount Paid: {_quantize(payment.settled_amount)}", fill='black')
    y += 36
    draw.text((60, y), f"Balance: {_quantize(max(payment.amount - payment.settled_amount, ZERO))}", fill='black')
    y += 36
    draw.text((60, y), f"Status: {payment.status.upper() or '-'}", fill='black')
    y += 70

    if payment.description:
        draw.text((60, y), f"Remarks: {payment.description}", fill='black')

    return page


def generate_fee_receipt_pdf(payment: FeePayment, student: Student | None = None) -> bytes:
    image = build_fee_receipt_image(payment, student)
    return image_to_pdf_bytes([image])
