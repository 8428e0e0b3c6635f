"""Fee records as the backend returns them."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from apps.core.api.fields import (
    optional_decimal,
    parse_timestamp,
    record_id,
    reference_id,
    reference_name,
    to_decimal,
    to_text,
)

STATUS_PENDING = 'pending'
STATUS_PAID = 'paid'
STATUS_OVERDUE = 'overdue'
STATUS_CHOICES = (
    (STATUS_PENDING, 'Pending'),
    (STATUS_PAID, 'Paid'),
)

METHOD_CASH = 'Cash'
METHOD_ONLINE = 'UPI/Net Banking/RTGS'
METHOD_CHEQUE = 'Cheque/DD'
PAYMENT_METHOD_CHOICES = (
    (METHOD_CASH, 'Cash'),
    (METHOD_ONLINE, 'UPI / Net Banking / RTGS'),
    (METHOD_CHEQUE, 'Cheque / DD'),
)

FEE_TYPE_CHOICES = (
    ('Tuition Fee', 'Tuition Fee'),
    ('Hostel Fee', 'Hostel Fee'),
    ('Security Fee', 'Security Fee'),
    ('Miscellaneous Fee', 'Miscellaneous Fee'),
    ('AC Charge', 'AC Charge'),
)

UNKNOWN = 'Unknown'


@dataclass(frozen=True)
class FeePayment:
    id: str
    student_id: str = ''
    student_name: str = ''
    student_class: str = ''
    student_roll_number: str = ''
    student_phone: str = ''
    status: str = ''
    amount: Decimal = Decimal('0')
    paid_amount: Decimal | None = None
    paid_date: datetime | None = None
    due_date: datetime | None = None
    created_at: datetime | None = None
    fee_type: str = ''
    payment_method: str = ''
    transaction_id: str = ''
    check_number: str = ''
    bank_name: str = ''
    description: str = ''

    @classmethod
    def from_api(cls, payload):
        if not isinstance(payload, dict):
            payload = {}
        student = payload.get('studentId') or payload.get('student')
        embedded = student if isinstance(student, dict) else {}
        class_value = embedded.get('class') or embedded.get('department')

        return cls(
            id=record_id(payload),
            student_id=reference_id(student),
            student_name=reference_name(student),
            student_class=reference_name(class_value) or (to_text(class_value) if not isinstance(class_value, dict) else ''),
            student_roll_number=to_text(embedded.get('rollNumber')),
            student_phone=to_text(embedded.get('phone')),
            status=to_text(payload.get('status')).lower(),
            amount=to_decimal(payload.get('amount')),
            paid_amount=optional_decimal(payload.get('paidAmount')),
            paid_date=parse_timestamp(payload.get('paidDate')),
            due_date=parse_timestamp(payload.get('dueDate') or payload.get('balanceDate')),
            created_at=parse_timestamp(payload.get('createdAt')),
            fee_type=to_text(payload.get('feeType')),
            payment_method=to_text(payload.get('paymentMethod')),
            transaction_id=to_text(payload.get('transactionId')),
            check_number=to_text(payload.get('checkNumber')),
            bank_name=to_text(payload.get('bankName')),
            description=to_text(payload.get('description')),
        )

    @property
    def is_paid(self):
        return self.status == STATUS_PAID

    @property
    def settled_amount(self) -> Decimal:
        """What a paid record contributes: paidAmount when present, else amount."""
        return self.paid_amount if self.paid_amount is not None else self.amount

    @property
    def balance_amount(self) -> Decimal:
        return self.amount - (self.paid_amount or Decimal('0'))

    @property
    def display_student_name(self):
        return self.student_name or UNKNOWN

    @property
    def display_student_class(self):
        return self.student_class or UNKNOWN


def decode_payments(rows):
    return [FeePayment.from_api(row) for row in rows or [] if isinstance(row, dict)]
