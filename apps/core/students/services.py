from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from apps.core.fees.services import ZERO, paid_totals_by_student

from .models import FEE_COMPONENT_FIELDS, Student


@dataclass(frozen=True)
class FeeComponentRow:
    label: str
    total: Decimal
    paid: Decimal

    @property
    def due(self):
        return self.total - self.paid


def fee_component_breakdown(student: Student, paid_amount: Decimal) -> list[FeeComponentRow]:
    """Spread the paid total over the fee components in their listed order."""
    remaining = max(paid_amount, ZERO)
    rows = []
    for key, label in FEE_COMPONENT_FIELDS:
        total = student.fee_components.get(key) or ZERO
        if total <= 0:
            continue
        paid = min(total, remaining)
        remaining -= paid
        rows.append(FeeComponentRow(label=label, total=total, paid=paid))
    return rows


def filter_students(students, query='', department_ids=None):
    query = (query or '').strip().lower()
    selected = []
    for student in students:
        if department_ids is not None and student.department_id not in department_ids:
            continue
        if query and not any(
            query in value.lower()
            for value in (student.name, student.roll_number, student.department_name, student.speciality_name)
        ):
            continue
        selected.append(student)
    return selected


def fee_status_by_student(students, payments):
    totals = paid_totals_by_student(payments)
    return {
        student.id: 'paid' if student.total_fee - totals.get(student.id, ZERO) <= 0 else 'due'
        for student in students
        if student.id
    }
