"""Student records as the backend returns them.

The panel stores nothing; these are read-only snapshots decoded per page load.
"""
from __future__ import annotations

from dataclasses import dataclass, field
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

FEE_COMPONENT_FIELDS = (
    ('tuitionFee', 'Tuition Fee'),
    ('hostelFee', 'Hostel Fee'),
    ('securityFee', 'Security Fee'),
    ('miscellaneousFee', 'Miscellaneous Fee'),
    ('acCharge', 'AC Charge'),
)


@dataclass(frozen=True)
class Student:
    id: str
    name: str = ''
    roll_number: str = ''
    department_id: str = ''
    department_name: str = ''
    speciality_id: str = ''
    speciality_name: str = ''
    phone: str = ''
    email: str = ''
    parent_name: str = ''
    parent_phone: str = ''
    address: str = ''
    created_at: datetime | None = None
    admission_date: datetime | None = None
    date_of_birth: datetime | None = None
    fee_type: str = ''
    total_fee: Decimal = Decimal('0')
    fee_components: dict = field(default_factory=dict, compare=False)

    @classmethod
    def from_api(cls, payload):
        if not isinstance(payload, dict):
            payload = {}

        department = payload.get('department')
        speciality = payload.get('speciality')
        class_name = payload.get('class')

        components = {}
        for key, _label in FEE_COMPONENT_FIELDS:
            amount = optional_decimal(payload.get(key))
            if amount is not None:
                components[key] = amount

        return cls(
            id=record_id(payload),
            name=to_text(payload.get('name')),
            roll_number=to_text(payload.get('rollNumber')),
            department_id=reference_id(department),
            department_name=reference_name(department) or reference_name(class_name) or (
                to_text(class_name) if not isinstance(class_name, dict) else ''
            ),
            speciality_id=reference_id(speciality),
            speciality_name=reference_name(speciality) or to_text(payload.get('section')),
            phone=to_text(payload.get('phone')),
            email=to_text(payload.get('email')),
            parent_name=to_text(payload.get('parentName')),
            parent_phone=to_text(payload.get('parentPhone')),
            address=to_text(payload.get('address')),
            created_at=parse_timestamp(payload.get('createdAt')),
            admission_date=parse_timestamp(payload.get('admissionDate')),
            date_of_birth=parse_timestamp(payload.get('dateOfBirth')),
            fee_type=to_text(payload.get('feeType')),
            total_fee=to_decimal(payload.get('totalFee')),
            fee_components=components,
        )

    @property
    def display_name(self):
        return self.name or 'Unknown Student'


def decode_students(rows):
    return [Student.from_api(row) for row in rows or [] if isinstance(row, dict)]
