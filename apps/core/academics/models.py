"""Departments and specialities as the backend returns them."""
from __future__ import annotations

from dataclasses import dataclass

from apps.core.api.fields import record_id, reference_id, reference_name, to_text


@dataclass(frozen=True)
class Department:
    id: str
    name: str = ''

    @classmethod
    def from_api(cls, payload):
        if not isinstance(payload, dict):
            payload = {}
        return cls(id=record_id(payload), name=to_text(payload.get('name')))


@dataclass(frozen=True)
class Speciality:
    id: str
    name: str = ''
    department_id: str = ''
    department_name: str = ''
    total_seats: int = 0

    @classmethod
    def from_api(cls, payload):
        if not isinstance(payload, dict):
            payload = {}
        department = payload.get('department')
        try:
            total_seats = max(0, int(payload.get('totalSeats') or 0))
        except (TypeError, ValueError):
            total_seats = 0
        return cls(
            id=record_id(payload),
            name=to_text(payload.get('name')),
            department_id=reference_id(department),
            department_name=reference_name(department),
            total_seats=total_seats,
        )


def decode_departments(rows):
    return [Department.from_api(row) for row in rows or [] if isinstance(row, dict)]


def decode_specialities(rows):
    return [Speciality.from_api(row) for row in rows or [] if isinstance(row, dict)]
