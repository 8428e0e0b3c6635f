from __future__ import annotations

from dataclasses import dataclass

from django.conf import settings

from .models import Department, Speciality


@dataclass(frozen=True)
class SpecialitySeats:
    speciality: Speciality
    occupied: int
    department_name: str = ''

    @property
    def total(self):
        return self.speciality.total_seats

    @property
    def available(self):
        return max(0, self.total - self.occupied)


@dataclass(frozen=True)
class SeatCheck:
    available: bool
    occupied: int = 0
    total: int = 0

    @property
    def remaining(self):
        return max(0, self.total - self.occupied)


def speciality_seat_summary(specialities, students, departments=()) -> list[SpecialitySeats]:
    """Occupied and available seats per speciality, counted from the enrolled students."""
    occupied: dict[str, int] = {}
    for student in students or []:
        if student.speciality_id:
            occupied[student.speciality_id] = occupied.get(student.speciality_id, 0) + 1

    department_names = {department.id: department.name for department in departments or []}
    return [
        SpecialitySeats(
            speciality=speciality,
            occupied=occupied.get(speciality.id, 0),
            department_name=speciality.department_name or department_names.get(speciality.department_id, ''),
        )
        for speciality in specialities or []
    ]


def is_seat_limited(department_name):
    limited = {branch.lower() for branch in settings.PANEL_SEAT_LIMITED_BRANCHES}
    return (department_name or '').strip().lower() in limited


def check_seat_availability(department: Department | None, seats: SpecialitySeats | None) -> SeatCheck:
    """Whether one more student fits in the speciality.

    Only the seat-limited postgraduate branches are counted; every other
    department, and a speciality without seat data, always has room.
    """
    if department is None or seats is None or not is_seat_limited(department.name):
        return SeatCheck(available=True)
    return SeatCheck(available=seats.occupied < seats.total, occupied=seats.occupied, total=seats.total)
