"""Employee accounts as the backend returns them."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from apps.core.api.fields import parse_timestamp, record_id, reference_id, reference_name, to_text
from apps.core.users.services import PERMISSION_KEYS, access_from_permissions


@dataclass(frozen=True)
class Employee:
    id: str
    name: str = ''
    email: str = ''
    department_ids: tuple = ()
    department_names: tuple = ()
    permissions: dict = field(default_factory=dict, compare=False)
    date_of_adding: datetime | None = None

    @classmethod
    def from_api(cls, payload):
        if not isinstance(payload, dict):
            payload = {}
        departments = payload.get('departments') or []
        if not isinstance(departments, list):
            departments = [departments]
        permissions = payload.get('permissions') if isinstance(payload.get('permissions'), dict) else {}

        return cls(
            id=record_id(payload),
            name=to_text(payload.get('name')),
            email=to_text(payload.get('email')),
            department_ids=tuple(filter(None, (reference_id(value) for value in departments))),
            department_names=tuple(filter(None, (reference_name(value) for value in departments))),
            permissions={key: bool(permissions.get(key)) for key in PERMISSION_KEYS.values()},
            date_of_adding=parse_timestamp(payload.get('dateOfAdding') or payload.get('createdAt')),
        )

    @property
    def access(self):
        return access_from_permissions(self.permissions)


def decode_employees(rows):
    return [Employee.from_api(row) for row in rows or [] if isinstance(row, dict)]
