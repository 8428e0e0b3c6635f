"""Panel administrator accounts as the backend returns them."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from apps.core.api.fields import parse_timestamp, record_id, to_text

from .services import ROLE_SUPER_ADMIN

ROLE_ADMIN = 'admin'
ROLE_CHOICES = (
    (ROLE_ADMIN, 'Admin'),
    (ROLE_SUPER_ADMIN, 'Super Admin'),
)


@dataclass(frozen=True)
class AdminAccount:
    id: str
    email: str = ''
    role: str = ROLE_ADMIN
    student_access: bool = False
    fee_access: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, payload):
        if not isinstance(payload, dict):
            payload = {}
        permissions = payload.get('permissions') if isinstance(payload.get('permissions'), dict) else {}
        return cls(
            id=record_id(payload),
            email=to_text(payload.get('email')),
            role=to_text(payload.get('role')) or ROLE_ADMIN,
            student_access=bool(permissions.get('student')),
            fee_access=bool(permissions.get('fee')),
            created_at=parse_timestamp(payload.get('createdAt')),
        )


def decode_admins(rows):
    return [AdminAccount.from_api(row) for row in rows or [] if isinstance(row, dict)]
