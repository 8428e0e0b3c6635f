from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

from django.conf import settings
from django.utils import timezone

from apps.core.api.exceptions import ApiError
from apps.core.students.models import decode_students

from .models import decode_payments
from .services import (
    compute_due_fees,
    date_window,
    find_overpayments,
    normalize_window,
    orphan_payments,
    select_by_date_window,
    select_paid_payments,
)

logger = logging.getLogger(__name__)

PAYMENTS_FILTER_ALL = 'all'
PAYMENTS_FILTER_WINDOW = 'window'


@dataclass(frozen=True)
class DashboardSnapshot:
    generation: int
    window: str
    start: datetime
    end: datetime
    due_records: list = field(default_factory=list)
    new_students: list = field(default_factory=list)
    payments: list = field(default_factory=list)
    overpayments: list = field(default_factory=list)
    orphan_payment_count: int = 0
    errors: dict = field(default_factory=dict)

    @property
    def total_due(self):
        return sum((record.due_amount for record in self.due_records), start=0)

    @property
    def total_collected(self):
        return sum((payment.settled_amount for payment in self.payments), start=0)


class DashboardLoader:
    """Loads students and fees together and publishes one consistent snapshot.

    ``client_factory`` returns a fresh backend client; each fetch gets its own,
    so the two worker threads never share one HTTP session.

    Each ``load`` call takes a new generation number. A load that finishes after
    a newer one on the same loader has started is dropped, so a slow response
    for an old window selection never replaces the data for the current one.
    The guard only applies to overlapping loads on a shared loader; the
    dashboard view builds a loader per request.
    """

    def __init__(self, client_factory, payments_filter=None):
        self.client_factory = client_factory
        self.payments_filter = payments_filter or settings.PANEL_PAYMENTS_FILTER
        self.snapshot: DashboardSnapshot | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self):
        return self._generation

    def _next_generation(self):
        with self._lock:
            self._generation += 1
            return self._generation

    def _fetch(self, name):
        try:
            return getattr(self.client_factory(), name).all(), None
        except ApiError as exc:
            logger.warning('Dashboard could not load %s: %s', name, exc)
            return [], exc.message

    def load(self, window_kind, reference=None) -> DashboardSnapshot | None:
        generation = self._next_generation()
        window_kind = normalize_window(window_kind)
        reference = reference or timezone.localtime()

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix='dashboard') as pool:
            students_future = pool.submit(self._fetch, 'students')
            fees_future = pool.submit(self._fetch, 'fees')
            student_rows, students_error = students_future.result()
            fee_rows, fees_error = fees_future.result()

        snapshot = self.build_snapshot(
            generation,
            window_kind,
            reference,
            decode_students(student_rows),
            decode_payments(fee_rows),
            errors={
                name: message
                for name, message in (('students', students_error), ('fees', fees_error))
                if message
            },
        )

        with self._lock:
            if generation != self._generation:
                logger.info(
                    'Discarding dashboard load %s for %s; load %s is newer',
                    generation, window_kind, self._generation,
                )
                return None
            self.snapshot = snapshot
        return snapshot

    def build_snapshot(self, generation, window_kind, reference, students, payments, errors=None):
        start, end = date_window(window_kind, reference)
        if self.payments_filter == PAYMENTS_FILTER_WINDOW:
            paid = select_paid_payments(payments, window_kind, reference)
        else:
            paid = select_paid_payments(payments)

        errors = dict(errors or {})
        # Due balances need both sources; with one missing they would be wrong.
        complete = not errors
        return DashboardSnapshot(
            generation=generation,
            window=window_kind,
            start=start,
            end=end,
            due_records=compute_due_fees(students, payments) if complete else [],
            new_students=select_by_date_window(students, window_kind, reference, date_field='created_at'),
            payments=paid,
            overpayments=find_overpayments(students, payments) if complete else [],
            orphan_payment_count=0 if 'students' in errors else len(orphan_payments(students, payments)),
            errors=errors,
        )
