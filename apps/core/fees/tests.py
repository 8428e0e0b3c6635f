from datetime import date, datetime, timedelta
from decimal import Decimal
from unittest import mock

from django.test import SimpleTestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from apps.core.api.exceptions import ApiError, AuthenticationError
from apps.core.api.testing import backend_mock, login_as
from apps.core.students.models import Student

from .dashboard import DashboardLoader
from .forms import FeeCollectionForm
from .models import FeePayment
from .services import (
    PRIORITY_CRITICAL,
    PRIORITY_OVERDUE,
    PRIORITY_UPCOMING,
    compute_due_fees,
    date_window,
    find_overpayments,
    generate_fee_receipt_pdf,
    group_balance_fees,
    orphan_payments,
    select_by_date_window,
    select_paid_payments,
    student_fee_summary,
)


def _student(student_id, total_fee, created_at=None, name=None):
    return Student(
        id=student_id,
        name=name or f'Student {student_id}',
        roll_number=student_id.upper(),
        total_fee=Decimal(str(total_fee)),
        created_at=created_at,
    )


def _payment(payment_id, student_id, status='paid', amount=0, paid_amount=None, paid_date=None, due_date=None):
    return FeePayment(
        id=payment_id,
        student_id=student_id,
        status=status,
        amount=Decimal(str(amount)),
        paid_amount=Decimal(str(paid_amount)) if paid_amount is not None else None,
        paid_date=paid_date,
        due_date=due_date,
    )


class DueFeeComputationTests(SimpleTestCase):
    def test_partial_payment_leaves_remaining_due(self):
        student = _student('s1', 50000)
        payments = [
            _payment('f1', 's1', status='paid', paid_amount=20000, amount=20000),
            _payment('f2', 's1', status='pending', amount=30000),
        ]

        records = compute_due_fees([student], payments)

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].student, student)
        self.assertEqual(records[0].paid_amount, Decimal('20000'))
        self.assertEqual(records[0].due_amount, Decimal('30000'))

    def test_fully_paid_student_is_excluded(self):
        student = _student('s1', 10000)
        payments = [_payment('f1', 's1', status='paid', paid_amount=10000)]
        self.assertEqual(compute_due_fees([student], payments), [])

    def test_student_without_payments_owes_total_fee(self):
        records = compute_due_fees([_student('s1', 1500)], [])
        self.assertEqual(records[0].paid_amount, Decimal('0'))
        self.assertEqual(records[0].due_amount, Decimal('1500'))

    def test_amount_is_used_when_paid_amount_is_missing(self):
        payments = [_payment('f1', 's1', status='paid', amount=400)]
        records = compute_due_fees([_student('s1', 1000)], payments)
        self.assertEqual(records[0].paid_amount, Decimal('400'))

    def test_each_due_student_listed_once_in_input_order(self):
        students = [_student('s3', 300), _student('s1', 100), _student('s2', 200), _student('s4', 0)]
        payments = [
            _payment('f1', 's2', paid_amount=200),
            _payment('f2', 's1', paid_amount=50),
            _payment('f3', 's1', paid_amount=25),
        ]

        records = compute_due_fees(students, payments)

        self.assertEqual([record.student.id for record in records], ['s3', 's1'])
        self.assertEqual(records[1].due_amount, Decimal('25'))

    def test_orphan_payment_does_not_change_other_balances(self):
        students = [_student('s1', 1000)]
        payments = [_payment('f1', 'ghost', paid_amount=900), _payment('f2', '', paid_amount=900)]

        records = compute_due_fees(students, payments)

        self.assertEqual(records[0].due_amount, Decimal('1000'))
        self.assertEqual([payment.id for payment in orphan_payments(students, payments)], ['f1', 'f2'])

    def test_same_input_gives_same_output(self):
        students = [_student('s1', 800), _student('s2', 300)]
        payments = [_payment('f1', 's1', paid_amount=100)]
        self.assertEqual(compute_due_fees(students, payments), compute_due_fees(students, payments))

    def test_raw_backend_rows_are_accepted(self):
        students = [{'_id': 's1', 'name': 'Asha', 'totalFee': '900'}, {'_id': 's2'}]
        payments = [{'_id': 'f1', 'studentId': {'_id': 's1', 'name': 'Asha'}, 'status': 'paid', 'paidAmount': 300}]

        records = compute_due_fees(students, payments)

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].due_amount, Decimal('600'))

    def test_empty_and_malformed_input(self):
        self.assertEqual(compute_due_fees([], []), [])
        self.assertEqual(compute_due_fees(None, None), [])
        self.assertEqual(compute_due_fees([{'totalFee': 'abc'}], [{'status': 'paid', 'amount': None}]), [])

    def test_overpayment_is_reported(self):
        students = [_student('s1', 1000), _student('s2', 1000)]
        payments = [_payment('f1', 's1', paid_amount=1200)]

        with self.assertLogs('apps.core.fees.services', level='WARNING'):
            overpaid = find_overpayments(students, payments)

        self.assertEqual([record.student.id for record in overpaid], ['s1'])
        self.assertEqual(overpaid[0].due_amount, Decimal('-200'))

    def test_student_fee_rows_without_student_reference(self):
        student = _student('s1', 1000)
        rows = [
            FeePayment.from_api({'_id': 'f1', 'status': 'paid', 'paidAmount': 400}),
            FeePayment.from_api({'_id': 'f2', 'status': 'pending', 'amount': 600}),
        ]

        summary = student_fee_summary(student, rows)

        self.assertEqual(summary.paid_amount, Decimal('400'))
        self.assertEqual(summary.due_amount, Decimal('600'))
        self.assertEqual([payment.student_id for payment in summary.payments], ['s1', 's1'])

    def test_student_fee_summary(self):
        student = _student('s1', 1000)
        summary = student_fee_summary(student, [
            _payment('f1', 's1', paid_amount=600),
            _payment('f2', 's1', status='pending', amount=400),
            _payment('f3', 's2', paid_amount=999),
        ])
        self.assertEqual(summary.paid_amount, Decimal('600'))
        self.assertEqual(summary.due_amount, Decimal('400'))
        self.assertEqual([payment.id for payment in summary.payments], ['f1', 'f2'])
        self.assertFalse(summary.is_fully_paid)


class DateWindowTests(SimpleTestCase):
    reference = datetime(2024, 3, 15, 10, 0)

    def test_window_bounds_for_a_friday(self):
        expected = {
            'today': (datetime(2024, 3, 15), datetime(2024, 3, 15, 23, 59, 59, 999000)),
            'week': (datetime(2024, 3, 10), datetime(2024, 3, 16, 23, 59, 59, 999000)),
            'month': (datetime(2024, 3, 1), datetime(2024, 3, 31, 23, 59, 59, 999000)),
            'year': (datetime(2024, 1, 1), datetime(2024, 12, 31, 23, 59, 59, 999000)),
        }
        for kind, bounds in expected.items():
            with self.subTest(kind=kind):
                self.assertEqual(date_window(kind, self.reference), bounds)

    def test_week_starting_on_sunday_reference(self):
        start, end = date_window('week', datetime(2024, 3, 10, 8, 0))
        self.assertEqual(start, datetime(2024, 3, 10))
        self.assertEqual(end.date(), date(2024, 3, 16))

    def test_february_of_leap_year(self):
        _, end = date_window('month', datetime(2024, 2, 10))
        self.assertEqual(end.date(), date(2024, 2, 29))

    def test_unknown_kind_falls_back_to_today(self):
        self.assertEqual(date_window('decade', self.reference), date_window('today', self.reference))

    def test_aware_reference_keeps_timezone(self):
        reference = timezone.make_aware(self.reference)
        start, end = date_window('today', reference)
        self.assertEqual(start.tzinfo, reference.tzinfo)
        self.assertEqual(start.hour, 0)
        self.assertEqual(end.microsecond, 999000)

    def test_selection_keeps_input_order_and_both_bounds(self):
        students = [
            _student('late', 0, created_at=datetime(2024, 3, 16, 23, 59, 59, 999000)),
            _student('before', 0, created_at=datetime(2024, 3, 9, 23, 59, 59)),
            _student('start', 0, created_at=datetime(2024, 3, 10, 0, 0)),
            _student('missing', 0),
            _student('after', 0, created_at=datetime(2024, 3, 17, 0, 0)),
        ]

        selected = select_by_date_window(students, 'week', self.reference, 'created_at')

        self.assertEqual([student.id for student in selected], ['late', 'start'])

    def test_aware_values_against_naive_reference(self):
        created = timezone.make_aware(datetime(2024, 3, 15, 9, 30))
        selected = select_by_date_window([_student('s1', 0, created_at=created)], 'today', self.reference)
        self.assertEqual(len(selected), 1)

    def test_paid_payments_without_and_with_window(self):
        payments = [
            _payment('f1', 's1', status='paid', paid_date=datetime(2024, 3, 15, 9)),
            _payment('f2', 's1', status='pending'),
            _payment('f3', 's2', status='paid', paid_date=datetime(2023, 12, 1)),
        ]
        self.assertEqual([p.id for p in select_paid_payments(payments)], ['f1', 'f3'])
        self.assertEqual([p.id for p in select_paid_payments(payments, 'month', self.reference)], ['f1'])


class BalanceReportTests(SimpleTestCase):
    def test_outstanding_fees_are_grouped_per_student(self):
        today = date(2024, 3, 20)
        payments = [
            FeePayment(id='f1', student_id='s1', student_name='Asha', status='pending',
                       amount=Decimal('1000'), fee_type='Tuition Fee',
                       due_date=timezone.make_aware(datetime(2024, 3, 10))),
            FeePayment(id='f2', student_id='s1', student_name='Asha', status='overdue',
                       amount=Decimal('500'), paid_amount=Decimal('100'), fee_type='Hostel Fee'),
            FeePayment(id='f3', student_id='s2', student_name='Ravi', status='paid',
                       amount=Decimal('800'), paid_amount=Decimal('800')),
            FeePayment(id='f4', student_id='s3', student_name='Meera', status='pending',
                       amount=Decimal('300'), due_date=timezone.make_aware(datetime(2024, 3, 18))),
            FeePayment(id='f5', student_id='', status='pending', amount=Decimal('50')),
        ]

        rows = group_balance_fees(payments, today=today)

        self.assertEqual([row.student_name for row in rows], ['Asha', 'Meera', 'Unknown Student'])
        asha = rows[0]
        self.assertEqual(asha.total_amount, Decimal('1500'))
        self.assertEqual(asha.paid_amount, Decimal('100'))
        self.assertEqual(asha.balance_amount, Decimal('1400'))
        self.assertEqual(asha.fee_type, 'Multiple Fees')
        self.assertEqual(asha.days_overdue, 10)
        self.assertEqual(asha.priority, PRIORITY_CRITICAL)
        self.assertEqual(rows[1].priority, PRIORITY_OVERDUE)
        self.assertEqual(rows[2].priority, PRIORITY_UPCOMING)

    def test_underpaid_record_counts_as_outstanding(self):
        payments = [FeePayment(id='f1', student_id='s1', status='paid',
                               amount=Decimal('1000'), paid_amount=Decimal('600'))]
        rows = group_balance_fees(payments, today=date(2024, 1, 1))
        self.assertEqual(rows[0].balance_amount, Decimal('400'))


class FeeReceiptTests(SimpleTestCase):
    def test_receipt_pdf_is_generated(self):
        payment = FeePayment(id='66a1b2c3d4e5', student_id='s1', student_name='Asha', status='paid',
                             amount=Decimal('1200'), paid_amount=Decimal('1200'), fee_type='Tuition Fee',
                             payment_method='Cash', paid_date=timezone.now())
        pdf = generate_fee_receipt_pdf(payment, _student('s1', 5000, name='Asha'))
        self.assertTrue(pdf.startswith(b'%PDF'))


@override_settings(PANEL_PAYMENTS_FILTER='all')
class DashboardLoaderTests(SimpleTestCase):
    reference = timezone.make_aware(datetime(2024, 3, 15, 10, 0))

    def setUp(self):
        self.backend = backend_mock()
        self.backend.students.all.return_value = [
            {'_id': 's1', 'name': 'Asha', 'totalFee': 50000, 'createdAt': '2024-03-15T04:00:00Z'},
            {'_id': 's2', 'name': 'Ravi', 'totalFee': 10000, 'createdAt': '2024-01-02T04:00:00Z'},
        ]
        self.backend.fees.all.return_value = [
            {'_id': 'f1', 'studentId': {'_id': 's1'}, 'status': 'paid', 'paidAmount': 20000,
             'paidDate': '2024-02-01T05:00:00Z'},
            {'_id': 'f2', 'studentId': {'_id': 's1'}, 'status': 'pending', 'amount': 30000},
            {'_id': 'f3', 'studentId': 's2', 'status': 'paid', 'paidAmount': 10000,
             'paidDate': '2024-03-15T05:00:00Z'},
            {'_id': 'f4', 'studentId': None, 'status': 'paid', 'amount': 100},
        ]

    def _client_factory(self):
        return self.backend

    def test_load_builds_all_views_from_one_fetch_pair(self):
        loader = DashboardLoader(self._client_factory)

        snapshot = loader.load('today', reference=self.reference)

        self.assertIs(loader.snapshot, snapshot)
        self.assertEqual([record.student.id for record in snapshot.due_records], ['s1'])
        self.assertEqual(snapshot.due_records[0].due_amount, Decimal('30000'))
        self.assertEqual([student.id for student in snapshot.new_students], ['s1'])
        self.assertEqual([payment.id for payment in snapshot.payments], ['f1', 'f3', 'f4'])
        self.assertEqual(snapshot.orphan_payment_count, 1)
        self.assertEqual(snapshot.errors, {})
        self.backend.students.all.assert_called_once_with()
        self.backend.fees.all.assert_called_once_with()

    def test_window_payment_filter(self):
        snapshot = DashboardLoader(self._client_factory, payments_filter='window').load('today', reference=self.reference)
        self.assertEqual([payment.id for payment in snapshot.payments], ['f3'])

    def test_failed_fees_fetch_keeps_student_view(self):
        self.backend.fees.all.side_effect = ApiError('Server error', status=500)

        with self.assertLogs('apps.core.fees.dashboard', level='WARNING'):
            snapshot = DashboardLoader(self._client_factory).load('year', reference=self.reference)

        self.assertEqual(snapshot.errors, {'fees': 'Server error'})
        self.assertEqual(snapshot.due_records, [])
        self.assertEqual(snapshot.payments, [])
        self.assertEqual([student.id for student in snapshot.new_students], ['s1', 's2'])

    def test_empty_student_list_makes_every_payment_an_orphan(self):
        self.backend.students.all.return_value = []
        self.backend.fees.all.return_value = [
            {'_id': 'f1', 'studentId': 'ghost', 'status': 'paid', 'paidAmount': 500},
        ]

        snapshot = DashboardLoader(self._client_factory).load('today', reference=self.reference)

        self.assertEqual(snapshot.errors, {})
        self.assertEqual(snapshot.orphan_payment_count, 1)
        self.assertEqual(snapshot.due_records, [])

    def test_failed_students_fetch_reports_no_orphans(self):
        self.backend.students.all.side_effect = ApiError('Server error', status=500)

        with self.assertLogs('apps.core.fees.dashboard', level='WARNING'):
            snapshot = DashboardLoader(self._client_factory).load('today', reference=self.reference)

        self.assertEqual(snapshot.orphan_payment_count, 0)
        self.assertEqual(snapshot.errors, {'students': 'Server error'})

    def test_each_fetch_uses_its_own_client(self):
        factory = mock.Mock(return_value=self.backend)
        DashboardLoader(factory).load('today', reference=self.reference)
        self.assertEqual(factory.call_count, 2)

    def test_superseded_load_is_discarded(self):
        loader = DashboardLoader(self._client_factory)
        rows = self.backend.students.all.return_value
        calls = []

        def students_then_newer_load():
            calls.append('students')
            if len(calls) == 1:
                loader.load('year', reference=self.reference)
            return rows

        self.backend.students.all.side_effect = students_then_newer_load

        stale = loader.load('today', reference=self.reference)

        self.assertIsNone(stale)
        self.assertEqual(loader.generation, 2)
        self.assertEqual(loader.snapshot.window, 'year')
        self.assertEqual(loader.snapshot.generation, 2)


class FeeCollectionFormTests(SimpleTestCase):
    def setUp(self):
        self.students = [_student('s1', 1000), _student('s2', 500)]
        self.balances = {'s1': Decimal('600'), 's2': Decimal('0')}

    def _form(self, **overrides):
        data = {
            'student': 's1',
            'fee_type': 'Tuition Fee',
            'amount': '500',
            'status': 'paid',
            'payment_method': 'Cash',
        }
        data.update(overrides)
        return FeeCollectionForm(data, students=self.students, balances=self.balances)

    def test_valid_payload(self):
        form = self._form(description='First instalment')
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['studentId'], 's1')
        self.assertEqual(payload['amount'], 500.0)
        self.assertEqual(payload['status'], 'paid')
        self.assertEqual(payload['description'], 'First instalment')
        self.assertEqual(payload['paidDate'], timezone.localdate().strftime('%d-%m-%Y'))

    def test_online_payment_needs_transaction_id(self):
        form = self._form(payment_method='UPI/Net Banking/RTGS')
        self.assertFalse(form.is_valid())
        self.assertIn('transaction_id', form.errors)

    def test_cheque_payment_needs_cheque_number(self):
        form = self._form(payment_method='Cheque/DD')
        self.assertFalse(form.is_valid())
        self.assertIn('check_number', form.errors)

    def test_amount_cannot_exceed_balance(self):
        form = self._form(amount='700')
        self.assertFalse(form.is_valid())
        self.assertIn('amount', form.errors)

    def test_fully_paid_student_is_rejected(self):
        form = self._form(student='s2', amount='10')
        self.assertFalse(form.is_valid())
        self.assertIn('__all__', form.errors)

    def test_due_date_must_be_in_the_future(self):
        form = self._form(status='pending', due_date=timezone.localdate().isoformat())
        self.assertFalse(form.is_valid())
        self.assertIn('due_date', form.errors)

        tomorrow = timezone.localdate() + timedelta(days=1)
        form = self._form(status='pending', due_date=tomorrow.isoformat())
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload()['dueDate'], tomorrow.strftime('%d-%m-%Y'))
        self.assertEqual(form.to_payload()['paidAmount'], 0)


class FeeViewTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        patcher = mock.patch('apps.core.fees.views.client_for_request', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)
        login_as(self.client)

    def test_anonymous_user_is_sent_to_login(self):
        self.client.cookies.clear()
        response = self.client.get(reverse('upcoming_fees'))
        self.assertRedirects(response, reverse('login'), fetch_redirect_response=False)

    def test_employee_without_fee_access_is_forbidden(self):
        login_as(self.client, account={
            'email': 'clerk@example.com',
            'role': 'employee',
            'permissions': {'studentManagement': True, 'feeManagement': False},
        })
        response = self.client.get(reverse('fee_list'))
        self.assertEqual(response.status_code, 403)

    def test_upcoming_fees_dashboard_renders_snapshot(self):
        self.backend.students.all.return_value = [{'_id': 's1', 'name': 'Asha', 'totalFee': 900}]

        response = self.client.get(reverse('upcoming_fees'), {'window': 'month', 'tab': 'due'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['window'], 'month')
        self.assertEqual(len(response.context['snapshot'].due_records), 1)
        self.assertContains(response, 'Asha')

    def test_dashboard_reports_failed_fetch(self):
        self.backend.students.all.side_effect = ApiError('Timed out')
        response = self.client.get(reverse('upcoming_fees'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Failed to fetch students')

    def test_fee_add_posts_payload(self):
        self.backend.students.all.return_value = [{'_id': 's1', 'name': 'Asha', 'totalFee': 1000}]

        response = self.client.post(reverse('fee_add'), {
            'student': 's1',
            'fee_type': 'Tuition Fee',
            'amount': '250',
            'status': 'paid',
            'payment_method': 'Cash',
        })

        self.assertRedirects(response, reverse('fee_list'), fetch_redirect_response=False)
        payload = self.backend.fees.create.call_args[0][0]
        self.assertEqual(payload['studentId'], 's1')
        self.assertEqual(payload['amount'], 250.0)

    def test_fee_add_shows_backend_error(self):
        self.backend.students.all.return_value = [{'_id': 's1', 'name': 'Asha', 'totalFee': 1000}]
        self.backend.fees.create.side_effect = ApiError('Duplicate fee')

        response = self.client.post(reverse('fee_add'), {
            'student': 's1',
            'fee_type': 'Tuition Fee',
            'amount': '250',
            'status': 'pending',
            'payment_method': 'Cash',
        })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Duplicate fee')

    def test_pay_fee(self):
        response = self.client.post(reverse('fee_pay', args=['f1']), {'payment_method': 'Cash', 'paid_amount': '300'})
        self.assertRedirects(response, reverse('fee_list'), fetch_redirect_response=False)
        self.backend.fees.pay.assert_called_once_with('f1', payment_method='Cash', paid_amount=300.0)

    def test_balance_report(self):
        self.backend.fees.all.return_value = [
            {'_id': 'f1', 'studentId': {'_id': 's1', 'name': 'Asha'}, 'status': 'pending', 'amount': 700},
        ]
        response = self.client.get(reverse('balance_fees'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['total_balance'], Decimal('700'))

    def test_receipt_download(self):
        self.backend.fees.get.return_value = {
            '_id': 'f1', 'studentId': 's1', 'status': 'paid', 'amount': 500, 'feeType': 'Tuition Fee',
        }
        self.backend.students.get.return_value = {'_id': 's1', 'name': 'Asha', 'rollNumber': 'R-1'}

        response = self.client.get(reverse('fee_receipt_pdf', args=['f1']))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn('RCPT-F1.pdf', response['Content-Disposition'])

    def test_expired_backend_session_logs_out(self):
        self.backend.fees.all.side_effect = AuthenticationError('jwt expired', status=401)
        response = self.client.get(reverse('fee_list'))
        self.assertRedirects(response, reverse('login'), fetch_redirect_response=False)

    def test_fee_add_reports_failed_fee_fetch_separately(self):
        self.backend.students.all.return_value = [{'_id': 's1', 'name': 'Asha', 'totalFee': 1000}]
        self.backend.fees.all.side_effect = ApiError('Server error', status=500)

        response = self.client.get(reverse('fee_add'))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Failed to fetch fee records: Server error')
        self.assertNotContains(response, 'Failed to fetch students')
        self.assertEqual(response.context['form'].balances, {})

    def test_fee_detail_lists_other_fees_of_the_student(self):
        self.backend.fees.get.return_value = {
            '_id': 'f1', 'studentId': 's1', 'status': 'paid', 'amount': 400, 'paidAmount': 400,
            'feeType': 'Tuition Fee', 'paymentMethod': 'Cash',
        }
        self.backend.students.get.return_value = {'_id': 's1', 'name': 'Asha', 'totalFee': 1000}
        self.backend.students.fees.return_value = [
            {'_id': 'f1', 'status': 'paid', 'amount': 400, 'paidAmount': 400},
            {'_id': 'f2', 'status': 'pending', 'amount': 600, 'feeType': 'Hostel Fee'},
        ]

        response = self.client.get(reverse('fee_detail', args=['f1']))

        self.assertEqual(response.status_code, 200)
        self.assertEqual([fee.id for fee in response.context['other_fees']], ['f2'])
        self.assertEqual(response.context['summary'].due_amount, Decimal('600'))
        self.assertContains(response, 'RCPT-F1')
        self.backend.students.fees.assert_called_once_with('s1')

    def test_missing_fee_detail_is_404(self):
        self.backend.fees.get.side_effect = ApiError('Fee not found', status=404)
        response = self.client.get(reverse('fee_detail', args=['nope']))
        self.assertEqual(response.status_code, 404)
