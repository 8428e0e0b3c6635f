from decimal import Decimal
from unittest import mock

import requests
from django.test import SimpleTestCase
from django.urls import reverse

from apps.core.academics.models import Department, Speciality
from apps.core.academics.services import SpecialitySeats
from apps.core.api.client import BackendClient
from apps.core.api.exceptions import ApiError
from apps.core.api.testing import backend_mock, login_as

from .forms import StudentForm
from .models import Student
from .services import fee_component_breakdown, filter_students


class StudentDecodingTests(SimpleTestCase):
    def test_embedded_and_bare_references(self):
        student = Student.from_api({
            '_id': 's1',
            'name': 'Asha',
            'department': {'_id': 'd1', 'name': 'MD'},
            'speciality': 'sp1',
            'section': 'General Medicine',
            'totalFee': '75000',
            'tuitionFee': 50000,
            'hostelFee': '',
            'createdAt': '2024-03-15T04:00:00Z',
        })
        self.assertEqual(student.department_id, 'd1')
        self.assertEqual(student.department_name, 'MD')
        self.assertEqual(student.speciality_id, 'sp1')
        self.assertEqual(student.speciality_name, 'General Medicine')
        self.assertEqual(student.total_fee, Decimal('75000'))
        self.assertEqual(student.fee_components, {'tuitionFee': Decimal('50000')})
        self.assertIsNotNone(student.created_at)

    def test_missing_fields_decode_to_defaults(self):
        student = Student.from_api({'id': 7, 'class': 'BDS'})
        self.assertEqual(student.id, '7')
        self.assertEqual(student.display_name, 'Unknown Student')
        self.assertEqual(student.department_name, 'BDS')
        self.assertEqual(student.total_fee, Decimal('0'))


class StudentServiceTests(SimpleTestCase):
    def test_paid_amount_fills_components_in_order(self):
        student = Student(id='s1', fee_components={
            'tuitionFee': Decimal('1000'),
            'hostelFee': Decimal('500'),
            'securityFee': Decimal('0'),
            'acCharge': Decimal('200'),
        })

        rows = fee_component_breakdown(student, Decimal('1200'))

        self.assertEqual([row.label for row in rows], ['Tuition Fee', 'Hostel Fee', 'AC Charge'])
        self.assertEqual([row.paid for row in rows], [Decimal('1000'), Decimal('200'), Decimal('0')])
        self.assertEqual([row.due for row in rows], [Decimal('0'), Decimal('300'), Decimal('200')])

    def test_search_and_department_scope(self):
        students = [
            Student(id='s1', name='Asha Rao', roll_number='MD001', department_id='d1', speciality_name='Radiology'),
            Student(id='s2', name='Ravi', roll_number='BDS07', department_id='d2'),
        ]
        self.assertEqual([s.id for s in filter_students(students, 'radio')], ['s1'])
        self.assertEqual([s.id for s in filter_students(students, 'bds')], ['s2'])
        self.assertEqual([s.id for s in filter_students(students, '', {'d2'})], ['s2'])


class StudentFormTests(SimpleTestCase):
    def setUp(self):
        self.departments = [Department(id='d1', name='MD'), Department(id='d2', name='BDS')]
        self.seats = [
            SpecialitySeats(Speciality(id='sp1', name='Medicine', department_id='d1', total_seats=1), occupied=1),
            SpecialitySeats(Speciality(id='sp2', name='Orthodontics', department_id='d2', total_seats=1), occupied=4),
        ]

    def _data(self, **overrides):
        data = {
            'name': 'Asha',
            'roll_number': 'MD001',
            'department': 'd2',
            'speciality': 'sp2',
            'phone': '9876543210',
            'fee_type': 'Lump Sum',
            'tuition_fee': '50000',
            'hostel_fee': '20000',
            'ac_charge': '5000',
        }
        data.update(overrides)
        return data

    def test_total_fee_is_summed_from_components(self):
        form = StudentForm(self._data(), departments=self.departments, seats=self.seats)
        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_payload()
        self.assertEqual(payload['totalFee'], 75000.0)
        self.assertEqual(payload['securityFee'], 0.0)
        self.assertEqual(payload['department'], 'd2')

    def test_explicit_total_fee_is_kept(self):
        form = StudentForm(self._data(total_fee='60000'), departments=self.departments, seats=self.seats)
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_payload()['totalFee'], 60000.0)

    def test_full_seat_limited_speciality_is_rejected(self):
        form = StudentForm(self._data(department='d1', speciality='sp1'), departments=self.departments, seats=self.seats)
        self.assertFalse(form.is_valid())
        self.assertIn('No seats available in this speciality!', form.non_field_errors())

    def test_current_speciality_is_not_rechecked_on_edit(self):
        form = StudentForm(
            self._data(department='d1', speciality='sp1'),
            departments=self.departments,
            seats=self.seats,
            current_speciality_id='sp1',
        )
        self.assertTrue(form.is_valid(), form.errors)

    def test_speciality_must_match_department(self):
        form = StudentForm(self._data(department='d1', speciality='sp2'), departments=self.departments, seats=self.seats)
        self.assertFalse(form.is_valid())
        self.assertIn('speciality', form.errors)


class StudentViewTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        self.backend.students.all.return_value = [
            {'_id': 's1', 'name': 'Asha', 'rollNumber': 'MD001', 'totalFee': 1000, 'department': 'd1'},
            {'_id': 's2', 'name': 'Ravi', 'rollNumber': 'BDS07', 'totalFee': 500, 'department': 'd2'},
        ]
        self.backend.fees.all.return_value = [
            {'_id': 'f1', 'studentId': 's2', 'status': 'paid', 'paidAmount': 500},
        ]
        patcher = mock.patch('apps.core.students.views.client_for_request', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)
        login_as(self.client)

    def test_list_with_fee_status_filter(self):
        response = self.client.get(reverse('student_list'), {'status': 'due'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([student.id for student, _status in response.context['rows']], ['s1'])
        self.assertEqual(response.context['fully_paid_count'], 1)

    def test_employee_sees_own_departments_only(self):
        login_as(self.client, account={
            'email': 'clerk@example.com',
            'role': 'employee',
            'permissions': {'studentManagement': True, 'feeManagement': False},
            'departments': [{'_id': 'd2', 'name': 'BDS'}],
        })
        response = self.client.get(reverse('student_list'))
        self.assertEqual([student.id for student, _status in response.context['rows']], ['s2'])

    def test_employee_without_student_access_is_forbidden(self):
        login_as(self.client, account={
            'email': 'cashier@example.com',
            'role': 'employee',
            'permissions': {'studentManagement': False, 'feeManagement': True},
        })
        response = self.client.get(reverse('student_list'))
        self.assertEqual(response.status_code, 403)

    def test_detail_shows_fee_summary(self):
        self.backend.students.get.return_value = {
            '_id': 's1', 'name': 'Asha', 'totalFee': 1000, 'tuitionFee': 1000,
        }
        self.backend.students.fees.return_value = [
            {'_id': 'f1', 'studentId': 's1', 'status': 'paid', 'amount': 400},
            {'_id': 'f2', 'studentId': 's1', 'status': 'pending', 'amount': 600},
        ]

        response = self.client.get(reverse('student_detail', args=['s1']))

        self.assertEqual(response.status_code, 200)
        summary = response.context['summary']
        self.assertEqual(summary.paid_amount, Decimal('400'))
        self.assertEqual(summary.due_amount, Decimal('600'))
        self.assertEqual(response.context['breakdown'][0].due, Decimal('600'))

    def test_missing_student_is_404(self):
        self.backend.students.get.side_effect = ApiError('Student not found', status=404)
        response = self.client.get(reverse('student_detail', args=['nope']))
        self.assertEqual(response.status_code, 404)

    def test_create_posts_payload(self):
        self.backend.departments.all.return_value = [{'_id': 'd1', 'name': 'BDS'}]
        self.backend.specialities.all.return_value = [
            {'_id': 'sp1', 'name': 'Orthodontics', 'department': 'd1', 'totalSeats': 2},
        ]

        response = self.client.post(reverse('student_create'), {
            'name': 'Meera',
            'roll_number': 'BDS11',
            'department': 'd1',
            'speciality': 'sp1',
            'phone': '9000000000',
            'fee_type': 'Instalment',
            'tuition_fee': '1000',
        })

        self.assertRedirects(response, reverse('student_list'), fetch_redirect_response=False)
        payload = self.backend.students.create.call_args[0][0]
        self.assertEqual(payload['rollNumber'], 'BDS11')
        self.assertEqual(payload['totalFee'], 1000.0)

    def test_delete(self):
        response = self.client.post(reverse('student_delete', args=['s1']))
        self.assertRedirects(response, reverse('student_list'), fetch_redirect_response=False)
        self.backend.students.delete.assert_called_once_with('s1')

    def test_fee_status_filter_is_reported_when_fees_fail(self):
        self.backend.fees.all.side_effect = ApiError('Server error', status=500)

        response = self.client.get(reverse('student_list'), {'status': 'due'})

        self.assertEqual([student.id for student, _status in response.context['rows']], ['s1', 's2'])
        self.assertContains(response, 'fee status filter was not applied')

    def test_counts_cover_only_the_employee_departments(self):
        login_as(self.client, account={
            'email': 'clerk@example.com',
            'role': 'employee',
            'permissions': {'studentManagement': True, 'feeManagement': False},
            'departments': ['d1'],
        })
        response = self.client.get(reverse('student_list'))
        self.assertEqual(response.context['fully_paid_count'], 0)
        self.assertEqual(response.context['due_count'], 1)


def _backend_response(body):
    response = mock.Mock()
    response.status_code = 200
    response.ok = True
    response.content = b'{}'
    response.json.return_value = body
    return response


class StudentDetailBackendTests(SimpleTestCase):
    def setUp(self):
        self.session = mock.MagicMock(spec=requests.Session)
        self.session.headers = {}
        backend = BackendClient(base_url='http://backend.test/api', session=self.session)
        patcher = mock.patch('apps.core.students.views.client_for_request', return_value=backend)
        patcher.start()
        self.addCleanup(patcher.stop)
        login_as(self.client)

    def test_named_fees_list_feeds_the_summary(self):
        self.session.request.side_effect = [
            _backend_response({'success': True, 'data': {'_id': 's1', 'name': 'Asha', 'totalFee': 1000}}),
            _backend_response({'success': True, 'fees': [
                {'_id': 'f1', 'status': 'paid', 'amount': 400},
                {'_id': 'f2', 'status': 'pending', 'amount': 600},
            ]}),
        ]

        response = self.client.get(reverse('student_detail', args=['s1']))

        self.assertEqual(response.status_code, 200)
        self.assertNotContains(response, 'Failed to fetch fee records')
        summary = response.context['summary']
        self.assertEqual(summary.paid_amount, Decimal('400'))
        self.assertEqual(summary.due_amount, Decimal('600'))
        self.assertEqual(len(summary.payments), 2)
