from unittest import mock

from django.test import SimpleTestCase, override_settings
from django.urls import reverse

from apps.core.api.exceptions import ApiError
from apps.core.api.testing import backend_mock, login_as
from apps.core.students.models import Student

from .models import Department, Speciality
from .services import check_seat_availability, speciality_seat_summary


class SeatSummaryTests(SimpleTestCase):
    def setUp(self):
        self.departments = [Department(id='d1', name='MD'), Department(id='d2', name='BDS')]
        self.specialities = [
            Speciality(id='sp1', name='General Medicine', department_id='d1', total_seats=2),
            Speciality(id='sp2', name='Orthodontics', department_id='d2', total_seats=1),
        ]

    def test_occupied_seats_are_counted_from_students(self):
        students = [
            Student(id='s1', speciality_id='sp1'),
            Student(id='s2', speciality_id='sp1'),
            Student(id='s3', speciality_id='sp2'),
            Student(id='s4'),
        ]

        summary = speciality_seat_summary(self.specialities, students, self.departments)

        self.assertEqual([(row.occupied, row.available) for row in summary], [(2, 0), (1, 0)])
        self.assertEqual(summary[0].department_name, 'MD')

    def test_overfilled_speciality_reports_no_available_seats(self):
        students = [Student(id=f's{i}', speciality_id='sp2') for i in range(3)]
        summary = speciality_seat_summary(self.specialities, students)
        self.assertEqual(summary[1].available, 0)

    @override_settings(PANEL_SEAT_LIMITED_BRANCHES=('MD', 'MS', 'MDS', 'Nursing'))
    def test_only_limited_branches_are_checked(self):
        students = [Student(id='s1', speciality_id='sp1'), Student(id='s2', speciality_id='sp1')]
        full, other = speciality_seat_summary(self.specialities, students)

        check = check_seat_availability(self.departments[0], full)
        self.assertFalse(check.available)
        self.assertEqual(check.remaining, 0)

        self.assertTrue(check_seat_availability(self.departments[1], full).available)
        self.assertTrue(check_seat_availability(self.departments[0], None).available)
        self.assertTrue(check_seat_availability(Department(id='d3', name='nursing'), other).available)


class AcademicsViewTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        self.backend.departments.all.return_value = [{'_id': 'd1', 'name': 'MD'}]
        patcher = mock.patch('apps.core.academics.views.client_for_request', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)
        login_as(self.client)

    def test_employee_cannot_manage_settings(self):
        login_as(self.client, account={
            'email': 'clerk@example.com',
            'role': 'employee',
            'permissions': {'studentManagement': True, 'feeManagement': True},
        })
        response = self.client.get(reverse('department_list'))
        self.assertEqual(response.status_code, 403)

    def test_department_list_and_create(self):
        response = self.client.get(reverse('department_list'))
        self.assertContains(response, 'MD')

        response = self.client.post(reverse('department_list'), {'name': ' Nursing '})
        self.assertRedirects(response, reverse('department_list'), fetch_redirect_response=False)
        self.backend.departments.create.assert_called_once_with({'name': 'Nursing'})

    def test_department_rename(self):
        response = self.client.post(reverse('department_update', args=['d1']), {'name': 'MS'})
        self.assertRedirects(response, reverse('department_list'), fetch_redirect_response=False)
        self.backend.departments.update.assert_called_once_with('d1', {'name': 'MS'})

    def test_speciality_list_shows_seat_counts(self):
        self.backend.specialities.all.return_value = [
            {'_id': 'sp1', 'name': 'General Medicine', 'department': {'_id': 'd1', 'name': 'MD'}, 'totalSeats': 3},
        ]
        self.backend.students.all.return_value = [{'_id': 's1', 'speciality': {'_id': 'sp1'}}]

        response = self.client.get(reverse('speciality_list'))

        self.assertEqual(response.status_code, 200)
        row = response.context['seats'][0]
        self.assertEqual((row.total, row.occupied, row.available), (3, 1, 2))

    def test_speciality_create_payload(self):
        response = self.client.post(reverse('speciality_list'), {
            'department': 'd1',
            'name': 'Radiology',
            'total_seats': '4',
        })
        self.assertRedirects(response, reverse('speciality_list'), fetch_redirect_response=False)
        self.backend.specialities.create.assert_called_once_with(
            {'name': 'Radiology', 'department': 'd1', 'totalSeats': 4}
        )

    def test_seat_update_rejects_zero(self):
        response = self.client.post(reverse('speciality_seats_update', args=['sp1']), {'total_seats': '0'})
        self.assertRedirects(response, reverse('speciality_list'), fetch_redirect_response=False)
        self.backend.specialities.update_seats.assert_not_called()

        self.client.post(reverse('speciality_seats_update', args=['sp1']), {'total_seats': '6'})
        self.backend.specialities.update_seats.assert_called_once_with('sp1', 6)

    def test_failed_fetch_keeps_page_usable(self):
        self.backend.departments.all.side_effect = ApiError('Server error', status=500)
        response = self.client.get(reverse('department_list'))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Failed to fetch departments')
