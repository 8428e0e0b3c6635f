from unittest import mock

from django.test import SimpleTestCase
from django.urls import reverse

from apps.core.academics.models import Department
from apps.core.api.exceptions import ApiError
from apps.core.api.testing import backend_mock, login_as

from .forms import EmployeeForm
from .models import Employee


class EmployeeFormTests(SimpleTestCase):
    def setUp(self):
        self.departments = [Department(id='d1', name='MD'), Department(id='d2', name='Nursing')]

    def test_create_payload_uses_access_list(self):
        form = EmployeeForm({
            'name': 'Kiran',
            'email': 'kiran@example.com',
            'password': 'Secret1!',
            'confirm_password': 'Secret1!',
            'departments': ['d2'],
            'access_permissions': ['fees'],
            'date_of_adding': '2024-06-01',
        }, departments=self.departments)

        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_create_payload(), {
            'name': 'Kiran',
            'email': 'kiran@example.com',
            'password': 'Secret1!',
            'departments': ['d2'],
            'accessPermissions': ['fees'],
            'dateOfAdding': '2024-06-01',
        })

    def test_create_requires_matching_passwords(self):
        form = EmployeeForm({
            'name': 'Kiran',
            'email': 'kiran@example.com',
            'password': 'Secret1!',
            'confirm_password': 'Other1!',
        }, departments=self.departments)
        self.assertFalse(form.is_valid())
        self.assertIn('Passwords do not match', form.errors['confirm_password'])

    def test_update_payload_maps_access_to_flags(self):
        form = EmployeeForm({
            'name': 'Kiran',
            'email': 'kiran@example.com',
            'departments': ['d1', 'd2'],
            'access_permissions': ['students'],
        }, departments=self.departments, is_edit=True)

        self.assertTrue(form.is_valid(), form.errors)
        payload = form.to_update_payload()
        self.assertEqual(payload['permissions'], {'studentManagement': True, 'feeManagement': False})
        self.assertNotIn('password', payload)

    def test_edit_initial_comes_from_flags(self):
        employee = Employee.from_api({
            '_id': 'e1',
            'name': 'Kiran',
            'departments': [{'_id': 'd1', 'name': 'MD'}, 'd2'],
            'permissions': {'studentManagement': False, 'feeManagement': True},
        })
        initial = EmployeeForm.initial_for(employee)
        self.assertEqual(initial['departments'], ['d1', 'd2'])
        self.assertEqual(initial['access_permissions'], ['fees'])


class EmployeeViewTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        self.backend.departments.all.return_value = [{'_id': 'd1', 'name': 'MD'}, {'_id': 'd2', 'name': 'MS'}]
        self.backend.employees.all.return_value = [
            {'_id': 'e1', 'name': 'Kiran', 'email': 'kiran@example.com', 'departments': ['d1']},
            {'_id': 'e2', 'name': 'Nisha', 'email': 'nisha@example.com', 'departments': ['d2']},
        ]
        patcher = mock.patch('apps.core.hr.views.client_for_request', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)
        login_as(self.client)

    def test_list_filters_by_department(self):
        response = self.client.get(reverse('employee_list'), {'department': 'd2'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([employee.id for employee in response.context['employees']], ['e2'])

    def test_employees_cannot_manage_employees(self):
        login_as(self.client, account={'email': 'kiran@example.com', 'role': 'employee', 'permissions': {}})
        response = self.client.get(reverse('employee_list'))
        self.assertEqual(response.status_code, 403)

    def test_update_sends_permission_flags(self):
        response = self.client.post(reverse('employee_update', args=['e1']), {
            'name': 'Kiran K',
            'email': 'kiran@example.com',
            'departments': ['d1'],
            'access_permissions': ['students', 'fees'],
        })

        self.assertRedirects(response, reverse('employee_list'), fetch_redirect_response=False)
        self.backend.employees.update.assert_called_once_with('e1', {
            'name': 'Kiran K',
            'email': 'kiran@example.com',
            'departments': ['d1'],
            'permissions': {'studentManagement': True, 'feeManagement': True},
        })

    def test_unknown_employee_redirects(self):
        response = self.client.get(reverse('employee_update', args=['missing']))
        self.assertRedirects(response, reverse('employee_list'), fetch_redirect_response=False)

    def test_create_failure_keeps_form(self):
        self.backend.employees.create.side_effect = ApiError('Employee already exists', status=400)

        response = self.client.post(reverse('employee_create'), {
            'name': 'Kiran',
            'email': 'kiran@example.com',
            'password': 'Secret1!',
            'confirm_password': 'Secret1!',
        })

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Employee already exists')
