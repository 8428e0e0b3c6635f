from unittest import mock

from django.test import SimpleTestCase
from django.urls import reverse

from apps.core.api.client import SESSION_ACCOUNT_KEY, SESSION_TOKEN_KEY
from apps.core.api.exceptions import ApiError, AuthenticationError
from apps.core.api.testing import backend_mock, login_as, make_token

from .forms import ChangePasswordForm
from .services import (
    ACCESS_FEES,
    ACCESS_STUDENTS,
    access_from_permissions,
    build_account,
    has_access,
    permissions_from_access,
)

EMPLOYEE = {
    'email': 'clerk@example.com',
    'role': 'employee',
    'permissions': {'studentManagement': True, 'feeManagement': False},
}


class PermissionMappingTests(SimpleTestCase):
    def test_access_list_and_flags_map_both_ways(self):
        flags = permissions_from_access([ACCESS_FEES])
        self.assertEqual(flags, {'studentManagement': False, 'feeManagement': True})
        self.assertEqual(access_from_permissions(flags), [ACCESS_FEES])

    def test_admin_sees_everything(self):
        account = build_account({'email': 'admin@example.com'})
        self.assertEqual(account['role'], 'super_admin')
        self.assertTrue(has_access(account, ACCESS_FEES))
        self.assertTrue(has_access(account, ACCESS_STUDENTS))

    def test_employee_limited_by_flags(self):
        self.assertTrue(has_access(EMPLOYEE, ACCESS_STUDENTS))
        self.assertFalse(has_access(EMPLOYEE, ACCESS_FEES))
        self.assertFalse(has_access(None, ACCESS_STUDENTS))

    def test_account_falls_back_to_token_claims(self):
        token = make_token(id='e1', email='clerk@example.com', role='employee',
                           permissions={'feeManagement': True})
        account = build_account({}, token)
        self.assertEqual(account['id'], 'e1')
        self.assertEqual(account['role'], 'employee')
        self.assertEqual(account['permissions'], {'studentManagement': False, 'feeManagement': True})


class ChangePasswordFormTests(SimpleTestCase):
    def test_password_rules(self):
        cases = {
            'short1!': 'at least 8 characters',
            'lowercase1!': 'uppercase',
            'UPPERCASE1!': 'lowercase',
            'NoDigits!!': 'number',
            'NoSpecial11': 'special character',
        }
        for password, message in cases.items():
            with self.subTest(password=password):
                form = ChangePasswordForm({
                    'current_password': 'Current1!',
                    'new_password': password,
                    'confirm_password': password,
                })
                self.assertFalse(form.is_valid())
                self.assertIn(message, form.errors['new_password'][0])

    def test_mismatch_and_reuse(self):
        form = ChangePasswordForm({
            'current_password': 'Current1!',
            'new_password': 'Current1!',
            'confirm_password': 'Other1!xx',
        })
        self.assertFalse(form.is_valid())
        self.assertIn('confirm_password', form.errors)
        self.assertIn('new_password', form.errors)


class LoginViewTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        patcher = mock.patch('apps.core.users.views.BackendClient', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _post(self):
        return self.client.post(reverse('login'), {'email': 'admin@example.com', 'password': 'Secret1!'})

    def test_admin_login(self):
        token = make_token(id='a1')
        self.backend.auth.login.return_value = {
            'token': token,
            'admin': {'_id': 'a1', 'email': 'admin@example.com', 'name': 'Admin'},
        }

        response = self._post()

        self.assertRedirects(response, reverse('home'), fetch_redirect_response=False)
        session = self.client.session
        self.assertEqual(session[SESSION_TOKEN_KEY], token)
        self.assertEqual(session[SESSION_ACCOUNT_KEY]['role'], 'super_admin')
        self.backend.auth.employee_login.assert_not_called()

    def test_falls_back_to_employee_login(self):
        token = make_token(id='e1')
        self.backend.auth.login.side_effect = AuthenticationError('Invalid credentials', status=401)
        self.backend.auth.employee_login.return_value = {
            'success': True,
            'token': token,
            'user': {'_id': 'e1', 'email': 'admin@example.com', 'role': 'employee',
                     'permissions': {'studentManagement': True, 'feeManagement': False}},
        }

        response = self._post()

        self.assertRedirects(response, reverse('home'), fetch_redirect_response=False)
        account = self.client.session[SESSION_ACCOUNT_KEY]
        self.assertEqual(account['role'], 'employee')
        self.assertFalse(account['permissions']['feeManagement'])

    def test_failed_login_shows_admin_error(self):
        self.backend.auth.login.side_effect = AuthenticationError('Invalid credentials', status=401)
        self.backend.auth.employee_login.side_effect = ApiError('Employee not found', status=404)

        response = self._post()

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'Invalid credentials')
        self.assertNotIn(SESSION_TOKEN_KEY, self.client.session)


class SessionTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        patcher = mock.patch('apps.core.users.views.client_for_request', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_expired_token_is_sent_back_to_login(self):
        login_as(self.client, token=make_token(expires_in=-60))
        response = self.client.get(reverse('home'))
        self.assertRedirects(response, reverse('login'), fetch_redirect_response=False)
        self.assertNotIn(SESSION_TOKEN_KEY, self.client.session)

    def test_dashboard_shows_backend_figures(self):
        login_as(self.client)
        self.backend.admin.dashboard_stats.return_value = {'totalStudents': 42, 'pendingFees': 7}

        response = self.client.get(reverse('home'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context['stats']['total_students'], 42)
        self.assertEqual(response.context['stats']['due_fees'], 7)
        self.assertEqual(response.context['stats']['pending_students'], 0)

    def test_employee_without_fee_access_is_forbidden(self):
        login_as(self.client, account=EMPLOYEE)
        response = self.client.get(reverse('upcoming_fees'))
        self.assertEqual(response.status_code, 403)

    def test_logout_clears_session(self):
        login_as(self.client)
        response = self.client.post(reverse('logout'))
        self.assertRedirects(response, reverse('login'), fetch_redirect_response=False)
        self.assertNotIn(SESSION_ACCOUNT_KEY, self.client.session)

    def test_change_password_signs_out(self):
        login_as(self.client)

        response = self.client.post(reverse('change_password'), {
            'current_password': 'Current1!',
            'new_password': 'Brand.New1',
            'confirm_password': 'Brand.New1',
        })

        self.assertRedirects(response, reverse('login'), fetch_redirect_response=False)
        self.backend.auth.change_password.assert_called_once_with('Current1!', 'Brand.New1')


class AdminManagementTests(SimpleTestCase):
    def setUp(self):
        self.backend = backend_mock()
        self.backend.admin.all.return_value = [
            {'_id': 'a1', 'email': 'admin@example.com', 'role': 'super_admin'},
            {'_id': 'a2', 'email': 'ops@example.com', 'role': 'admin', 'permissions': {'student': True}},
        ]
        patcher = mock.patch('apps.core.users.views.client_for_request', return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)
        login_as(self.client)

    def test_list_shows_admin_accounts(self):
        response = self.client.get(reverse('admin_list'))

        self.assertEqual(response.status_code, 200)
        admins = response.context['admins']
        self.assertEqual([admin.email for admin in admins], ['admin@example.com', 'ops@example.com'])
        self.assertTrue(admins[1].student_access)
        self.assertFalse(admins[1].fee_access)

    def test_add_admin_posts_permissions(self):
        response = self.client.post(reverse('admin_list'), {
            'email': 'new@example.com',
            'password': 'Secret1!',
            'role': 'admin',
            'fee_access': 'on',
        })

        self.assertRedirects(response, reverse('admin_list'), fetch_redirect_response=False)
        self.backend.admin.create.assert_called_once_with({
            'email': 'new@example.com',
            'password': 'Secret1!',
            'role': 'admin',
            'permissions': {'student': False, 'fee': True},
        })

    def test_delete_admin(self):
        response = self.client.post(reverse('admin_delete', args=['a2']))
        self.assertRedirects(response, reverse('admin_list'), fetch_redirect_response=False)
        self.backend.admin.delete.assert_called_once_with('a2')

    def test_only_super_admins_manage_admins(self):
        login_as(self.client, account={'email': 'ops@example.com', 'role': 'admin'})
        self.assertEqual(self.client.get(reverse('admin_list')).status_code, 403)

        login_as(self.client, account=EMPLOYEE)
        self.assertEqual(self.client.post(reverse('admin_delete', args=['a1'])).status_code, 403)
        self.backend.admin.delete.assert_not_called()
