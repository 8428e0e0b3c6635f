import base64
import binascii
import json
import logging
import time

import requests
from django.conf import settings

from .envelope import unwrap_collection, unwrap_object
from .exceptions import ApiError, AuthenticationError

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = 'panel_token'
SESSION_ACCOUNT_KEY = 'panel_account'


def decode_token_payload(token):
    """Read the claims of a JWT without verifying it; the backend verifies."""
    if not token or token.count('.') != 2:
        return None
    segment = token.split('.')[1]
    segment += '=' * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment.encode('ascii')))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def is_token_valid(token, now=None):
    claims = decode_token_payload(token)
    if not claims:
        return False
    expires_at = claims.get('exp')
    if not isinstance(expires_at, (int, float)):
        return False
    return expires_at > (now if now is not None else time.time())


def _json_body(response):
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(body, fallback):
    if isinstance(body, dict):
        for key in ('message', 'error', 'detail'):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return fallback


class _Resource:
    def __init__(self, client):
        self.client = client


class AuthResource(_Resource):
    def login(self, email, password):
        return self.client.post('/auth/login', {'email': email, 'password': password})

    def employee_login(self, email, password):
        return self.client.post('/auth/employee-login', {'email': email, 'password': password})

    def change_password(self, current_password, new_password):
        return self.client.put('/auth/change-password', {
            'currentPassword': current_password,
            'newPassword': new_password,
        })


class AdminResource(_Resource):
    def dashboard_stats(self):
        return unwrap_object(self.client.get('/admin/dashboard'))

    def all(self):
        return unwrap_collection(self.client.get('/admin'))

    def create(self, data):
        return self.client.post('/admin/add', data)

    def delete(self, admin_id):
        return self.client.delete(f'/admin/{admin_id}')


class StudentResource(_Resource):
    def all(self):
        return unwrap_collection(self.client.get('/students/show-students'))

    def get(self, student_id):
        return unwrap_object(self.client.get(f'/students/{student_id}'))

    def fees(self, student_id):
        return unwrap_collection(self.client.get(f'/students/{student_id}/fees'), key='fees')

    def create(self, data):
        return self.client.post('/students/add-student', data)

    def update(self, student_id, data):
        return self.client.put(f'/students/{student_id}', data)

    def delete(self, student_id):
        return self.client.delete(f'/students/{student_id}')


class FeeResource(_Resource):
    def all(self):
        return unwrap_collection(self.client.get('/fees'))

    def get(self, fee_id):
        return unwrap_object(self.client.get(f'/fees/{fee_id}'))

    def create(self, data):
        return self.client.post('/fees', data)

    def pay(self, fee_id, payment_method='Cash', paid_amount=None):
        return self.client.put(f'/fees/{fee_id}/pay', {
            'paymentMethod': payment_method or 'Cash',
            'paidAmount': paid_amount,
        })

    def update(self, fee_id, data):
        return self.client.put(f'/fees/{fee_id}', data)

    def delete(self, fee_id):
        return self.client.delete(f'/fees/{fee_id}')


class DepartmentResource(_Resource):
    def all(self):
        return unwrap_collection(self.client.get('/departments'))

    def create(self, data):
        return self.client.post('/departments', data)

    def update(self, department_id, data):
        return self.client.put(f'/departments/{department_id}', data)

    def delete(self, department_id):
        return self.client.delete(f'/departments/{department_id}')


class SpecialityResource(_Resource):
    def all(self):
        return unwrap_collection(self.client.get('/specialities'))

    def by_department(self, department_id):
        return unwrap_collection(self.client.get(f'/specialities/department/{department_id}'))

    def create(self, data):
        return self.client.post('/specialities', data)

    def update(self, speciality_id, data):
        return self.client.put(f'/specialities/{speciality_id}', data)

    def update_seats(self, speciality_id, total_seats):
        return self.client.put(f'/specialities/{speciality_id}/seats', {'totalSeats': total_seats})

    def delete(self, speciality_id):
        return self.client.delete(f'/specialities/{speciality_id}')


class EmployeeResource(_Resource):
    def all(self):
        return unwrap_collection(self.client.get('/employees'))

    def create(self, data):
        return self.client.post('/employees', data)

    def update(self, employee_id, data):
        return self.client.put(f'/employees/{employee_id}', data)

    def delete(self, employee_id):
        return self.client.delete(f'/employees/{employee_id}')


class BackendClient:
    """JSON client for the admissions backend.

    An expired token is dropped before any request is sent so the backend
    answers 401 and the panel sends the user back to the login page.
    """

    def __init__(self, base_url=None, token=None, timeout=None, session=None):
        self.base_url = (base_url or settings.PANEL_API_BASE_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else settings.PANEL_API_TIMEOUT
        self.token = token if is_token_valid(token) else None
        self.http = session or requests.Session()
        self.http.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })

        self.auth = AuthResource(self)
        self.admin = AdminResource(self)
        self.students = StudentResource(self)
        self.fees = FeeResource(self)
        self.departments = DepartmentResource(self)
        self.specialities = SpecialityResource(self)
        self.employees = EmployeeResource(self)

    def request(self, method, path, payload=None, params=None):
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'

        try:
            response = self.http.request(
                method,
                url,
                json=payload,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning('Backend %s %s failed: %s', method, path, exc)
            raise ApiError(f'Could not reach the server: {exc}') from exc

        body = _json_body(response)
        if response.status_code == 401:
            logger.info('Backend rejected credentials for %s %s', method, path)
            raise AuthenticationError(
                _error_message(body, 'Session expired. Please sign in again.'),
                status=401,
                payload=body,
            )
        if not response.ok:
            logger.warning('Backend %s %s returned %s', method, path, response.status_code)
            raise ApiError(
                _error_message(body, response.reason or 'Request failed'),
                status=response.status_code,
                payload=body,
            )
        return body

    def get(self, path, params=None):
        return self.request('GET', path, params=params)

    def post(self, path, payload=None):
        return self.request('POST', path, payload=payload)

    def put(self, path, payload=None):
        return self.request('PUT', path, payload=payload)

    def delete(self, path):
        return self.request('DELETE', path)


def client_for_request(request):
    return BackendClient(token=request.session.get(SESSION_TOKEN_KEY))
