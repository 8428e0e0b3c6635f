import base64
import json
import time
from unittest import mock

from django.conf import settings

from .client import SESSION_ACCOUNT_KEY, SESSION_TOKEN_KEY


def make_token(expires_in=3600, **claims):
    def _segment(data):
        raw = json.dumps(data).encode('utf-8')
        return base64.urlsafe_b64encode(raw).decode('ascii').rstrip('=')

    claims.setdefault('exp', int(time.time()) + expires_in)
    return f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment(claims)}.signature"


def login_as(client, account=None, token=None):
    """Put a signed-in account into the test client's session cookie."""
    session = client.session
    session[SESSION_TOKEN_KEY] = token or make_token()
    session[SESSION_ACCOUNT_KEY] = account or {
        'email': 'admin@example.com',
        'name': 'Admin',
        'role': 'super_admin',
    }
    session.save()
    client.cookies[settings.SESSION_COOKIE_NAME] = session.session_key
    return session


def backend_mock():
    """A BackendClient stand-in whose resources are MagicMocks returning empty lists."""
    backend = mock.MagicMock(name='BackendClient')
    for resource in ('students', 'fees', 'departments', 'specialities', 'employees'):
        getattr(backend, resource).all.return_value = []
    backend.admin.dashboard_stats.return_value = {}
    return backend
