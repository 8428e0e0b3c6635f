"""Signed-in account and permission flags.

Admin accounts see every screen. Employee accounts carry
``permissions = {"studentManagement": bool, "feeManagement": bool}`` and only
see the sections their flags allow.
"""
from apps.core.api.client import SESSION_ACCOUNT_KEY, SESSION_TOKEN_KEY, decode_token_payload

ROLE_EMPLOYEE = 'employee'
ROLE_SUPER_ADMIN = 'super_admin'

ACCESS_STUDENTS = 'students'
ACCESS_FEES = 'fees'
ACCESS_CHOICES = (
    (ACCESS_STUDENTS, 'Student Management'),
    (ACCESS_FEES, 'Fee Management'),
)
PERMISSION_KEYS = {
    ACCESS_STUDENTS: 'studentManagement',
    ACCESS_FEES: 'feeManagement',
}


def permissions_from_access(access_permissions):
    selected = set(access_permissions or [])
    return {key: access in selected for access, key in PERMISSION_KEYS.items()}


def access_from_permissions(permissions):
    permissions = permissions or {}
    return [access for access, key in PERMISSION_KEYS.items() if permissions.get(key)]


def build_account(user_data, token=None):
    """Session copy of the signed-in account, filling gaps from the token claims."""
    claims = decode_token_payload(token) or {}
    user_data = user_data if isinstance(user_data, dict) else {}
    role = user_data.get('role') or claims.get('role') or ROLE_SUPER_ADMIN
    permissions = user_data.get('permissions') or claims.get('permissions')
    if not isinstance(permissions, dict):
        permissions = {key: True for key in PERMISSION_KEYS.values()}

    return {
        'id': str(user_data.get('_id') or user_data.get('id') or claims.get('id') or ''),
        'name': user_data.get('name') or '',
        'email': user_data.get('email') or claims.get('email') or '',
        'role': role,
        'permissions': {key: bool(permissions.get(key)) for key in PERMISSION_KEYS.values()},
        'departments': list(user_data.get('departments') or claims.get('departments') or []),
    }


def current_account(request):
    return request.session.get(SESSION_ACCOUNT_KEY)


def has_access(account, access):
    if not account:
        return False
    if account.get('role') != ROLE_EMPLOYEE:
        return True
    return bool((account.get('permissions') or {}).get(PERMISSION_KEYS[access]))


def sign_in(request, token, account):
    request.session.cycle_key()
    request.session[SESSION_TOKEN_KEY] = token
    request.session[SESSION_ACCOUNT_KEY] = account


def sign_out(request):
    request.session.flush()
