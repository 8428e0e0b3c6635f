import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from apps.core.api.client import BackendClient, client_for_request
from apps.core.api.exceptions import ApiError, BackendError

from .decorators import login_required_token, super_admin_required
from .forms import AdminAccountForm, ChangePasswordForm, LoginForm
from .models import decode_admins
from .services import build_account, current_account, sign_in, sign_out

logger = logging.getLogger(__name__)

DASHBOARD_STAT_KEYS = (
    ('total_students', 'totalStudents'),
    ('due_fees', 'pendingFees'),
    ('upcoming_fees', 'overdueFees'),
    ('fully_paid_students', 'fullFeesPaidStudents'),
    ('pending_students', 'pendingStudents'),
)


def _authenticate(client, email, password):
    """Try the admin login first and fall back to the employee login."""
    try:
        body = client.auth.login(email, password) or {}
        if body.get('token'):
            return body['token'], build_account(body.get('admin') or {'email': email}, body['token'])
        admin_error = ApiError('Invalid credentials')
    except BackendError as exc:
        admin_error = exc

    try:
        body = client.auth.employee_login(email, password) or {}
    except BackendError:
        logger.info('Employee login failed for %s', email)
        raise admin_error
    if body.get('success') and body.get('token'):
        return body['token'], build_account(body.get('user') or {'email': email}, body['token'])
    raise admin_error


def login_view(request):
    if current_account(request):
        return redirect('home')

    if request.method == 'POST':
        form = LoginForm(request.POST)
        if form.is_valid():
            try:
                token, account = _authenticate(
                    BackendClient(),
                    form.cleaned_data['email'],
                    form.cleaned_data['password'],
                )
            except BackendError as exc:
                messages.error(request, exc.message or 'Invalid credentials')
            else:
                sign_in(request, token, account)
                logger.info('Signed in %s (%s)', account['email'], account['role'])
                messages.success(request, 'Login successful!')
                return redirect('home')
    else:
        form = LoginForm()

    return render(request, 'users/login.html', {'form': form})


@require_POST
def logout_view(request):
    sign_out(request)
    messages.success(request, 'You have been logged out.')
    return redirect('login')


@login_required_token
def home(request):
    stats = {key: 0 for key, _source in DASHBOARD_STAT_KEYS}
    try:
        data = client_for_request(request).admin.dashboard_stats()
    except ApiError as exc:
        messages.error(request, f'Dashboard figures are unavailable: {exc.message}')
    else:
        for key, source in DASHBOARD_STAT_KEYS:
            stats[key] = data.get(source) or 0

    return render(request, 'users/home.html', {'stats': stats})


@login_required_token
def change_password(request):
    if request.method == 'POST':
        form = ChangePasswordForm(request.POST)
        if form.is_valid():
            try:
                client_for_request(request).auth.change_password(
                    form.cleaned_data['current_password'],
                    form.cleaned_data['new_password'],
                )
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                sign_out(request)
                messages.success(request, 'Password changed successfully. Please sign in with your new password.')
                return redirect('login')
    else:
        form = ChangePasswordForm()

    return render(request, 'users/change_password.html', {'form': form})


@login_required_token
@super_admin_required
def admin_list(request):
    client = client_for_request(request)
    if request.method == 'POST':
        form = AdminAccountForm(request.POST)
        if form.is_valid():
            try:
                client.admin.create(form.to_payload())
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                logger.info('Added %s account %s', form.cleaned_data['role'], form.cleaned_data['email'])
                messages.success(request, 'Admin added successfully!')
                return redirect('admin_list')
    else:
        form = AdminAccountForm()

    admins = []
    try:
        admins = decode_admins(client.admin.all())
    except ApiError as exc:
        messages.error(request, f'Failed to fetch admins: {exc.message}')

    return render(request, 'users/admin_list.html', {'admins': admins, 'form': form})


@login_required_token
@super_admin_required
@require_POST
def admin_delete(request, admin_id):
    try:
        client_for_request(request).admin.delete(admin_id)
    except ApiError as exc:
        messages.error(request, f'Failed to delete admin: {exc.message}')
    else:
        logger.info('Deleted admin account %s', admin_id)
        messages.success(request, 'Admin deleted.')
    return redirect('admin_list')
