from functools import wraps

from django.contrib import messages
from django.shortcuts import redirect, render

from apps.core.api.client import SESSION_TOKEN_KEY, is_token_valid
from apps.core.api.exceptions import AuthenticationError

from .services import ROLE_SUPER_ADMIN, current_account, has_access, sign_out


def login_required_token(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token = request.session.get(SESSION_TOKEN_KEY)
        if not token or not current_account(request):
            return redirect('login')
        if not is_token_valid(token):
            sign_out(request)
            messages.error(request, 'Your session has expired. Please sign in again.')
            return redirect('login')

        try:
            return view_func(request, *args, **kwargs)
        except AuthenticationError:
            sign_out(request)
            messages.error(request, 'Your session has expired. Please sign in again.')
            return redirect('login')

    return wrapper


def access_required(access):
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            if not has_access(current_account(request), access):
                return render(request, 'users/forbidden.html', status=403)
            return view_func(request, *args, **kwargs)

        return wrapper

    return decorator


def admin_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        account = current_account(request) or {}
        if account.get('role') == 'employee':
            return render(request, 'users/forbidden.html', status=403)
        return view_func(request, *args, **kwargs)

    return wrapper


def super_admin_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        account = current_account(request) or {}
        if account.get('role') != ROLE_SUPER_ADMIN:
            return render(request, 'users/forbidden.html', status=403)
        return view_func(request, *args, **kwargs)

    return wrapper
