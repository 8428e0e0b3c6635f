from .services import ACCESS_FEES, ACCESS_STUDENTS, ROLE_SUPER_ADMIN, current_account, has_access


def panel_account(request):
    account = current_account(request) if hasattr(request, 'session') else None
    return {
        'panel_account': account,
        'can_manage_students': has_access(account, ACCESS_STUDENTS),
        'can_manage_fees': has_access(account, ACCESS_FEES),
        'is_panel_admin': bool(account) and account.get('role') != 'employee',
        'is_super_admin': bool(account) and account.get('role') == ROLE_SUPER_ADMIN,
    }
