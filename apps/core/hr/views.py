import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from apps.core.academics.models import decode_departments
from apps.core.api.client import client_for_request
from apps.core.api.exceptions import ApiError
from apps.core.users.decorators import admin_required, login_required_token

from .forms import EmployeeFilterForm, EmployeeForm
from .models import decode_employees

logger = logging.getLogger(__name__)


def _departments(request, client):
    try:
        return decode_departments(client.departments.all())
    except ApiError as exc:
        messages.error(request, f'Failed to load departments: {exc.message}')
        return []


@login_required_token
@admin_required
def employee_list(request):
    client = client_for_request(request)
    filter_form = EmployeeFilterForm(request.GET)
    employees = []
    try:
        employees = decode_employees(client.employees.all())
    except ApiError as exc:
        messages.error(request, f'Failed to fetch employees: {exc.message}')

    if filter_form.is_valid():
        query = (filter_form.cleaned_data.get('q') or '').strip().lower()
        department_id = filter_form.cleaned_data.get('department')
        if query:
            employees = [
                employee for employee in employees
                if query in employee.name.lower() or query in employee.email.lower()
            ]
        if department_id:
            employees = [employee for employee in employees if department_id in employee.department_ids]

    return render(request, 'hr/employee_list.html', {
        'employees': employees,
        'departments': _departments(request, client),
        'filter_form': filter_form,
    })


@login_required_token
@admin_required
def employee_create(request):
    client = client_for_request(request)
    departments = _departments(request, client)

    if request.method == 'POST':
        form = EmployeeForm(request.POST, departments=departments)
        if form.is_valid():
            try:
                client.employees.create(form.to_create_payload())
            except ApiError as exc:
                form.add_error(None, exc.message or 'Failed to add employee')
            else:
                logger.info('Added employee %s', form.cleaned_data['email'])
                messages.success(request, f"{form.cleaned_data['name']} added successfully!")
                return redirect('employee_list')
    else:
        form = EmployeeForm(departments=departments)

    return render(request, 'hr/employee_form.html', {'form': form, 'is_edit': False})


@login_required_token
@admin_required
def employee_update(request, employee_id):
    client = client_for_request(request)
    departments = _departments(request, client)
    employee = None
    try:
        employee = next(
            (row for row in decode_employees(client.employees.all()) if row.id == employee_id),
            None,
        )
    except ApiError as exc:
        messages.error(request, f'Failed to fetch employees: {exc.message}')
        return redirect('employee_list')
    if employee is None:
        messages.error(request, 'Employee not found.')
        return redirect('employee_list')

    if request.method == 'POST':
        form = EmployeeForm(request.POST, departments=departments, is_edit=True)
        if form.is_valid():
            try:
                client.employees.update(employee_id, form.to_update_payload())
            except ApiError as exc:
                form.add_error(None, exc.message or 'Failed to update employee')
            else:
                messages.success(request, 'Employee updated successfully!')
                return redirect('employee_list')
    else:
        form = EmployeeForm(initial=EmployeeForm.initial_for(employee), departments=departments, is_edit=True)

    return render(request, 'hr/employee_form.html', {'form': form, 'is_edit': True, 'employee': employee})


@login_required_token
@admin_required
@require_POST
def employee_delete(request, employee_id):
    try:
        client_for_request(request).employees.delete(employee_id)
    except ApiError as exc:
        messages.error(request, f'Failed to delete employee: {exc.message}')
    else:
        logger.info('Deleted employee %s', employee_id)
        messages.success(request, 'Employee deleted.')
    return redirect('employee_list')
