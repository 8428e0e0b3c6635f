import logging

from django.contrib import messages
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from apps.core.api.client import client_for_request
from apps.core.api.exceptions import ApiError
from apps.core.students.models import decode_students
from apps.core.users.decorators import admin_required, login_required_token

from .forms import DepartmentForm, SpecialityForm, SpecialitySeatsForm
from .models import decode_departments, decode_specialities
from .services import speciality_seat_summary

logger = logging.getLogger(__name__)


def _departments(request, client):
    try:
        return decode_departments(client.departments.all())
    except ApiError as exc:
        messages.error(request, f'Failed to fetch departments: {exc.message}')
        return []


@login_required_token
@admin_required
def department_list(request):
    client = client_for_request(request)
    if request.method == 'POST':
        form = DepartmentForm(request.POST)
        if form.is_valid():
            try:
                client.departments.create(form.to_payload())
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                logger.info('Created department %s', form.cleaned_data['name'])
                messages.success(request, 'Department added successfully!')
                return redirect('department_list')
    else:
        form = DepartmentForm()

    return render(request, 'academics/department_list.html', {
        'departments': _departments(request, client),
        'form': form,
    })


@login_required_token
@admin_required
@require_POST
def department_update(request, department_id):
    form = DepartmentForm(request.POST)
    if not form.is_valid():
        messages.error(request, 'Department name is required.')
        return redirect('department_list')

    try:
        client_for_request(request).departments.update(department_id, form.to_payload())
    except ApiError as exc:
        messages.error(request, f'Failed to update department: {exc.message}')
    else:
        messages.success(request, 'Department updated successfully!')
    return redirect('department_list')


@login_required_token
@admin_required
@require_POST
def department_delete(request, department_id):
    try:
        client_for_request(request).departments.delete(department_id)
    except ApiError as exc:
        messages.error(request, f'Failed to delete department: {exc.message}')
    else:
        messages.success(request, 'Department deleted.')
    return redirect('department_list')


@login_required_token
@admin_required
def speciality_list(request):
    client = client_for_request(request)
    departments = _departments(request, client)

    if request.method == 'POST':
        form = SpecialityForm(request.POST, departments=departments)
        if form.is_valid():
            try:
                client.specialities.create(form.to_payload())
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                logger.info('Created speciality %s with %s seats', form.cleaned_data['name'], form.cleaned_data['total_seats'])
                messages.success(request, 'Speciality added successfully!')
                return redirect('speciality_list')
    else:
        form = SpecialityForm(departments=departments)

    department_id = request.GET.get('department', '')
    seats = []
    try:
        if department_id:
            specialities = decode_specialities(client.specialities.by_department(department_id))
        else:
            specialities = decode_specialities(client.specialities.all())
        students = decode_students(client.students.all())
        seats = speciality_seat_summary(specialities, students, departments)
    except ApiError as exc:
        messages.error(request, f'Failed to fetch specialities: {exc.message}')

    return render(request, 'academics/speciality_list.html', {
        'seats': seats,
        'departments': departments,
        'selected_department': department_id,
        'form': form,
        'seats_form': SpecialitySeatsForm(),
    })


@login_required_token
@admin_required
@require_POST
def speciality_seats_update(request, speciality_id):
    form = SpecialitySeatsForm(request.POST)
    if not form.is_valid():
        messages.error(request, 'Please enter valid number of seats.')
        return redirect('speciality_list')

    try:
        client_for_request(request).specialities.update_seats(speciality_id, form.cleaned_data['total_seats'])
    except ApiError as exc:
        messages.error(request, f'Failed to update seats: {exc.message}')
    else:
        messages.success(request, 'Seats updated successfully!')
    return redirect('speciality_list')


@login_required_token
@admin_required
@require_POST
def speciality_delete(request, speciality_id):
    try:
        client_for_request(request).specialities.delete(speciality_id)
    except ApiError as exc:
        messages.error(request, f'Failed to delete speciality: {exc.message}')
    else:
        messages.success(request, 'Speciality deleted.')
    return redirect('speciality_list')
