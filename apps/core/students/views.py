import logging

from django.contrib import messages
from django.http import Http404
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from apps.core.academics.models import decode_departments, decode_specialities
from apps.core.academics.services import speciality_seat_summary
from apps.core.api.client import client_for_request
from apps.core.api.exceptions import ApiError
from apps.core.api.fields import reference_id
from apps.core.fees.models import decode_payments
from apps.core.fees.services import student_fee_summary
from apps.core.users.decorators import access_required, login_required_token
from apps.core.users.services import ACCESS_STUDENTS, ROLE_EMPLOYEE, current_account

from .forms import StudentFilterForm, StudentForm
from .models import Student, decode_students
from .services import fee_component_breakdown, fee_status_by_student, filter_students

logger = logging.getLogger(__name__)


def _scoped_department_ids(request):
    """Department ids an employee is limited to, or None for unrestricted accounts."""
    account = current_account(request) or {}
    if account.get('role') != ROLE_EMPLOYEE:
        return None
    department_ids = {reference_id(value) for value in account.get('departments') or []}
    department_ids.discard('')
    return department_ids or None


@login_required_token
@access_required(ACCESS_STUDENTS)
def student_list(request):
    client = client_for_request(request)
    filter_form = StudentFilterForm(request.GET)
    students, statuses = [], {}
    fee_status_known = False
    try:
        students = decode_students(client.students.all())
    except ApiError as exc:
        messages.error(request, f'Failed to fetch students: {exc.message}')

    try:
        statuses = fee_status_by_student(students, decode_payments(client.fees.all()))
        fee_status_known = True
    except ApiError as exc:
        logger.warning('Student list shown without fee status: %s', exc)

    query, status = '', ''
    if filter_form.is_valid():
        query = filter_form.cleaned_data.get('q') or ''
        status = filter_form.cleaned_data.get('status') or ''

    students = filter_students(students, department_ids=_scoped_department_ids(request))
    scoped_statuses = [statuses.get(student.id) for student in students]
    students = filter_students(students, query)
    if status:
        if fee_status_known:
            students = [student for student in students if statuses.get(student.id) == status]
        else:
            messages.warning(request, 'Fee records could not be loaded, so the fee status filter was not applied.')

    return render(request, 'students/student_list.html', {
        'rows': [(student, statuses.get(student.id, '')) for student in students],
        'filter_form': filter_form,
        'fully_paid_count': scoped_statuses.count('paid'),
        'due_count': scoped_statuses.count('due'),
    })


def _form_options(request, client):
    departments, seats = [], []
    try:
        departments = decode_departments(client.departments.all())
        seats = speciality_seat_summary(
            decode_specialities(client.specialities.all()),
            decode_students(client.students.all()),
            departments,
        )
    except ApiError as exc:
        messages.error(request, f'Failed to load departments and specialities: {exc.message}')
    return {'departments': departments, 'seats': seats}


@login_required_token
@access_required(ACCESS_STUDENTS)
def student_create(request):
    client = client_for_request(request)
    options = _form_options(request, client)

    if request.method == 'POST':
        form = StudentForm(request.POST, **options)
        if form.is_valid():
            try:
                client.students.create(form.to_payload())
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                logger.info('Added student %s', form.cleaned_data['roll_number'])
                messages.success(request, 'Student added successfully!')
                return redirect('student_list')
    else:
        form = StudentForm(**options)

    return render(request, 'students/student_form.html', {'form': form, 'is_edit': False})


def _load_student(client, student_id):
    try:
        return Student.from_api(client.students.get(student_id))
    except ApiError as exc:
        if exc.status == 404:
            raise Http404('Student not found.') from exc
        raise


@login_required_token
@access_required(ACCESS_STUDENTS)
def student_update(request, student_id):
    client = client_for_request(request)
    try:
        student = _load_student(client, student_id)
    except ApiError as exc:
        messages.error(request, f'Error loading student data: {exc.message}')
        return redirect('student_list')

    options = _form_options(request, client)
    options['current_speciality_id'] = student.speciality_id

    if request.method == 'POST':
        form = StudentForm(request.POST, **options)
        if form.is_valid():
            try:
                client.students.update(student_id, form.to_payload())
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                messages.success(request, 'Student updated successfully!')
                return redirect('student_detail', student_id=student_id)
    else:
        form = StudentForm(initial=StudentForm.initial_for(student), **options)

    return render(request, 'students/student_form.html', {'form': form, 'is_edit': True, 'student': student})


@login_required_token
@access_required(ACCESS_STUDENTS)
@require_POST
def student_delete(request, student_id):
    try:
        client_for_request(request).students.delete(student_id)
    except ApiError as exc:
        messages.error(request, f'Failed to delete student: {exc.message}')
    else:
        logger.info('Deleted student %s', student_id)
        messages.success(request, 'Student deleted.')
    return redirect('student_list')


@login_required_token
@access_required(ACCESS_STUDENTS)
def student_detail(request, student_id):
    client = client_for_request(request)
    try:
        student = _load_student(client, student_id)
    except ApiError as exc:
        messages.error(request, f'Error loading student data: {exc.message}')
        return redirect('student_list')

    payments = []
    try:
        payments = decode_payments(client.students.fees(student_id))
    except ApiError as exc:
        messages.error(request, f'Failed to fetch fee records: {exc.message}')

    summary = student_fee_summary(student, payments)
    return render(request, 'students/student_detail.html', {
        'student': student,
        'summary': summary,
        'breakdown': fee_component_breakdown(student, summary.paid_amount),
    })
