import logging
from functools import partial

from django.conf import settings
from django.contrib import messages
from django.http import Http404, HttpResponse
from django.shortcuts import redirect, render
from django.views.decorators.http import require_POST

from apps.core.api.client import client_for_request
from apps.core.api.exceptions import ApiError
from apps.core.students.models import Student, decode_students
from apps.core.users.decorators import access_required, login_required_token
from apps.core.users.services import ACCESS_FEES

from .dashboard import DashboardLoader
from .forms import DashboardWindowForm, FeeCollectionForm, FeeFilterForm, FeePayForm
from .models import FeePayment, decode_payments
from .services import (
    ZERO,
    WINDOW_CHOICES,
    generate_fee_receipt_pdf,
    group_balance_fees,
    paid_totals_by_student,
    receipt_number,
    student_fee_summary,
)

logger = logging.getLogger(__name__)

DASHBOARD_TABS = ('students', 'due', 'payments')


@login_required_token
@access_required(ACCESS_FEES)
def upcoming_fees(request):
    window = DashboardWindowForm(request.GET).selected_window(default=settings.PANEL_DEFAULT_WINDOW)
    tab = request.GET.get('tab')
    if tab not in DASHBOARD_TABS:
        tab = DASHBOARD_TABS[0]

    loader = DashboardLoader(partial(client_for_request, request))
    snapshot = loader.load(window)

    for source, message in snapshot.errors.items():
        messages.error(request, f'Failed to fetch {source}: {message}')
    if snapshot.overpayments:
        messages.warning(
            request,
            f'{len(snapshot.overpayments)} student(s) have paid more than their total fee. Please review their records.',
        )

    return render(request, 'fees/upcoming_fees.html', {
        'snapshot': snapshot,
        'window': window,
        'windows': WINDOW_CHOICES,
        'tab': tab,
        'tabs': DASHBOARD_TABS,
    })


@login_required_token
@access_required(ACCESS_FEES)
def balance_fees(request):
    query = request.GET.get('q', '').strip().lower()
    rows = []
    try:
        rows = group_balance_fees(decode_payments(client_for_request(request).fees.all()))
    except ApiError as exc:
        messages.error(request, f'Failed to fetch balance fees: {exc.message}')

    if query:
        rows = [
            row for row in rows
            if query in row.student_name.lower() or query in row.student_class.lower()
        ]

    return render(request, 'fees/balance_fees.html', {
        'rows': rows,
        'query': query,
        'total_balance': sum((row.balance_amount for row in rows), start=ZERO),
        'critical_count': sum(1 for row in rows if row.days_overdue > 7),
    })


@login_required_token
@access_required(ACCESS_FEES)
def fee_list(request):
    filter_form = FeeFilterForm(request.GET)
    payments = []
    try:
        payments = decode_payments(client_for_request(request).fees.all())
    except ApiError as exc:
        messages.error(request, f'Failed to fetch fees: {exc.message}')

    if filter_form.is_valid():
        status = filter_form.cleaned_data.get('status')
        query = (filter_form.cleaned_data.get('q') or '').strip().lower()
        if status:
            payments = [payment for payment in payments if payment.status == status]
        if query:
            payments = [
                payment for payment in payments
                if query in payment.student_name.lower()
                or query in payment.student_roll_number.lower()
                or query in payment.fee_type.lower()
            ]

    return render(request, 'fees/fee_list.html', {
        'payments': payments,
        'filter_form': filter_form,
        'pay_form': FeePayForm(),
    })


def _outstanding_balances(students, payments):
    totals = paid_totals_by_student(payments)
    return {
        student.id: student.total_fee - totals.get(student.id, ZERO)
        for student in students
        if student.id and student.total_fee > 0
    }


@login_required_token
@access_required(ACCESS_FEES)
def fee_add(request):
    client = client_for_request(request)
    students, balances = [], {}
    try:
        students = decode_students(client.students.all())
    except ApiError as exc:
        messages.error(request, f'Failed to fetch students: {exc.message}')

    try:
        balances = _outstanding_balances(students, decode_payments(client.fees.all()))
    except ApiError as exc:
        # Without fee records the remaining balance is unknown, so it is not checked.
        messages.error(request, f'Failed to fetch fee records: {exc.message}')

    form_kwargs = {'students': students, 'balances': balances}
    if request.method == 'POST':
        form = FeeCollectionForm(request.POST, **form_kwargs)
        if form.is_valid():
            try:
                client.fees.create(form.to_payload())
            except ApiError as exc:
                form.add_error(None, exc.message)
            else:
                logger.info('Recorded %s fee for student %s', form.cleaned_data['fee_type'], form.cleaned_data['student'])
                messages.success(request, 'Fee added successfully!')
                return redirect('fee_list')
    else:
        form = FeeCollectionForm(initial={'student': request.GET.get('student', '')}, **form_kwargs)

    return render(request, 'fees/fee_form.html', {'form': form})


@login_required_token
@access_required(ACCESS_FEES)
@require_POST
def fee_pay(request, fee_id):
    form = FeePayForm(request.POST)
    if not form.is_valid():
        messages.error(request, 'Please choose a valid payment method and amount.')
        return redirect('fee_list')

    paid_amount = form.cleaned_data.get('paid_amount')
    try:
        client_for_request(request).fees.pay(
            fee_id,
            payment_method=form.cleaned_data['payment_method'],
            paid_amount=float(paid_amount) if paid_amount is not None else None,
        )
    except ApiError as exc:
        messages.error(request, f'Failed to record payment: {exc.message}')
    else:
        messages.success(request, 'Payment recorded successfully!')
    return redirect('fee_list')


@login_required_token
@access_required(ACCESS_FEES)
@require_POST
def fee_delete(request, fee_id):
    try:
        client_for_request(request).fees.delete(fee_id)
    except ApiError as exc:
        messages.error(request, f'Failed to delete fee: {exc.message}')
    else:
        messages.success(request, 'Fee record deleted.')
    return redirect('fee_list')


@login_required_token
@access_required(ACCESS_FEES)
def fee_receipt_pdf(request, fee_id):
    client = client_for_request(request)
    try:
        payment = FeePayment.from_api(client.fees.get(fee_id))
    except ApiError as exc:
        if exc.status == 404:
            raise Http404('Fee record not found.') from exc
        messages.error(request, f'Failed to load receipt: {exc.message}')
        return redirect('fee_list')

    student = None
    if payment.student_id:
        try:
            student = Student.from_api(client.students.get(payment.student_id))
        except ApiError as exc:
            logger.warning('Receipt %s printed without student details: %s', fee_id, exc)

    pdf_bytes = generate_fee_receipt_pdf(payment, student)
    response = HttpResponse(pdf_bytes, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="{receipt_number(payment)}.pdf"'
    return response


@login_required_token
@access_required(ACCESS_FEES)
def fee_detail(request, fee_id):
    client = client_for_request(request)
    try:
        payment = FeePayment.from_api(client.fees.get(fee_id))
    except ApiError as exc:
        if exc.status == 404:
            raise Http404('Fee record not found.') from exc
        messages.error(request, f'Failed to fetch fee details: {exc.message}')
        return redirect('fee_list')

    student, summary, other_fees = None, None, []
    if payment.student_id:
        try:
            student = Student.from_api(client.students.get(payment.student_id))
        except ApiError as exc:
            logger.warning('Fee %s shown without student details: %s', fee_id, exc)

        try:
            student_fees = decode_payments(client.students.fees(payment.student_id))
        except ApiError as exc:
            messages.error(request, f'Failed to fetch other fees of this student: {exc.message}')
        else:
            other_fees = [row for row in student_fees if row.id != payment.id]
            if student is not None:
                summary = student_fee_summary(student, student_fees)

    return render(request, 'fees/fee_detail.html', {
        'payment': payment,
        'student': student,
        'summary': summary,
        'other_fees': other_fees,
        'receipt_number': receipt_number(payment),
        'pay_form': FeePayForm(initial={'paid_amount': payment.amount}),
    })
