from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.core.api.fields import format_display_date

from .models import (
    FEE_TYPE_CHOICES,
    METHOD_CASH,
    METHOD_CHEQUE,
    METHOD_ONLINE,
    PAYMENT_METHOD_CHOICES,
    STATUS_CHOICES,
    STATUS_PAID,
    STATUS_PENDING,
)
from .services import WINDOW_CHOICES, WINDOW_TODAY


class DashboardWindowForm(forms.Form):
    window = forms.ChoiceField(choices=WINDOW_CHOICES, required=False)

    def selected_window(self, default=WINDOW_TODAY):
        if self.is_valid() and self.cleaned_data.get('window'):
            return self.cleaned_data['window']
        return default


class FeeCollectionForm(forms.Form):
    student = forms.ChoiceField()
    fee_type = forms.ChoiceField(choices=FEE_TYPE_CHOICES)
    amount = forms.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    status = forms.ChoiceField(choices=STATUS_CHOICES, initial=STATUS_PAID)
    payment_method = forms.ChoiceField(choices=PAYMENT_METHOD_CHOICES, initial=METHOD_CASH)
    transaction_id = forms.CharField(max_length=100, required=False)
    check_number = forms.CharField(max_length=100, required=False)
    bank_name = forms.CharField(max_length=150, required=False)
    paid_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    due_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))

    def __init__(self, *args, **kwargs):
        self.students = kwargs.pop('students', [])
        self.balances = kwargs.pop('balances', {})
        super().__init__(*args, **kwargs)
        self.fields['student'].choices = [('', 'Select student')] + [
            (student.id, f'{student.display_name} ({student.roll_number or "-"})')
            for student in self.students
            if student.id
        ]

    def clean(self):
        cleaned = super().clean()
        method = cleaned.get('payment_method')
        status = cleaned.get('status')
        paid_date = cleaned.get('paid_date')
        due_date = cleaned.get('due_date')
        amount = cleaned.get('amount')
        student_id = cleaned.get('student')

        if method == METHOD_ONLINE and not cleaned.get('transaction_id'):
            self.add_error('transaction_id', 'Transaction ID is required for UPI/Net Banking/RTGS.')
        if method == METHOD_CHEQUE and not cleaned.get('check_number'):
            self.add_error('check_number', 'Cheque/DD number is required.')

        if status == STATUS_PAID and not paid_date:
            cleaned['paid_date'] = paid_date = timezone.localdate()

        if due_date:
            if due_date <= timezone.localdate():
                self.add_error('due_date', "Due date must be after today's date.")
            elif paid_date and due_date == paid_date:
                self.add_error('due_date', 'Due date and paid date cannot be the same.')

        if amount is not None and student_id in self.balances:
            remaining = self.balances[student_id]
            if remaining <= 0:
                raise ValidationError('This student has no outstanding balance. No amount can be added.')
            if amount > remaining:
                self.add_error('amount', f'Amount cannot exceed the remaining balance of {remaining}.')
        return cleaned

    def to_payload(self):
        data = self.cleaned_data
        status = data['status']
        return {
            'studentId': data['student'],
            'feeType': data['fee_type'],
            'amount': float(data['amount']),
            'paidAmount': float(data['amount']) if status == STATUS_PAID else 0,
            'status': status,
            'paymentMethod': data['payment_method'],
            'description': data.get('description') or '',
            'dueDate': format_display_date(data.get('due_date')),
            'paidDate': format_display_date(data.get('paid_date')) if status == STATUS_PAID else '',
            'transactionId': data.get('transaction_id') or '',
            'checkNumber': data.get('check_number') or '',
            'bankName': data.get('bank_name') or '',
        }


class FeePayForm(forms.Form):
    payment_method = forms.ChoiceField(choices=PAYMENT_METHOD_CHOICES, initial=METHOD_CASH)
    paid_amount = forms.DecimalField(
        max_digits=12, decimal_places=2, min_value=Decimal('0.01'), required=False,
    )


class FeeFilterForm(forms.Form):
    q = forms.CharField(required=False)
    status = forms.ChoiceField(
        choices=(('', 'All'), (STATUS_PENDING, 'Pending'), (STATUS_PAID, 'Paid')),
        required=False,
    )
