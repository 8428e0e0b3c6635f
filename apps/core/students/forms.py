from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError

from apps.core.academics.services import check_seat_availability
from apps.core.api.fields import format_display_date

from .models import FEE_COMPONENT_FIELDS

FEE_PLAN_CHOICES = (
    ('', 'Select fee type'),
    ('Lump Sum', 'Lump Sum'),
    ('Instalment', 'Instalment'),
)

# Form field name for each backend fee component key.
COMPONENT_FORM_FIELDS = {
    'tuitionFee': 'tuition_fee',
    'hostelFee': 'hostel_fee',
    'securityFee': 'security_fee',
    'miscellaneousFee': 'miscellaneous_fee',
    'acCharge': 'ac_charge',
}


def _amount_field(label):
    return forms.DecimalField(
        label=label, max_digits=12, decimal_places=2, min_value=Decimal('0'), required=False,
    )


class StudentForm(forms.Form):
    name = forms.CharField(max_length=150)
    roll_number = forms.CharField(max_length=50)
    department = forms.ChoiceField()
    speciality = forms.ChoiceField()
    phone = forms.CharField(max_length=20)
    email = forms.EmailField(required=False)
    date_of_birth = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    address = forms.CharField(required=False, widget=forms.Textarea(attrs={'rows': 2}))
    parent_name = forms.CharField(max_length=150, required=False)
    parent_phone = forms.CharField(max_length=20, required=False)
    admission_date = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    fee_type = forms.ChoiceField(choices=FEE_PLAN_CHOICES)
    tuition_fee = _amount_field('Tuition Fee')
    hostel_fee = _amount_field('Hostel Fee')
    security_fee = _amount_field('Security Fee')
    miscellaneous_fee = _amount_field('Miscellaneous Fee')
    ac_charge = _amount_field('AC Charge')
    total_fee = _amount_field('Total Fee')

    def __init__(self, *args, **kwargs):
        self.departments = kwargs.pop('departments', [])
        self.seats = kwargs.pop('seats', [])
        self.current_speciality_id = kwargs.pop('current_speciality_id', '')
        super().__init__(*args, **kwargs)

        self.fields['department'].choices = [('', 'Select department')] + [
            (department.id, department.name) for department in self.departments if department.id
        ]
        self.fields['speciality'].choices = [('', 'Select speciality')] + [
            (row.speciality.id, f'{row.speciality.name} ({row.available} seats available)')
            for row in self.seats
            if row.speciality.id
        ]

    def component_total(self):
        total = Decimal('0')
        for field_name in COMPONENT_FORM_FIELDS.values():
            total += self.cleaned_data.get(field_name) or Decimal('0')
        return total

    def clean(self):
        cleaned = super().clean()
        department_id = cleaned.get('department')
        speciality_id = cleaned.get('speciality')

        if not cleaned.get('total_fee'):
            cleaned['total_fee'] = self.component_total()

        if department_id and speciality_id:
            seats = next((row for row in self.seats if row.speciality.id == speciality_id), None)
            if seats and seats.speciality.department_id and seats.speciality.department_id != department_id:
                self.add_error('speciality', 'Selected speciality does not belong to the selected department.')
            elif speciality_id != self.current_speciality_id:
                department = next((d for d in self.departments if d.id == department_id), None)
                if not check_seat_availability(department, seats).available:
                    raise ValidationError('No seats available in this speciality!')
        return cleaned

    def to_payload(self):
        data = self.cleaned_data
        payload = {
            'name': data['name'],
            'rollNumber': data['roll_number'],
            'department': data['department'],
            'speciality': data['speciality'],
            'phone': data['phone'],
            'email': data.get('email') or '',
            'address': data.get('address') or '',
            'dateOfBirth': format_display_date(data.get('date_of_birth')),
            'parentName': data.get('parent_name') or '',
            'parentPhone': data.get('parent_phone') or '',
            'admissionDate': format_display_date(data.get('admission_date')),
            'feeType': data['fee_type'],
            'totalFee': float(data['total_fee']),
        }
        for key, field_name in COMPONENT_FORM_FIELDS.items():
            payload[key] = float(data.get(field_name) or 0)
        return payload

    @classmethod
    def initial_for(cls, student):
        initial = {
            'name': student.name,
            'roll_number': student.roll_number,
            'department': student.department_id,
            'speciality': student.speciality_id,
            'phone': student.phone,
            'email': student.email,
            'address': student.address,
            'parent_name': student.parent_name,
            'parent_phone': student.parent_phone,
            'date_of_birth': student.date_of_birth.date() if student.date_of_birth else None,
            'admission_date': student.admission_date.date() if student.admission_date else None,
            'fee_type': student.fee_type,
            'total_fee': student.total_fee,
        }
        for key, field_name in COMPONENT_FORM_FIELDS.items():
            initial[field_name] = student.fee_components.get(key)
        return initial


class StudentFilterForm(forms.Form):
    q = forms.CharField(required=False)
    status = forms.ChoiceField(
        choices=(('', 'All'), ('paid', 'Fully Paid'), ('due', 'Fee Due')),
        required=False,
    )
