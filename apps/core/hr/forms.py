from django import forms
from django.utils import timezone

from apps.core.users.services import ACCESS_CHOICES, permissions_from_access


class EmployeeForm(forms.Form):
    name = forms.CharField(max_length=150)
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput, required=False)
    confirm_password = forms.CharField(widget=forms.PasswordInput, required=False)
    departments = forms.MultipleChoiceField(widget=forms.CheckboxSelectMultiple, required=False)
    access_permissions = forms.MultipleChoiceField(
        choices=ACCESS_CHOICES, widget=forms.CheckboxSelectMultiple, required=False,
    )
    date_of_adding = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))

    def __init__(self, *args, **kwargs):
        departments = kwargs.pop('departments', [])
        self.is_edit = kwargs.pop('is_edit', False)
        super().__init__(*args, **kwargs)
        self.fields['departments'].choices = [
            (department.id, department.name) for department in departments if department.id
        ]
        if not self.is_edit:
            self.fields['password'].required = True
            self.fields['confirm_password'].required = True
        else:
            self.fields['password'].help_text = 'Leave blank to keep the current password.'

    def clean(self):
        cleaned = super().clean()
        password = cleaned.get('password')
        if password and password != cleaned.get('confirm_password'):
            self.add_error('confirm_password', 'Passwords do not match')
        return cleaned

    def to_create_payload(self):
        data = self.cleaned_data
        joined = data.get('date_of_adding') or timezone.localdate()
        return {
            'name': data['name'],
            'email': data['email'],
            'password': data['password'],
            'departments': list(data.get('departments') or []),
            'accessPermissions': list(data.get('access_permissions') or []),
            'dateOfAdding': joined.isoformat(),
        }

    def to_update_payload(self):
        data = self.cleaned_data
        payload = {
            'name': data['name'],
            'email': data['email'],
            'departments': list(data.get('departments') or []),
            'permissions': permissions_from_access(data.get('access_permissions')),
        }
        if data.get('password'):
            payload['password'] = data['password']
        return payload

    @classmethod
    def initial_for(cls, employee):
        return {
            'name': employee.name,
            'email': employee.email,
            'departments': list(employee.department_ids),
            'access_permissions': employee.access,
            'date_of_adding': employee.date_of_adding.date() if employee.date_of_adding else None,
        }


class EmployeeFilterForm(forms.Form):
    q = forms.CharField(required=False)
    department = forms.CharField(required=False)
