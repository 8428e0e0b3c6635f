import re

from django import forms
from django.core.exceptions import ValidationError

from .models import ROLE_ADMIN, ROLE_CHOICES

PASSWORD_MIN_LENGTH = 8
PASSWORD_RULES = (
    (re.compile(r'[A-Z]'), 'Password must contain at least one uppercase letter.'),
    (re.compile(r'[a-z]'), 'Password must contain at least one lowercase letter.'),
    (re.compile(r'\d'), 'Password must contain at least one number.'),
    (re.compile(r'[!@#$%^&*(),.?":{}|<>]'), 'Password must contain at least one special character.'),
)


def validate_panel_password(value):
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f'Password must be at least {PASSWORD_MIN_LENGTH} characters long.')
    for pattern, message in PASSWORD_RULES:
        if not pattern.search(value):
            raise ValidationError(message)


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)


class ChangePasswordForm(forms.Form):
    current_password = forms.CharField(widget=forms.PasswordInput)
    new_password = forms.CharField(widget=forms.PasswordInput, validators=[validate_panel_password])
    confirm_password = forms.CharField(widget=forms.PasswordInput)

    def clean(self):
        cleaned = super().clean()
        current = cleaned.get('current_password')
        new = cleaned.get('new_password')
        confirm = cleaned.get('confirm_password')

        if new and confirm and new != confirm:
            self.add_error('confirm_password', 'New password and confirm password do not match.')
        if new and current and new == current:
            self.add_error('new_password', 'New password cannot be the same as the current password.')
        return cleaned


class AdminAccountForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)
    role = forms.ChoiceField(choices=ROLE_CHOICES, initial=ROLE_ADMIN)
    student_access = forms.BooleanField(required=False, label='Student access')
    fee_access = forms.BooleanField(required=False, label='Fee access')

    def to_payload(self):
        data = self.cleaned_data
        return {
            'email': data['email'],
            'password': data['password'],
            'role': data['role'],
            'permissions': {'student': data['student_access'], 'fee': data['fee_access']},
        }
