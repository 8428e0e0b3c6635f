from django import forms


class DepartmentForm(forms.Form):
    name = forms.CharField(max_length=120)

    def clean_name(self):
        return self.cleaned_data['name'].strip()

    def to_payload(self):
        return {'name': self.cleaned_data['name']}


class SpecialityForm(forms.Form):
    department = forms.ChoiceField()
    name = forms.CharField(max_length=120)
    total_seats = forms.IntegerField(min_value=1)

    def __init__(self, *args, **kwargs):
        departments = kwargs.pop('departments', [])
        super().__init__(*args, **kwargs)
        self.fields['department'].choices = [('', 'Select department')] + [
            (department.id, department.name) for department in departments if department.id
        ]

    def clean_name(self):
        return self.cleaned_data['name'].strip()

    def to_payload(self):
        return {
            'name': self.cleaned_data['name'],
            'department': self.cleaned_data['department'],
            'totalSeats': self.cleaned_data['total_seats'],
        }


class SpecialitySeatsForm(forms.Form):
    total_seats = forms.IntegerField(
        min_value=1,
        error_messages={'min_value': 'Please enter valid number of seats.'},
    )
