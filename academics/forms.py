from django import forms
from django.forms.models import model_to_dict

from .models import CourseClass, Session

SESSION_FIELDS = [
    "name",
    "academic_year",
    "semester",
    "session_type",
    "status",
    "registration_start",
    "registration_end",
    "report1_deadline",
    "report2_deadline",
    "final_deadline",
    "defense_start",
    "defense_end",
]


class SessionForm(forms.ModelForm):
    class Meta:
        model = Session
        fields = SESSION_FIELDS

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("registration_start")
        end = cleaned.get("registration_end")
        if start and end and start > end:
            raise forms.ValidationError("Registration must start before it ends")
        return cleaned


class CourseClassForm(forms.ModelForm):
    class Meta:
        model = CourseClass
        fields = ["session", "code", "name", "advisor", "reviewer", "max_students"]


def bound_form(form_class, data, instance=None):
    """A form bound to ``data`` layered over the instance's current values."""
    initial = {}
    if instance is not None:
        initial = model_to_dict(instance, fields=form_class._meta.fields)
    return form_class({**initial, **data}, instance=instance)
