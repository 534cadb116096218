from allauth.account.forms import SignupForm as AllauthSignupForm
from django import forms

from .models import UserPreference


class SignupForm(AllauthSignupForm):
    full_name = forms.CharField(max_length=200, label="Full name")
    email_notifications = forms.BooleanField(
        required=False, label="Email me when my work is reviewed"
    )

    def save(self, request):
        user = super().save(request)
        user.full_name = self.cleaned_data.get("full_name", "").strip()
        user.save(update_fields=["full_name"])
        pref, _ = UserPreference.objects.get_or_create(user=user)
        pref.email_notifications = bool(self.cleaned_data.get("email_notifications"))
        pref.save(update_fields=["email_notifications"])
        return user


class PreferenceForm(forms.Form):
    theme = forms.ChoiceField(choices=UserPreference.THEME_CHOICES, required=False)
    selected_session_id = forms.IntegerField(required=False)
    sidebar_collapsed = forms.BooleanField(required=False)
    email_notifications = forms.BooleanField(required=False)

    def clean_selected_session_id(self):
        from academics.models import Session

        sid = self.cleaned_data.get("selected_session_id")
        if sid is None:
            return None
        if not Session.objects.filter(pk=sid).exists():
            raise forms.ValidationError("Unknown session")
        return sid

