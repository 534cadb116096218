from allauth.account.adapter import DefaultAccountAdapter
from django.conf import settings


class PortalAccountAdapter(DefaultAccountAdapter):
    def is_open_for_signup(self, request):
        # Students are provisioned by admins; public signup stays closed
        # unless explicitly enabled.
        return getattr(settings, "ACCOUNT_ALLOW_SIGNUPS", False)

    def is_email_verified(self, request, email):
        site = getattr(settings, "SITE_URL", "")
        if site.startswith("http://localhost"):
            return True
        return super().is_email_verified(request, email)

    def get_login_redirect_url(self, request):
        return settings.LOGIN_REDIRECT_URL
