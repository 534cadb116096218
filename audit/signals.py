import logging

from allauth.account.signals import password_changed, password_reset
from django.contrib.auth import get_user_model
from django.contrib.auth.signals import user_logged_in, user_logged_out, user_login_failed
from django.dispatch import receiver

from . import services
from .models import AuthLog

logger = logging.getLogger(__name__)


def _safe_record(*args, **kwargs):
    # an audit write must never break the login flow
    try:
        services.record(*args, **kwargs)
    except Exception:
        logger.exception("Could not write auth log %s", args[0] if args else "")


@receiver(user_logged_in)
def on_logged_in(sender, request, user, **kwargs):
    _safe_record(AuthLog.EVENT_LOGIN_SUCCESS, request=request, user=user)


@receiver(user_logged_out)
def on_logged_out(sender, request, user, **kwargs):
    if user is None:
        return
    _safe_record(AuthLog.EVENT_LOGOUT, request=request, user=user)


@receiver(user_login_failed)
def on_login_failed(sender, credentials, request=None, **kwargs):
    email = credentials.get("email") or credentials.get("username") or ""
    User = get_user_model()
    user = User.objects.filter(email__iexact=email).first() if email else None
    _safe_record(
        AuthLog.EVENT_LOGIN_FAILED,
        request=request,
        user=user,
        email=email,
        status=AuthLog.STATUS_FAILED,
        error_message="Invalid credentials",
    )


@receiver(password_changed)
def on_password_changed(sender, request, user, **kwargs):
    _safe_record(AuthLog.EVENT_PASSWORD_CHANGED, request=request, user=user)


@receiver(password_reset)
def on_password_reset(sender, request, user, **kwargs):
    _safe_record(AuthLog.EVENT_PASSWORD_RESET, request=request, user=user)
