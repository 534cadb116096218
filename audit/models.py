from django.conf import settings
from django.db import models


class AuthLog(models.Model):
    EVENT_LOGIN_SUCCESS = "login_success"
    EVENT_LOGIN_FAILED = "login_failed"
    EVENT_LOGOUT = "logout"
    EVENT_PASSWORD_CHANGED = "password_changed"
    EVENT_PASSWORD_RESET = "password_reset"
    EVENT_CHOICES = [
        (EVENT_LOGIN_SUCCESS, "Login"),
        (EVENT_LOGIN_FAILED, "Failed login"),
        (EVENT_LOGOUT, "Logout"),
        (EVENT_PASSWORD_CHANGED, "Password changed"),
        (EVENT_PASSWORD_RESET, "Password reset"),
    ]
    STATUS_SUCCESS = "success"
    STATUS_FAILED = "failed"
    STATUS_CHOICES = [(STATUS_SUCCESS, "Success"), (STATUS_FAILED, "Failed")]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="auth_logs",
    )
    email = models.EmailField(blank=True)
    event_type = models.CharField(max_length=32, choices=EVENT_CHOICES)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_SUCCESS)
    error_message = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["event_type", "created_at"], name="authlog_event_created_idx"),
            models.Index(fields=["email", "created_at"], name="authlog_email_created_idx"),
        ]

    def __str__(self):
        return f"{self.event_type} {self.email}"
