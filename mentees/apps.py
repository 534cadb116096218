from django.apps import AppConfig


class MenteesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "mentees"
