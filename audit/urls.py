from django.urls import path
from . import views

app_name = "audit"

urlpatterns = [
    path("", views.log_list, name="list"),
    path("stats/", views.log_stats, name="stats"),
    path("alerts/", views.log_alerts, name="alerts"),
    path("cleanup/", views.log_cleanup, name="cleanup"),
    path("export.xlsx", views.log_export, name="export"),
]
