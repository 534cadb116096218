from django.urls import path

from . import views

app_name = "students"

urlpatterns = [
    path("student/", views.dashboard, name="dashboard"),
    path("api/students/provision/", views.ProvisionStudentsView.as_view(), name="provision"),
]
