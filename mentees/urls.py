from django.urls import path

from . import views

app_name = "mentees"

urlpatterns = [
    path("", views.kanban, name="kanban"),
]
