from django.urls import path
from . import views

app_name = "submissions"

urlpatterns = [
    path("topics/<int:topic_id>/", views.my_reports, name="my_reports"),
    path("topics/<int:topic_id>/upload/", views.upload_report, name="upload"),
    path("download/", views.download, name="download"),
    path("teacher/", views.teacher_list, name="teacher_list"),
]
