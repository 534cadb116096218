from django.urls import path
from . import views

app_name = "academics"

urlpatterns = [
    path("sessions/", views.session_list, name="session_list"),
    path("sessions/<int:session_id>/", views.session_detail, name="session_detail"),
    path("sessions/<int:session_id>/delete/", views.session_delete, name="session_delete"),
    path("sessions/<int:session_id>/stats/", views.session_stats, name="session_stats"),
    path("sessions/<int:session_id>/duplicate/", views.session_duplicate, name="session_duplicate"),
    path("sessions/<int:session_id>/deadlines/", views.session_deadlines, name="session_deadlines"),
    path(
        "sessions/<int:session_id>/available-students/",
        views.available_students,
        name="available_students",
    ),
    path("classes/", views.class_list, name="class_list"),
    path("classes/<int:class_id>/", views.class_detail, name="class_detail"),
    path("classes/<int:class_id>/delete/", views.class_delete, name="class_delete"),
    path("classes/<int:class_id>/assign/", views.class_assign, name="class_assign"),
    path("classes/<int:class_id>/import/", views.class_import, name="class_import"),
    path("classes/<int:class_id>/students/", views.class_add_student, name="class_add_student"),
    path(
        "classes/<int:class_id>/students/<int:student_id>/remove/",
        views.class_remove_student,
        name="class_remove_student",
    ),
]
