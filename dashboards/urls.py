from django.urls import path
from . import views

app_name = "dashboards"

urlpatterns = [
    path("admin/", views.admin_dashboard, name="admin"),
    path("admin/stats/", views.admin_stats, name="admin_stats"),
    path("teacher/", views.teacher_dashboard, name="teacher"),
    path("teacher/stats/", views.teacher_stats, name="teacher_stats"),
    path("classes/<int:class_id>/students/", views.class_students, name="class_students"),
    path("exports/topics.xlsx", views.export_topics, name="export_topics"),
    path("exports/workload.xlsx", views.export_workload, name="export_workload"),
    path("exports/classes/<int:class_id>/grades.xlsx", views.export_grades, name="export_grades"),
    path("exports/classes/<int:class_id>/roster.pdf", views.export_class_pdf, name="export_class_pdf"),
    path(
        "exports/sessions/<int:session_id>/report.xlsx",
        views.export_session_report,
        name="export_session_report",
    ),
]
