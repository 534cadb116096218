from django.urls import path
from . import views

app_name = "grading"

urlpatterns = [
    path("sessions/<int:session_id>/criteria/", views.session_criteria, name="session_criteria"),
    path("criteria/", views.criteria_list, name="criteria_list"),
    path("criteria/add/", views.criterion_add, name="criterion_add"),
    path("criteria/<int:index>/update/", views.criterion_update, name="criterion_update"),
    path("criteria/<int:index>/delete/", views.criterion_delete, name="criterion_delete"),
    path("criteria/copy/", views.criteria_copy, name="criteria_copy"),
    path("teacher/topics/", views.gradable_topics, name="gradable_topics"),
    path("topics/<int:topic_id>/", views.topic_grades, name="topic_grades"),
    path("topics/<int:topic_id>/submit/", views.submit_grades, name="submit_grades"),
    path("mine/", views.my_grades, name="my_grades"),
]
