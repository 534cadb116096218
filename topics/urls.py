from django.urls import path
from . import views

app_name = "topics"

urlpatterns = [
    path("mine/", views.my_topic, name="my_topic"),
    path("samples/available/", views.available_samples, name="available_samples"),
    path("samples/<int:sample_id>/register/", views.register_sample, name="register_sample"),
    path("propose/", views.propose_topic, name="propose"),
    path("<int:topic_id>/update/", views.update_topic, name="update"),
    path("<int:topic_id>/repo/", views.update_repo, name="update_repo"),
    path("teacher/pending/", views.teacher_pending, name="teacher_pending"),
    path("teacher/", views.teacher_topics, name="teacher_topics"),
    path("teacher/bulk-approve/", views.bulk_approve, name="bulk_approve"),
    path("<int:topic_id>/approve/", views.approve_topic, name="approve"),
    path("<int:topic_id>/revise/", views.revise_topic, name="revise"),
    path("<int:topic_id>/reject/", views.reject_topic, name="reject"),
    path("<int:topic_id>/status/", views.topic_status, name="status"),
    path("samples/", views.sample_list, name="sample_list"),
    path("samples/<int:sample_id>/", views.sample_detail, name="sample_detail"),
    path("samples/<int:sample_id>/delete/", views.sample_delete, name="sample_delete"),
    path("samples/<int:sample_id>/toggle/", views.sample_toggle, name="sample_toggle"),
]
