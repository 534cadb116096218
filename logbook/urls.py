from django.urls import path
from . import views

app_name = "logbook"

urlpatterns = [
    path("", views.my_logbook, name="my_logbook"),
    path("entries/<int:entry_id>/", views.entry_detail, name="entry_detail"),
    path("entries/<int:entry_id>/submit/", views.entry_submit, name="entry_submit"),
    path("teacher/", views.teacher_overview, name="teacher_overview"),
    path("teacher/topics/<int:topic_id>/", views.teacher_topic, name="teacher_topic"),
    path("entries/<int:entry_id>/approve/", views.entry_approve, name="entry_approve"),
    path("entries/<int:entry_id>/revise/", views.entry_revise, name="entry_revise"),
    path("entries/<int:entry_id>/note/", views.entry_note, name="entry_note"),
    path("entries/<int:entry_id>/confirm/", views.entry_confirm, name="entry_confirm"),
    path("entries/<int:entry_id>/unconfirm/", views.entry_unconfirm, name="entry_unconfirm"),
]
