from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from accounts import views as accounts_views

urlpatterns = [
    path("admin/", admin.site.urls),
    path("django-rq/", include("django_rq.urls")),
    path("accounts/", include("allauth.urls")),
    path("", accounts_views.home, name="home"),
    # app URLs
    path("me/", include("accounts.urls")),
    path("academics/", include("academics.urls")),
    path("topics/", include("topics.urls")),
    path("reports/", include("submissions.urls")),
    path("logbook/", include("logbook.urls")),
    path("grading/", include("grading.urls")),
    path("audit/", include("audit.urls")),
    path("dashboard/", include("dashboards.urls")),
    path("notifications/", include("notifications.urls")),
    path("mentees/", include("mentees.urls")),
    # student dashboard and provisioning API
    path("", include("students.urls")),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
