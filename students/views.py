import logging

from django.shortcuts import render
from rest_framework import status
from rest_framework.authentication import BasicAuthentication, SessionAuthentication
from rest_framework.response import Response
from rest_framework.views import APIView

from academics.models import CourseClass
from accounts.decorators import student_required
from notifications.services import notifications_for

from .permissions import IsAdminRole
from .provisioning import provision_students
from .serializers import ProvisionRequestSerializer, ProvisionResultSerializer
from .services import dashboard as dashboard_data

logger = logging.getLogger(__name__)


@student_required
def dashboard(request):
    context = dashboard_data(request.user)
    context["notifications"] = notifications_for(request.user, limit=5)
    context["active_nav"] = "dashboard"
    return render(request, "students/dashboard.html", context)


class ProvisionStudentsView(APIView):
    """POST {classId, students: [...]} -> {created, skipped, added_to_class, errors}."""

    # Basic first so unauthenticated calls get a 401 challenge rather than a 403.
    authentication_classes = [BasicAuthentication, SessionAuthentication]
    permission_classes = [IsAdminRole]

    def post(self, request):
        payload = ProvisionRequestSerializer(data=request.data)
        if not payload.is_valid():
            return Response(
                {"error": "Invalid request body", "details": payload.errors},
                status=status.HTTP_400_BAD_REQUEST,
            )
        class_id = payload.validated_data["classId"]
        course_class = CourseClass.objects.filter(pk=class_id).first()
        if course_class is None:
            return Response({"error": "Class not found"}, status=status.HTTP_404_NOT_FOUND)
        logger.info(
            "Provisioning %s students into class %s for %s",
            len(payload.validated_data["students"]),
            course_class.pk,
            request.user.email,
        )
        result = provision_students(course_class, payload.validated_data["students"])
        return Response(ProvisionResultSerializer(result).data)
