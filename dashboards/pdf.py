from io import BytesIO

from django.http import HttpResponse
from django.template.loader import render_to_string
from django.utils import timezone

from .exports import class_roster


def class_pdf_html(course_class) -> str:
    return render_to_string(
        "dashboards/class_roster_pdf.html",
        {
            "course_class": course_class,
            "advisor": course_class.advisor.display_name if course_class.advisor_id else "Unassigned",
            "rows": class_roster(course_class),
            "printed_at": timezone.localtime(timezone.now()),
        },
    )


def html_to_pdf(html: str) -> bytes:
    # WeasyPrint loads Pango on import
    from weasyprint import HTML

    buffer = BytesIO()
    HTML(string=html).write_pdf(buffer)
    return buffer.getvalue()


def class_pdf_response(course_class) -> HttpResponse:
    response = HttpResponse(html_to_pdf(class_pdf_html(course_class)), content_type="application/pdf")
    response["Content-Disposition"] = f'attachment; filename="class_{course_class.code}.pdf"'
    return response
