from django.shortcuts import render

from accounts.decorators import teacher_required

from .health import ATTENTION, DANGER, GOOD, NO_TOPIC
from .services import kanban_board

COLUMNS = [
    (DANGER, "At risk", "Needs intervention now"),
    (ATTENTION, "Needs attention", "Keep a close eye"),
    (GOOD, "On track", "Progressing well"),
    (NO_TOPIC, "No topic", "Has not registered a topic"),
]


@teacher_required
def kanban(request):
    search = request.GET.get("q", "")
    board = kanban_board(request.user, search)
    columns = [
        {
            "key": key,
            "label": label,
            "description": description,
            "cards": board["columns"][key],
            "groups": board["grouped"][key],
        }
        for key, label, description in COLUMNS
    ]
    return render(
        request,
        "mentees/kanban.html",
        {
            "board": board,
            "columns": columns,
            "search": search,
            "active_nav": "mentees",
        },
    )
