"""
Health scoring for supervised students.

Every topic starts at 100 and loses points for warning signs in its logbook
and status. The final score picks the kanban column it lands in.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.utils import timezone

from topics.models import Topic

GOOD = "good"
ATTENTION = "attention"
DANGER = "danger"
NO_TOPIC = "no_topic"

CATEGORIES = [NO_TOPIC, DANGER, ATTENTION, GOOD]

GOOD_THRESHOLD = 80
ATTENTION_THRESHOLD = 50

REPO_EXPECTED = (Topic.STATUS_APPROVED, Topic.STATUS_IN_PROGRESS)


@dataclass
class Signal:
    level: str
    text: str


@dataclass
class Health:
    category: str
    score: int
    signals: List[Signal] = field(default_factory=list)


def category_for(score: int) -> str:
    if score >= GOOD_THRESHOLD:
        return GOOD
    if score >= ATTENTION_THRESHOLD:
        return ATTENTION
    return DANGER


def assess(topic: Topic, logbook: Optional[Dict[str, Any]] = None, now=None) -> Health:
    """Score ``topic``; ``logbook`` is its logbook stats, or None when it keeps none."""
    now = now or timezone.now()
    score = 100
    signals: List[Signal] = []

    if logbook is not None:
        expected = logbook.get("expected_weeks") or 0
        ratio = logbook.get("total_entries", 0) / expected if expected > 0 else 0
        if ratio < 0.5:
            signals.append(Signal("danger", "Logbook seriously behind"))
            score -= 40
        elif ratio < 0.8:
            signals.append(Signal("warning", "Logbook incomplete"))
            score -= 20

        last = logbook.get("last_entry_at")
        if last:
            idle = math.floor((now - last).total_seconds() / 86400)
            if idle >= 14:
                signals.append(Signal("danger", f"Inactive for {idle} days"))
                score -= 30
            elif idle >= 7:
                signals.append(Signal("warning", f"Inactive for {idle} days"))
                score -= 15

    if topic.status == Topic.STATUS_PENDING:
        signals.append(Signal("info", "Topic awaiting approval"))
        score -= 10
    elif topic.status == Topic.STATUS_REJECTED:
        signals.append(Signal("danger", "Topic rejected"))
        score -= 50

    if topic.status in REPO_EXPECTED and not topic.repo_url:
        signals.append(Signal("warning", "No repository link yet"))
        score -= 10

    return Health(category_for(score), score, signals)


def sort_columns(columns: Dict[str, List[Dict[str, Any]]]) -> Dict[str, List[Dict[str, Any]]]:
    """Worst first in danger and attention, best first in good."""
    for key in (DANGER, ATTENTION):
        columns.get(key, []).sort(key=lambda card: card["health"].score)
    columns.get(GOOD, []).sort(key=lambda card: card["health"].score, reverse=True)
    return columns
