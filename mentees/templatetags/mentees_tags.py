from django import template

from ..collapsible import DEFAULT_THRESHOLD, CollapsibleGroup

register = template.Library()


@register.inclusion_tag("mentees/_collapsible_group.html")
def collapsible_group(title, cards, threshold=DEFAULT_THRESHOLD, group_id=""):
    return {"group": CollapsibleGroup(title, cards, threshold), "group_id": group_id}
