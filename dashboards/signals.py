from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from topics.models import Topic

from .services import invalidate_stats


@receiver(post_save, sender=Topic)
@receiver(post_delete, sender=Topic)
def topic_changed(sender, instance, **kwargs):
    invalidate_stats(instance.session_id)
