from urllib.parse import urlparse

from django.conf import settings
from django.contrib.sites.models import Site
from django.db.models.signals import post_migrate, post_save
from django.dispatch import receiver

from .models import User, UserPreference


@receiver(post_save, sender=User)
def ensure_ui_pref(sender, instance, created, **kwargs):
    if created:
        UserPreference.objects.get_or_create(user=instance)


@receiver(post_migrate)
def sync_site_domain(sender, **kwargs):
    if sender.name != "accounts":
        return
    site_url = getattr(settings, "SITE_URL", "")
    if not site_url:
        return
    host = urlparse(site_url).hostname or "example.com"
    sid = getattr(settings, "SITE_ID", 1)
    Site.objects.update_or_create(id=sid, defaults={"domain": host, "name": host})
