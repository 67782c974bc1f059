"""
Dashboard cache invalidation.
Opportunities, contacts and products feed the dashboard and sales reports, so any
write to them drops the cached payloads.
"""
import logging

from django.apps import apps
from django.db.models.signals import post_delete, post_save

from .cache_utils import invalidate_dashboard_cache

logger = logging.getLogger(__name__)

WATCHED_MODELS = ('pipeline.Opportunity', 'contacts.Contact', 'catalog.Product')


def _invalidate(sender, instance, **kwargs):
    event = 'deleted' if kwargs.get('signal') is post_delete else 'saved'
    logger.debug(f"{sender._meta.label} #{instance.pk} {event}, dropping dashboard cache")
    invalidate_dashboard_cache()


def connect_cache_signals():
    """Hook the watched models; called once from CoreConfig.ready()"""
    for label in WATCHED_MODELS:
        model = apps.get_model(label)
        uid = f"dashboard-cache:{label}"
        post_save.connect(_invalidate, sender=model, dispatch_uid=f"{uid}:save")
        post_delete.connect(_invalidate, sender=model, dispatch_uid=f"{uid}:delete")
