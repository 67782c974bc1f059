from django.apps import AppConfig


class ConciergeConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gerezim.concierge'
