from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gerezim.core'

    def ready(self):
        from .cache_signals import connect_cache_signals
        connect_cache_signals()
