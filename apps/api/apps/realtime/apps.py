from django.apps import AppConfig


class RealtimeConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.realtime'
    verbose_name = 'Realtime change feed'

    def ready(self):
        from apps.realtime import signals  # noqa: F401
