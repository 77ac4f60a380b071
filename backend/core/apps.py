from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'backend.core'
    verbose_name = 'Core (users and audit)'

    def ready(self):
        """Connect cache invalidation for orders, purchase orders and suppliers"""
        import backend.core.cache_signals  # noqa: F401
