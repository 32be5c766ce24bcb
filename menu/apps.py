from django.apps import AppConfig


class MenuConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "menu"

    def ready(self):
        # Menu writes invalidate the restaurant's cached listings
        from . import signals  # noqa: F401
