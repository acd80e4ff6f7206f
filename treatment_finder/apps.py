from django.apps import AppConfig


class TreatmentFinderConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "treatment_finder"
    verbose_name = "Treatment Finder"

    def ready(self):
        """
        Register startup checks.

        The shared-secret gate on ingestion and the outcome webhook is open
        when APP_SECRET is unset; the check makes that visible on every
        ``manage.py`` invocation instead of failing silently.
        """
        from treatment_finder import checks  # noqa: F401
