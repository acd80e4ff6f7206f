"""System checks for outreach and gate configuration."""
from django.conf import settings
from django.core.checks import Tags, Warning, register


@register(Tags.security, deploy=False)
def check_shared_secret(app_configs, **kwargs):
    """Flag the insecure-by-default fallback of the shared-secret gate."""
    if settings.APP_SECRET:
        return []
    return [
        Warning(
            "APP_SECRET is not set; /api/v1/ingest/ and the messaging outcome "
            "webhook accept unauthenticated requests.",
            hint="Set APP_SECRET and send it as the X-App-Secret header.",
            id="treatment_finder.W001",
        )
    ]


@register(deploy=False)
def check_outreach_collaborators(app_configs, **kwargs):
    """Contact dispatch degrades to logged failures without these settings."""
    warnings = []
    if not settings.MESSAGING_WEBHOOK_URL:
        warnings.append(
            Warning(
                "MESSAGING_WEBHOOK_URL is not set; every contact dispatch will be "
                "logged as failed.",
                id="treatment_finder.W002",
            )
        )
    if not (settings.SCHEDULING_BASE_URL and settings.SCHEDULING_TOKEN_SECRET):
        warnings.append(
            Warning(
                "SCHEDULING_BASE_URL or SCHEDULING_TOKEN_SECRET is not set; "
                "scheduling links cannot be generated.",
                id="treatment_finder.W003",
            )
        )
    return warnings
