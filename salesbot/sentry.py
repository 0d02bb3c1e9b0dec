import sentry_sdk

from salesbot.settings.settings import Settings


def setup_sentry(settings: Settings) -> bool:
    """Initialise Sentry when a DSN is configured. Returns whether it was enabled."""
    if not settings.SENTRY_DSN:
        return False
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=f"{settings.APP_NAME}@{settings.APP_VERSION}",
        # Chat requests carry the user's questions
        send_default_pii=False,
        traces_sample_rate=1.0 if settings.ENVIRONMENT == "DEV" else 0.2,
    )
    return True
