import logging
import logging.config

from backend.app.core.config import Settings


def configure_logging(settings: Settings) -> None:
    """Install a console handler on the root logger at LOG_LEVEL."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": settings.LOG_LEVEL.upper(),
            },
        }
    )


def check_environment(settings: Settings) -> None:
    """Fail fast on missing auth secrets in production, warn otherwise."""
    missing = settings.missing_auth_settings()
    if not missing:
        return
    if settings.is_production:
        raise RuntimeError(
            "Missing required environment variables for production: "
            f"{', '.join(missing)}"
        )
    logging.getLogger(__name__).warning(
        "Missing environment variables (%s); set DEV_ADMIN_USERNAME / DEV_ADMIN_PASSWORD "
        "or ADMIN_USERNAME / ADMIN_PASSWORD_HASH for local development",
        ", ".join(missing),
    )
