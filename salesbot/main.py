from uvicorn import run

from salesbot.logging import setup_logging
from salesbot.migrations import MigrationManager
from salesbot.settings import get_settings


def main():
    settings = get_settings()
    if settings.POSTGRES.APPLY_MIGRATIONS:
        setup_logging(settings)
        MigrationManager.apply_migrations(settings.POSTGRES)
    run(
        "salesbot.app:app",
        host=settings.SERVER.HOST,
        port=settings.SERVER.PORT,
        workers=settings.SERVER.WORKERS,
        reload=settings.SERVER.RELOAD,
        reload_dirs=["salesbot"],
        reload_excludes=["__pycache__", "*.pyc", "*.pyo", "*.pyd", "*.pyw", "*.pyz"],
        reload_includes=["*.py"],
    )


if __name__ == "__main__":
    main()
