"""Django's command-line utility for administrative tasks."""

import os
import sys


def default_settings_module() -> str:
    """Production settings on Cloud Run / App Engine, dev settings elsewhere."""
    if os.getenv("K_SERVICE") or os.getenv("GAE_ENV") == "standard":
        return "skiff.settings_prod"
    return "skiff.settings_dev"


def main():
    """Run administrative tasks."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", default_settings_module())
    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
