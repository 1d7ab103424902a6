#!/usr/bin/env python
"""Django's command-line utility for administrative tasks."""
import os
import sys


def main():
    """Run administrative tasks."""
    # Only pick a default if DJANGO_SETTINGS_MODULE is not already set
    if "DJANGO_SETTINGS_MODULE" not in os.environ:
        default = "slotkeeper.settings.test" if "test" in sys.argv else "slotkeeper.settings.base"
        os.environ.setdefault("DJANGO_SETTINGS_MODULE", default)

    try:
        from django.core.management import execute_from_command_line
    except ImportError as exc:
        raise ImportError(
            "Couldn't import Django. Are you sure it's installed and "
            "available on your PYTHONPATH environment variable? Did you "
            "forget to activate a virtual environment?"
        ) from exc
    execute_from_command_line(sys.argv)


if __name__ == "__main__":
    main()
