"""ASGI config for the event portal."""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "eventportal.settings")

application = get_asgi_application()
