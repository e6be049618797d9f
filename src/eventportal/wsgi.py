"""WSGI config for the event portal."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "eventportal.settings")

application = get_wsgi_application()
