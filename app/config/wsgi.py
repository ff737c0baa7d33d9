"""
WSGI config for the notification service.

The service is served over ASGI (see asgi.py) so websockets work; WSGI is
kept for management tooling and plain HTTP-only deployments.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
