"""
ASGI config for the ClinicOps project.

HTTP only; the API has no WebSocket routes.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "clinicops.settings")

application = get_asgi_application()
