"""
WSGI config for advisory_checkout project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'advisory_checkout.settings')

application = get_wsgi_application()
