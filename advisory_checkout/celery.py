import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'advisory_checkout.settings')

app = Celery('advisory_checkout')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
