# config/celery.py

import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('storefront')

# Settings with the CELERY_ prefix configure the worker
app.config_from_object('django.conf:settings', namespace='CELERY')

# Picks up tasks.py from every installed app
app.autodiscover_tasks()
