# core/celery_app.py

from celery import Celery
import os

# Set the default Django settings module for Celery
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'core.settings')

app = Celery('campusgig')

# Broker, result backend and eager mode all come from CELERY_* settings
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks.py modules from installed Django apps
app.autodiscover_tasks()

app.conf.task_serializer = 'json'
app.conf.result_serializer = 'json'
app.conf.accept_content = ['json']
