"""
ProdTrack — Celery Application

Tasks are auto-discovered from each installed app's tasks.py; periodic
schedules (e.g. stock.reconcile_stock_balances) are stored by
django-celery-beat's DatabaseScheduler.

@file config/celery.py
"""

import os

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('prodtrack')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
