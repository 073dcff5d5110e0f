# backend/core/celery/celery_app.py
from celery import Celery
from config import settings
from kombu import Queue

celery_app = Celery(
    "alarma",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
    include=["core.celery.alert_tasks"],
)

celery_app.conf.update(
    task_time_limit=60,
    broker_transport_options={"visibility_timeout": 3600},
    worker_heartbeat=60,
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,

    task_queues = (
        Queue('default', routing_key='default'),
        Queue('mail_queue', routing_key='mail'),
    ),
    task_default_queue = 'default',
    task_default_exchange = 'tasks',
    task_default_routing_key = 'default',

    task_routes = {
        'core.celery.alert_tasks.send_alert_email': {'queue': 'mail_queue'},
    }
)
