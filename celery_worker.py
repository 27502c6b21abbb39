from celery import Celery

app = Celery('cmms')
app.config_from_object('app.celery_app')
app.autodiscover_tasks(['app.tasks'])
