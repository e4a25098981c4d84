from app.tasks.celery_app import celery
from app.tasks import worker_jobs

@celery.task(name="app.tasks.jobs.expire_pending_payments")
def expire_pending_payments():
    return worker_jobs.expire_pending_payments()
