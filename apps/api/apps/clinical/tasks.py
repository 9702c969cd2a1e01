"""
Celery tasks for long-running AI work on consults.
"""
from celery import shared_task

from apps.core.observability import get_sanitized_logger

logger = get_sanitized_logger(__name__)


@shared_task(name='apps.clinical.tasks.run_consult_diagnosis')
def run_consult_diagnosis(visit_id, user_id, book_ids=None, use_web=False):
    """
    Background variant of ``consults.run_admin_diagnosis``.

    Args:
        visit_id: consult Visit id
        user_id: reviewer who queued the run (recorded on the AI usage log)
        book_ids: reference library books to include
        use_web: use the web-search model
    """
    from apps.ai.exceptions import AIServiceError
    from apps.authz.context import CallerContext
    from apps.authz.models import User
    from apps.clinical.consults import run_admin_diagnosis

    ctx = CallerContext.for_user(User.objects.get(id=user_id))
    try:
        diagnosis, result = run_admin_diagnosis(ctx, visit_id, book_ids or (), use_web)
    except AIServiceError as e:
        logger.error(
            'Background consult diagnosis failed',
            extra={'event': 'consult_diagnosis_task_failed', 'visit_id': str(visit_id), 'error': str(e)}
        )
        return {'visit_id': str(visit_id), 'status': 'failed', 'error': str(e)}

    return {
        'visit_id': str(visit_id),
        'status': 'completed',
        'diagnosis_id': str(diagnosis.id),
        'confidence': result.confidence,
    }
