"""
Celery tasks for group purchases.
Periodic expiry sweep and event log pruning.
"""
from celery import shared_task
from django.conf import settings
from django.utils import timezone
from datetime import timedelta
import logging

logger = logging.getLogger(__name__)


@shared_task(name='process_expired_group_purchases')
def process_expired_group_purchases():
    """
    Expire open group purchases whose deadline has passed.
    Runs every 15 minutes via Celery Beat; reads expire lazily in between.
    """
    from apps.group_purchases.services.group_purchase_service import GroupPurchaseService

    try:
        stats = GroupPurchaseService().process_expired_group_purchases()

        logger.info(
            f"Processed expired group purchases - "
            f"Total: {stats['total_processed']}, "
            f"Expired: {stats['expired']}, "
            f"Errors: {stats['errors']}"
        )
        return stats

    except Exception as e:
        logger.error(f"Error processing expired group purchases: {str(e)}")
        raise


@shared_task(name='cleanup_old_group_purchase_updates')
def cleanup_old_group_purchase_updates():
    """
    Delete event log entries older than GROUP_PURCHASE_UPDATE_RETENTION_DAYS.
    Runs weekly.
    """
    from apps.group_purchases.models import GroupPurchaseUpdate

    retention_days = getattr(settings, 'GROUP_PURCHASE_UPDATE_RETENTION_DAYS', 30)

    try:
        cutoff_date = timezone.now() - timedelta(days=retention_days)
        deleted, _ = GroupPurchaseUpdate.objects.filter(
            created_at__lt=cutoff_date
        ).delete()

        logger.info(f"Deleted {deleted} old group purchase updates")
        return {'deleted': deleted}

    except Exception as e:
        logger.error(f"Error cleaning up group purchase updates: {str(e)}")
        raise
