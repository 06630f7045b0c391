import logging
from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from notifications.models import Notification
from notifications.tasks import deliver_notification_task

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Prune delivered notifications from the outbox; optionally requeue pending ones."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=30,
                            help="Age in days after which sent rows are pruned (default: 30).")
        parser.add_argument("--requeue", action="store_true",
                            help="Hand still-pending rows to the delivery worker again.")
        parser.add_argument("--dry-run", action="store_true",
                            help="Report counts only.")

    def handle(self, *args, **options):
        days = options["days"]
        stale = Notification.objects.filter(
            status=Notification.STATUS_SENT,
            created_at__lt=timezone.now() - timedelta(days=days),
        )
        pending = (
            Notification.objects.filter(status=Notification.STATUS_PENDING).values_list("id", flat=True)
            if options["requeue"]
            else Notification.objects.none()
        )
        stale_count, pending_ids = stale.count(), list(pending)

        if options["dry_run"]:
            self.stdout.write(self.style.WARNING(
                f"DRY RUN: {stale_count} sent notification(s) older than {days} days would be pruned, "
                f"{len(pending_ids)} pending would be requeued."
            ))
            return

        stale.delete()
        for notification_id in pending_ids:
            deliver_notification_task.delay(notification_id)

        logger.info("Outbox pruned: %d removed, %d requeued", stale_count, len(pending_ids))
        self.stdout.write(self.style.SUCCESS(
            f"Pruned {stale_count} sent notification(s); requeued {len(pending_ids)}."
        ))
