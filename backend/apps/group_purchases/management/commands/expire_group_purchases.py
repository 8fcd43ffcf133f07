# backend/apps/group_purchases/management/commands/expire_group_purchases.py

from django.core.management.base import BaseCommand
from django.utils import timezone


class Command(BaseCommand):
    help = 'Expire open group purchases whose deadline has passed'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the purchases that would expire without changing them',
        )

    def handle(self, *args, **options):
        from apps.group_purchases.models import GroupPurchase
        from apps.group_purchases.services.group_purchase_service import GroupPurchaseService

        if options['dry_run']:
            due = GroupPurchase.objects.filter(
                status=GroupPurchase.Status.OPEN,
                deadline__lt=timezone.now()
            ).order_by('deadline')

            for purchase in due:
                self.stdout.write(
                    f'   #{purchase.id} {purchase.title} '
                    f'({purchase.current_quantity}/{purchase.target_quantity}, '
                    f'deadline {purchase.deadline:%Y-%m-%d %H:%M})'
                )
            self.stdout.write(self.style.WARNING(
                f'{due.count()} group purchase(s) would expire'))
            return

        stats = GroupPurchaseService().process_expired_group_purchases()

        self.stdout.write(self.style.SUCCESS(
            f"Expired {stats['expired']} of {stats['total_processed']} "
            f"overdue group purchase(s)"))
        if stats['errors']:
            self.stdout.write(self.style.ERROR(
                f"{stats['errors']} group purchase(s) failed to expire, see logs"))
