"""
Keeps GroupPurchase.current_quantity equal to the ledger total.
"""
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.group_purchases.models import GroupPurchase
from .exceptions import ConcurrencyConflict, InvalidQuantity, TransactionRequired
from .participant_ledger import ParticipantLedger, MAX_QUANTITY


class QuantityAggregator:

    def __init__(self, ledger: ParticipantLedger = None):
        self.ledger = ledger or ParticipantLedger()

    def recompute(self, purchase: GroupPurchase) -> int:
        """
        Write the ledger total onto ``purchase`` and return it.

        Must run inside the transaction that mutated the ledger. The write is
        conditional on ``purchase.version``; if another writer got there
        first ConcurrencyConflict is raised and the caller retries.
        A total above MAX_QUANTITY raises InvalidQuantity.
        """
        if not transaction.get_connection().in_atomic_block:
            raise TransactionRequired(
                "Quantity recompute must run inside transaction.atomic()"
            )

        total = self.ledger.sum_quantities(purchase.pk)
        if total > MAX_QUANTITY:
            raise InvalidQuantity(
                f"Total quantity would exceed {MAX_QUANTITY}",
                details={'purchase_id': purchase.pk, 'total': total}
            )
        now = timezone.now()

        updated = GroupPurchase.objects.filter(
            pk=purchase.pk,
            version=purchase.version
        ).update(
            current_quantity=total,
            version=F('version') + 1,
            updated_at=now
        )
        if updated == 0:
            raise ConcurrencyConflict(purchase.pk)

        purchase.current_quantity = total
        purchase.version += 1
        purchase.updated_at = now
        return total
