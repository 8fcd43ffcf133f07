"""
Lifecycle state machine for group purchases.

    open -> fulfilled   current quantity reached the target
    open -> expired     deadline passed before the target was reached
    open -> cancelled   creator cancelled

Every other status is terminal. Fulfillment is never reversed.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.db.models import F
from django.utils import timezone

from apps.group_purchases.models import GroupPurchase
from .exceptions import ConcurrencyConflict, InvalidTransition

Status = GroupPurchase.Status


@dataclass(frozen=True)
class StatusChange:
    purchase_id: int
    old_status: str
    new_status: str
    reason: str


class StatusTransitionEngine:

    TRANSITIONS = {
        Status.OPEN: frozenset({Status.FULFILLED, Status.EXPIRED, Status.CANCELLED}),
        Status.FULFILLED: frozenset(),
        Status.EXPIRED: frozenset(),
        Status.CANCELLED: frozenset(),
    }

    REASON_TARGET_REACHED = 'target_reached'
    REASON_DEADLINE_PASSED = 'deadline_passed'
    REASON_CANCELLED = 'cancelled_by_creator'

    def can_transition(self, old_status: str, new_status: str) -> bool:
        return new_status in self.TRANSITIONS.get(old_status, frozenset())

    def is_terminal(self, status: str) -> bool:
        return not self.TRANSITIONS.get(status)

    def evaluate_threshold(self, purchase: GroupPurchase) -> Optional[StatusChange]:
        """Fulfill an open purchase whose quantity has reached its target."""
        if purchase.status != Status.OPEN:
            return None
        if purchase.current_quantity < purchase.target_quantity:
            return None
        return self.transition(purchase, Status.FULFILLED, self.REASON_TARGET_REACHED)

    def evaluate_deadline(
        self,
        purchase: GroupPurchase,
        now: Optional[datetime] = None
    ) -> Optional[StatusChange]:
        """Expire an open purchase whose deadline is strictly in the past."""
        if purchase.status != Status.OPEN or purchase.deadline is None:
            return None
        now = now or timezone.now()
        if not purchase.deadline < now:
            return None
        return self.transition(purchase, Status.EXPIRED, self.REASON_DEADLINE_PASSED)

    def cancel(self, purchase: GroupPurchase) -> StatusChange:
        return self.transition(purchase, Status.CANCELLED, self.REASON_CANCELLED)

    def transition(self, purchase: GroupPurchase, new_status: str, reason: str) -> StatusChange:
        """
        Persist a status change on ``purchase``.

        The update only applies if both the status and the version are the
        ones this instance was read with.

        Raises:
            InvalidTransition: the table does not allow the move
            ConcurrencyConflict: the row changed since it was read
        """
        old_status = purchase.status
        if not self.can_transition(old_status, new_status):
            raise InvalidTransition(old_status, new_status)

        now = timezone.now()
        updated = GroupPurchase.objects.filter(
            pk=purchase.pk,
            status=old_status,
            version=purchase.version
        ).update(
            status=new_status,
            version=F('version') + 1,
            updated_at=now
        )
        if updated == 0:
            raise ConcurrencyConflict(purchase.pk)

        purchase.status = new_status
        purchase.version += 1
        purchase.updated_at = now

        return StatusChange(
            purchase_id=purchase.pk,
            old_status=str(old_status),
            new_status=str(new_status),
            reason=reason
        )
