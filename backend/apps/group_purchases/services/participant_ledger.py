"""
Participant ledger: who has committed how much to a group purchase.
The ledger never touches GroupPurchase.current_quantity; callers pair every
mutation with QuantityAggregator.recompute inside the same transaction.
"""
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Sum, QuerySet

from apps.group_purchases.models import Participant
from .exceptions import AlreadyParticipating, InvalidQuantity, NotParticipating


# Upper bound of the PositiveIntegerField columns on every supported backend
MAX_QUANTITY = 2147483647


def validate_quantity(quantity, field: str = 'quantity') -> int:
    """Raise InvalidQuantity unless ``quantity`` is an integer from 1 to MAX_QUANTITY."""
    label = field.replace('_', ' ').capitalize()
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantity(
            f"{label} must be at least 1",
            details={field: quantity}
        )
    if quantity > MAX_QUANTITY:
        raise InvalidQuantity(
            f"{label} must be at most {MAX_QUANTITY}",
            details={field: quantity}
        )
    return quantity


class ParticipantLedger:
    """
    Row-level operations on Participant records.
    """

    def add_participant(
        self,
        purchase_id: int,
        user_id: int,
        quantity: int,
        status: str = Participant.Status.COMMITTED
    ) -> Participant:
        """
        Insert a participation row.

        Raises:
            InvalidQuantity: quantity is below 1
            AlreadyParticipating: the user already has a row for this purchase
        """
        validate_quantity(quantity)

        if Participant.objects.filter(
            group_purchase_id=purchase_id, user_id=user_id
        ).exists():
            raise AlreadyParticipating(purchase_id, user_id)

        try:
            # Savepoint keeps the outer transaction usable after a unique violation
            with transaction.atomic():
                return Participant.objects.create(
                    group_purchase_id=purchase_id,
                    user_id=user_id,
                    quantity=quantity,
                    status=status
                )
        except IntegrityError:
            if Participant.objects.filter(
                group_purchase_id=purchase_id, user_id=user_id
            ).exists():
                raise AlreadyParticipating(purchase_id, user_id)
            raise

    def remove_participant(self, purchase_id: int, user_id: int) -> Optional[Participant]:
        """
        Delete the user's row. Returns the removed row, or None if there was none.
        """
        participant = self.get_participant(purchase_id, user_id)
        if participant is None:
            return None
        participant.delete()
        return participant

    def update_participant(
        self,
        purchase_id: int,
        user_id: int,
        quantity: Optional[int] = None,
        status: Optional[str] = None
    ) -> Participant:
        """
        Change the quantity and/or status of an existing row.

        Raises:
            NotParticipating: no row exists for the user
            InvalidQuantity: quantity is given and below 1
        """
        if quantity is not None:
            validate_quantity(quantity)

        participant = self.get_participant(purchase_id, user_id)
        if participant is None:
            raise NotParticipating(purchase_id, user_id)

        update_fields = ['updated_at']
        if quantity is not None:
            participant.quantity = quantity
            update_fields.append('quantity')
        if status is not None:
            participant.status = status
            update_fields.append('status')

        participant.save(update_fields=update_fields)
        return participant

    def get_participant(self, purchase_id: int, user_id: int) -> Optional[Participant]:
        return Participant.objects.filter(
            group_purchase_id=purchase_id, user_id=user_id
        ).first()

    def list_participants(self, purchase_id: int) -> QuerySet:
        return Participant.objects.filter(
            group_purchase_id=purchase_id
        ).select_related('user').order_by('created_at', 'id')

    def count_participants(self, purchase_id: int) -> int:
        return Participant.objects.filter(group_purchase_id=purchase_id).count()

    def sum_quantities(self, purchase_id: int) -> int:
        """Total quantity over every row of the purchase, 0 when empty."""
        total = Participant.objects.filter(
            group_purchase_id=purchase_id
        ).aggregate(total=Sum('quantity'))['total']
        return total or 0
