"""
Group purchase service: the public operations of the coordination engine.
Every mutation runs as one transaction holding a lock on the purchase row,
with a bounded retry when a conditional write loses a race.
Notifications are sent only after the transaction commits.
"""
import time
from decimal import Decimal, InvalidOperation
from functools import partial
from typing import Optional, Dict, Any, Callable

from django.conf import settings
from django.db import transaction, OperationalError
from django.db.models import QuerySet
from django.utils import timezone

from apps.core.services.base import (
    BaseService, ServiceException, ValidationError, ServiceResult
)
from apps.core.models import User
from apps.core.utils.websocket_utils import broadcaster
from apps.group_purchases.models import (
    GroupPurchase, Participant, GroupPurchaseUpdate
)
from .exceptions import (
    NotFound, NotOpen, NotParticipating, CreatorCannotLeave,
    AlreadyParticipating, InvalidPrice, Forbidden, ConcurrencyConflict
)
from .participant_ledger import ParticipantLedger, validate_quantity
from .quantity_aggregator import QuantityAggregator
from .status_transitions import StatusTransitionEngine, StatusChange

Status = GroupPurchase.Status
EventType = GroupPurchaseUpdate.EventType

# Rejections that are normal outcomes of user input or races
EXPECTED_REJECTIONS = (
    NotFound, NotOpen, AlreadyParticipating, NotParticipating,
    CreatorCannotLeave, Forbidden, ValidationError,
)

# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = {'40001', '40P01', '55P03'}
# MySQL lock wait timeout and deadlock
RETRYABLE_MYSQL_ERRORS = {1205, 1213}
RETRYABLE_MESSAGES = ('database is locked', 'database table is locked')


def is_lock_contention(error: OperationalError) -> bool:
    """True for lock, deadlock and serialization failures worth retrying."""
    cause = error.__cause__
    sqlstate = getattr(cause, 'sqlstate', None) or getattr(cause, 'pgcode', None)
    if sqlstate in RETRYABLE_SQLSTATES:
        return True
    if error.args and isinstance(error.args[0], int) and error.args[0] in RETRYABLE_MYSQL_ERRORS:
        return True
    message = str(error).lower()
    return any(text in message for text in RETRYABLE_MESSAGES)


class GroupPurchaseService(BaseService):
    """
    Coordinates the participant ledger, quantity aggregator and status
    transition engine for group purchases.
    """

    def __init__(self):
        super().__init__()
        self.ledger = ParticipantLedger()
        self.aggregator = QuantityAggregator(self.ledger)
        self.transitions = StatusTransitionEngine()
        self.max_retries = getattr(
            settings, 'GROUP_PURCHASE_MAX_CONFLICT_RETRIES', 5)
        self.retry_backoff = getattr(
            settings, 'GROUP_PURCHASE_RETRY_BACKOFF_SECONDS', 0.05)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_group_purchase(
        self,
        creator: User,
        title: str,
        description: str,
        target_quantity: int,
        unit_price: Decimal,
        vendor_name: str,
        discounted_unit_price: Optional[Decimal] = None,
        deadline=None,
        vendor_contact: str = '',
        product_url: str = '',
        image_url: str = ''
    ) -> ServiceResult:
        """
        Create a group purchase and enrol the creator with a quantity of 1.

        Args:
            creator: User opening the purchase
            title: Short name of the purchase
            description: What is being bought
            target_quantity: Quantity at which the purchase is fulfilled
            unit_price: Regular price per unit
            vendor_name: Vendor supplying the product
            discounted_unit_price: Price per unit once fulfilled, at most unit_price
            deadline: Optional time after which the purchase expires
            vendor_contact: Optional vendor contact details
            product_url: Optional link to the product
            image_url: Optional product image

        Returns:
            ServiceResult with the created GroupPurchase, which is already
            fulfilled when target_quantity is 1
        """
        try:
            validate_quantity(target_quantity, field='target_quantity')
            unit_price = self._validate_prices(unit_price, discounted_unit_price)
            if discounted_unit_price is not None:
                discounted_unit_price = Decimal(str(discounted_unit_price))

            purchase = self._run_in_transaction(
                None,
                self._create,
                creator=creator,
                fields={
                    'title': title,
                    'description': description,
                    'target_quantity': target_quantity,
                    'unit_price': unit_price,
                    'discounted_unit_price': discounted_unit_price,
                    'deadline': deadline,
                    'vendor_name': vendor_name,
                    'vendor_contact': vendor_contact or '',
                    'product_url': product_url or '',
                    'image_url': image_url or '',
                }
            )

            self.log_info(
                f"Created group purchase {purchase.id}",
                purchase_id=purchase.id,
                creator_id=creator.id,
                target_quantity=target_quantity
            )
            return ServiceResult.ok(purchase)

        except ServiceException as e:
            return self._rejected("create", e, creator_id=creator.id)
        except Exception as e:
            self.log_error("Error creating group purchase",
                           exception=e, creator_id=creator.id)
            return ServiceResult.fail(
                "Failed to create group purchase",
                error_code="CREATE_FAILED"
            )

    def join_group_purchase(
        self,
        purchase_id: int,
        user: User,
        quantity: int,
        status: str = Participant.Status.COMMITTED
    ) -> ServiceResult:
        """
        Add ``user`` to a purchase with the given quantity.

        Returns:
            ServiceResult with a dict holding the new 'participant', the
            updated 'group_purchase' and whether this join 'fulfilled' it
        """
        try:
            self._validate_participant_status(status)
            self._apply_lazy_expiry(purchase_id)

            participant, purchase, change = self._run_in_transaction(
                purchase_id, self._join, purchase_id, user, quantity, status
            )

            self.log_info(
                f"User {user.id} joined group purchase {purchase_id}",
                purchase_id=purchase_id,
                user_id=user.id,
                quantity=quantity,
                new_total=purchase.current_quantity
            )
            return ServiceResult.ok({
                'participant': participant,
                'group_purchase': purchase,
                'fulfilled': change is not None,
            })

        except ServiceException as e:
            return self._rejected("join", e, purchase_id=purchase_id, user_id=user.id)
        except Exception as e:
            self.log_error("Error joining group purchase", exception=e,
                           purchase_id=purchase_id, user_id=user.id)
            return ServiceResult.fail(
                "Failed to join group purchase",
                error_code="JOIN_FAILED"
            )

    def cancel_group_purchase(
        self,
        purchase_id: int,
        requesting_user: User,
        reason: Optional[str] = None
    ) -> ServiceResult:
        """
        Cancel an open purchase. Only its creator may do this.

        Returns:
            ServiceResult with the cancelled GroupPurchase
        """
        try:
            self._apply_lazy_expiry(purchase_id)
            purchase = self._run_in_transaction(
                purchase_id, self._cancel, purchase_id, requesting_user, reason
            )

            self.log_info(
                f"Group purchase {purchase_id} cancelled",
                purchase_id=purchase_id,
                user_id=requesting_user.id
            )
            return ServiceResult.ok(purchase)

        except ServiceException as e:
            return self._rejected("cancel", e, purchase_id=purchase_id,
                                  user_id=requesting_user.id)
        except Exception as e:
            self.log_error("Error cancelling group purchase", exception=e,
                           purchase_id=purchase_id)
            return ServiceResult.fail(
                "Failed to cancel group purchase",
                error_code="CANCEL_FAILED"
            )

    def leave_group_purchase(self, purchase_id: int, user: User) -> ServiceResult:
        """
        Withdraw ``user`` from an open purchase.
        The creator cannot leave; they cancel instead.

        Returns:
            ServiceResult with a dict of the updated 'group_purchase' and the
            'quantity' that was withdrawn
        """
        try:
            self._apply_lazy_expiry(purchase_id)
            purchase, removed = self._run_in_transaction(
                purchase_id, self._leave, purchase_id, user
            )

            self.log_info(
                f"User {user.id} left group purchase {purchase_id}",
                purchase_id=purchase_id,
                user_id=user.id,
                quantity=removed.quantity
            )
            return ServiceResult.ok({
                'group_purchase': purchase,
                'quantity': removed.quantity,
            })

        except ServiceException as e:
            return self._rejected("leave", e, purchase_id=purchase_id, user_id=user.id)
        except Exception as e:
            self.log_error("Error leaving group purchase", exception=e,
                           purchase_id=purchase_id, user_id=user.id)
            return ServiceResult.fail(
                "Failed to leave group purchase",
                error_code="LEAVE_FAILED"
            )

    def update_participation(
        self,
        purchase_id: int,
        user: User,
        quantity: Optional[int] = None,
        status: Optional[str] = None
    ) -> ServiceResult:
        """
        Change the caller's own quantity and/or participant status.
        Raising the quantity can fulfill the purchase.

        Returns:
            ServiceResult with a dict of 'participant', 'group_purchase'
            and 'fulfilled'
        """
        try:
            if quantity is None and status is None:
                raise ValidationError(
                    "Provide a quantity or a status to update",
                    code="NOTHING_TO_UPDATE"
                )
            if status is not None:
                self._validate_participant_status(status)

            self._apply_lazy_expiry(purchase_id)
            participant, purchase, change = self._run_in_transaction(
                purchase_id, self._update_participation,
                purchase_id, user, quantity, status
            )

            self.log_info(
                f"User {user.id} updated participation in {purchase_id}",
                purchase_id=purchase_id,
                user_id=user.id,
                quantity=participant.quantity,
                status=participant.status
            )
            return ServiceResult.ok({
                'participant': participant,
                'group_purchase': purchase,
                'fulfilled': change is not None,
            })

        except ServiceException as e:
            return self._rejected("update participation", e,
                                  purchase_id=purchase_id, user_id=user.id)
        except Exception as e:
            self.log_error("Error updating participation", exception=e,
                           purchase_id=purchase_id, user_id=user.id)
            return ServiceResult.fail(
                "Failed to update participation",
                error_code="UPDATE_FAILED"
            )

    def process_expired_group_purchases(self) -> Dict[str, Any]:
        """
        Expire every open purchase whose deadline has passed.
        Safe to run repeatedly and concurrently with lazy expiry.

        Returns:
            Dictionary with processing statistics
        """
        due_ids = list(
            GroupPurchase.objects.filter(
                status=Status.OPEN,
                deadline__lt=timezone.now()
            ).values_list('id', flat=True)
        )

        stats = {
            'total_processed': 0,
            'expired': 0,
            'errors': 0
        }

        for purchase_id in due_ids:
            stats['total_processed'] += 1
            try:
                change = self._run_in_transaction(
                    purchase_id, self._expire_if_due, purchase_id)
                if change is not None:
                    stats['expired'] += 1
            except Exception as e:
                stats['errors'] += 1
                self.log_error(
                    f"Error expiring group purchase {purchase_id}",
                    exception=e,
                    purchase_id=purchase_id
                )

        if stats['total_processed']:
            self.log_info("Processed expired group purchases", stats=stats)
        return stats

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_group_purchase(self, purchase_id: int) -> ServiceResult:
        """
        Fetch a purchase, expiring it first if its deadline has passed.
        """
        try:
            self._apply_lazy_expiry(purchase_id)
            purchase = GroupPurchase.objects.select_related('creator').get(
                pk=purchase_id)
            return ServiceResult.ok(purchase)

        except GroupPurchase.DoesNotExist:
            return ServiceResult.from_exception(NotFound(purchase_id))
        except ServiceException as e:
            return self._rejected("get", e, purchase_id=purchase_id)

    def list_group_purchases(self, status: Optional[str] = None) -> ServiceResult:
        """
        All purchases, newest first, optionally filtered by status.
        Due expiries are applied before listing.
        """
        if status and status not in Status.values:
            return ServiceResult.fail(
                f"Unknown status '{status}'",
                error_code="INVALID_STATUS"
            )

        self.process_expired_group_purchases()
        queryset = self._purchase_queryset()
        if status:
            queryset = queryset.filter(status=status)
        return ServiceResult.ok(queryset)

    def list_created(self, user: User) -> ServiceResult:
        self.process_expired_group_purchases()
        return ServiceResult.ok(
            self._purchase_queryset().filter(creator=user)
        )

    def list_participating(self, user: User) -> ServiceResult:
        self.process_expired_group_purchases()
        return ServiceResult.ok(
            self._purchase_queryset().filter(participants__user=user).distinct()
        )

    def list_participants(self, purchase_id: int) -> ServiceResult:
        if not GroupPurchase.objects.filter(pk=purchase_id).exists():
            return ServiceResult.from_exception(NotFound(purchase_id))
        return ServiceResult.ok(self.ledger.list_participants(purchase_id))

    def list_updates(self, purchase_id: int, limit: int = 50) -> ServiceResult:
        """Most recent event log entries of a purchase."""
        if not GroupPurchase.objects.filter(pk=purchase_id).exists():
            return ServiceResult.from_exception(NotFound(purchase_id))
        return ServiceResult.ok(
            GroupPurchaseUpdate.objects.filter(
                group_purchase_id=purchase_id
            ).order_by('-created_at', '-id')[:limit]
        )

    # ------------------------------------------------------------------
    # Transaction bodies
    # ------------------------------------------------------------------

    def _create(self, creator: User, fields: Dict[str, Any]) -> GroupPurchase:
        purchase = GroupPurchase.objects.create(
            creator=creator,
            status=Status.OPEN,
            current_quantity=0,
            **fields
        )
        self._record_event(purchase, EventType.CREATED, creator_id=creator.id)

        self.ledger.add_participant(purchase.pk, creator.id, 1)
        self.aggregator.recompute(purchase)

        change = self.transitions.evaluate_threshold(purchase)
        if change:
            self._handle_status_change(purchase, change)
        return purchase

    def _join(self, purchase_id, user, quantity, status):
        purchase = self._lock_open_purchase(purchase_id)
        validate_quantity(quantity)

        participant = self.ledger.add_participant(
            purchase.pk, user.id, quantity, status)
        total = self.aggregator.recompute(purchase)

        self._record_event(
            purchase, EventType.JOINED,
            user_id=user.id,
            quantity=quantity,
            new_total=total,
            target=purchase.target_quantity
        )
        transaction.on_commit(partial(
            broadcaster.broadcast_participant_joined,
            purchase_id=purchase.pk,
            participant_name=user.display_name,
            quantity=quantity,
            new_total=total,
            participants_count=self.ledger.count_participants(purchase.pk)
        ))
        self._notify_progress(purchase)

        change = self.transitions.evaluate_threshold(purchase)
        if change:
            self._handle_status_change(purchase, change)
        return participant, purchase, change

    def _cancel(self, purchase_id, requesting_user, reason):
        purchase = self._lock_purchase(purchase_id)

        if purchase.creator_id != requesting_user.id:
            raise Forbidden("Only the creator can cancel this group purchase")
        self._ensure_open(purchase)

        change = self.transitions.cancel(purchase)
        self._handle_status_change(purchase, change, note=reason)
        return purchase

    def _leave(self, purchase_id, user):
        purchase = self._lock_open_purchase(purchase_id)

        if self.ledger.get_participant(purchase.pk, user.id) is None:
            raise NotParticipating(purchase.pk, user.id)
        if purchase.creator_id == user.id:
            raise CreatorCannotLeave(purchase.pk)

        removed = self.ledger.remove_participant(purchase.pk, user.id)
        total = self.aggregator.recompute(purchase)

        self._record_event(
            purchase, EventType.LEFT,
            user_id=user.id,
            quantity=removed.quantity,
            new_total=total
        )
        transaction.on_commit(partial(
            broadcaster.broadcast_participant_left,
            purchase_id=purchase.pk,
            quantity=removed.quantity,
            new_total=total,
            participants_count=self.ledger.count_participants(purchase.pk)
        ))
        self._notify_progress(purchase)
        return purchase, removed

    def _update_participation(self, purchase_id, user, quantity, status):
        purchase = self._lock_open_purchase(purchase_id)

        previous = self.ledger.get_participant(purchase.pk, user.id)
        if previous is None:
            raise NotParticipating(purchase.pk, user.id)
        old_quantity, old_status = previous.quantity, previous.status

        participant = self.ledger.update_participant(
            purchase.pk, user.id, quantity=quantity, status=status)
        total = self.aggregator.recompute(purchase)

        self._record_event(
            purchase, EventType.QUANTITY_CHANGED,
            user_id=user.id,
            old_quantity=old_quantity,
            new_quantity=participant.quantity,
            old_status=old_status,
            new_status=participant.status,
            new_total=total
        )
        if participant.quantity != old_quantity:
            self._notify_progress(purchase)

        change = self.transitions.evaluate_threshold(purchase)
        if change:
            self._handle_status_change(purchase, change)
        return participant, purchase, change

    def _expire_if_due(self, purchase_id) -> Optional[StatusChange]:
        try:
            purchase = self._lock_purchase(purchase_id)
        except NotFound:
            return None

        change = self.transitions.evaluate_deadline(purchase)
        if change:
            self._handle_status_change(purchase, change)
        return change

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_in_transaction(self, purchase_id, func: Callable, *args, **kwargs):
        """
        Run ``func`` in its own atomic block, retrying on write conflicts.

        Storage errors other than lock contention are not retried.

        Raises:
            ConcurrencyConflict: every attempt lost its conditional write
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                with transaction.atomic():
                    return func(*args, **kwargs)
            except (ConcurrencyConflict, OperationalError) as e:
                if isinstance(e, OperationalError) and not is_lock_contention(e):
                    raise
                self.log_warning(
                    f"Write conflict on group purchase {purchase_id}, "
                    f"attempt {attempt}/{self.max_retries}",
                    purchase_id=purchase_id,
                    error=str(e)
                )
                if attempt < self.max_retries:
                    time.sleep(self.retry_backoff * attempt)

        self.log_error(
            f"Giving up on group purchase {purchase_id} after "
            f"{self.max_retries} conflicting attempts",
            purchase_id=purchase_id
        )
        raise ConcurrencyConflict(purchase_id)

    def _apply_lazy_expiry(self, purchase_id) -> Optional[StatusChange]:
        """
        Expire the purchase in its own transaction if its deadline passed.
        Committed before the caller's operation, so the expiry sticks even
        when that operation is then rejected.
        """
        is_due = GroupPurchase.objects.filter(
            pk=purchase_id,
            status=Status.OPEN,
            deadline__lt=timezone.now()
        ).exists()
        if not is_due:
            return None
        return self._run_in_transaction(
            purchase_id, self._expire_if_due, purchase_id)

    def _lock_purchase(self, purchase_id) -> GroupPurchase:
        try:
            return GroupPurchase.objects.select_for_update().get(pk=purchase_id)
        except GroupPurchase.DoesNotExist:
            raise NotFound(purchase_id)

    def _lock_open_purchase(self, purchase_id) -> GroupPurchase:
        purchase = self._lock_purchase(purchase_id)
        self._ensure_open(purchase)
        return purchase

    def _ensure_open(self, purchase: GroupPurchase) -> None:
        if purchase.status != Status.OPEN:
            raise NotOpen(purchase.pk, purchase.status)
        # Deadline passed after the lazy expiry check; the next read persists it
        if purchase.is_past_deadline:
            raise NotOpen(purchase.pk, Status.EXPIRED)

    def _handle_status_change(
        self,
        purchase: GroupPurchase,
        change: StatusChange,
        note: Optional[str] = None
    ) -> None:
        self._record_event(
            purchase, EventType.STATUS_CHANGE,
            old_status=change.old_status,
            new_status=change.new_status,
            reason=change.reason,
            note=note or '',
            final_quantity=purchase.current_quantity,
            target=purchase.target_quantity
        )
        transaction.on_commit(partial(
            broadcaster.broadcast_status_change,
            purchase_id=change.purchase_id,
            old_status=change.old_status,
            new_status=change.new_status,
            reason=note or change.reason
        ))
        self.log_info(
            f"Group purchase {change.purchase_id} is now {change.new_status}",
            purchase_id=change.purchase_id,
            old_status=change.old_status,
            new_status=change.new_status,
            reason=change.reason
        )

    def _notify_progress(self, purchase: GroupPurchase) -> None:
        remaining = purchase.time_remaining
        transaction.on_commit(partial(
            broadcaster.broadcast_progress,
            purchase_id=purchase.pk,
            current_quantity=purchase.current_quantity,
            target_quantity=purchase.target_quantity,
            progress_percent=purchase.progress_percent,
            time_remaining_seconds=int(remaining.total_seconds()) if remaining else None
        ))

    def _record_event(self, purchase: GroupPurchase, event_type: str, **data) -> GroupPurchaseUpdate:
        return GroupPurchaseUpdate.objects.create(
            group_purchase=purchase,
            event_type=event_type,
            event_data=data
        )

    def _purchase_queryset(self) -> QuerySet:
        return GroupPurchase.objects.select_related('creator').order_by('-created_at', '-id')

    def _validate_prices(self, unit_price, discounted_unit_price) -> Decimal:
        try:
            unit_price = Decimal(str(unit_price))
            discounted = (
                Decimal(str(discounted_unit_price))
                if discounted_unit_price is not None else None
            )
        except (InvalidOperation, ValueError):
            raise InvalidPrice("Prices must be decimal numbers")

        if unit_price <= 0:
            raise InvalidPrice(
                "Unit price must be greater than zero",
                details={'unit_price': str(unit_price)}
            )
        if discounted is not None:
            if discounted < 0:
                raise InvalidPrice("Discounted unit price cannot be negative")
            if discounted > unit_price:
                raise InvalidPrice(
                    "Discounted unit price cannot exceed the unit price",
                    details={
                        'unit_price': str(unit_price),
                        'discounted_unit_price': str(discounted)
                    }
                )
        return unit_price

    def _validate_participant_status(self, status: str) -> None:
        if status not in Participant.Status.values:
            raise ValidationError(
                f"Unknown participant status '{status}'",
                code="INVALID_STATUS"
            )

    def _rejected(self, operation: str, exc: ServiceException, **context) -> ServiceResult:
        if isinstance(exc, EXPECTED_REJECTIONS):
            self.log_info(f"Rejected {operation}: {exc.message}",
                          error_code=exc.code, **context)
        else:
            self.log_warning(f"Failed {operation}: {exc.message}",
                             error_code=exc.code, **context)
        return ServiceResult.from_exception(exc)
