"""
Error kinds raised by the group purchase engine.
Each carries a stable code that the API maps to an HTTP status.
"""
from apps.core.services.base import (
    ServiceException,
    ValidationError,
    BusinessRuleViolation,
)


class NotFound(ServiceException):
    default_code = 'NOT_FOUND'

    def __init__(self, purchase_id):
        super().__init__(
            f"Group purchase {purchase_id} not found",
            details={'purchase_id': purchase_id}
        )


class NotOpen(BusinessRuleViolation):
    default_code = 'NOT_OPEN'

    def __init__(self, purchase_id, status):
        super().__init__(
            f"Group purchase is {status} and no longer accepts changes",
            details={'purchase_id': purchase_id, 'status': status}
        )


class AlreadyParticipating(BusinessRuleViolation):
    default_code = 'ALREADY_PARTICIPATING'

    def __init__(self, purchase_id, user_id):
        super().__init__(
            "Already participating in this group purchase",
            details={'purchase_id': purchase_id, 'user_id': user_id}
        )


class NotParticipating(BusinessRuleViolation):
    default_code = 'NOT_PARTICIPATING'

    def __init__(self, purchase_id, user_id):
        super().__init__(
            "Not participating in this group purchase",
            details={'purchase_id': purchase_id, 'user_id': user_id}
        )


class CreatorCannotLeave(BusinessRuleViolation):
    default_code = 'CREATOR_CANNOT_LEAVE'

    def __init__(self, purchase_id):
        super().__init__(
            "The creator cannot leave an open group purchase; cancel it instead",
            details={'purchase_id': purchase_id}
        )


class InvalidQuantity(ValidationError):
    default_code = 'INVALID_QUANTITY'


class InvalidPrice(InvalidQuantity):
    """Creation input rejected for its prices rather than its quantity."""
    default_code = 'INVALID_PRICE'


class Forbidden(ServiceException):
    default_code = 'FORBIDDEN'


class InvalidTransition(BusinessRuleViolation):
    default_code = 'INVALID_TRANSITION'

    def __init__(self, old_status, new_status):
        super().__init__(
            f"Cannot transition from {old_status} to {new_status}",
            details={'old_status': old_status, 'new_status': new_status}
        )


class ConcurrencyConflict(ServiceException):
    """A conditional write found the row changed underneath it."""
    default_code = 'CONCURRENCY_CONFLICT'

    def __init__(self, purchase_id):
        super().__init__(
            f"Group purchase {purchase_id} was modified concurrently",
            details={'purchase_id': purchase_id}
        )


class TransactionRequired(ServiceException):
    """Raised when an engine component is used outside transaction.atomic()."""
    default_code = 'TRANSACTION_REQUIRED'
