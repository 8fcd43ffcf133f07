# apps/group_purchases/models.py

from decimal import Decimal
from django.db import models
from django.core.validators import MinValueValidator
from django.utils import timezone
from django.utils.translation import gettext_lazy as _
from apps.core.models import User


class GroupPurchase(models.Model):
    """
    Pooled order for a vendor product.
    Buyers commit quantities until the vendor's minimum order is reached.
    ``current_quantity`` mirrors the sum of participant quantities and is
    only written by the service layer.
    """

    class Status(models.TextChoices):
        OPEN = 'open', _('Open for participants')
        FULFILLED = 'fulfilled', _('Target reached')
        EXPIRED = 'expired', _('Deadline passed')
        CANCELLED = 'cancelled', _('Cancelled by creator')

    creator = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='created_group_purchases'
    )

    # Descriptive fields
    title = models.CharField(max_length=200)
    description = models.TextField()
    vendor_name = models.CharField(max_length=200)
    vendor_contact = models.CharField(max_length=200, blank=True)
    product_url = models.URLField(max_length=500, blank=True)
    image_url = models.URLField(max_length=500, blank=True)

    # Quantities
    target_quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Quantity at which the purchase is fulfilled"
    )
    current_quantity = models.PositiveIntegerField(
        default=0,
        help_text="Sum of participant quantities"
    )

    # Pricing
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    discounted_unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Price per unit once the target is reached"
    )

    deadline = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Leave empty for no time limit"
    )

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.OPEN
    )

    # Bumped on every engine write, checked by conditional updates
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'group_purchases'
        verbose_name = _('Group Purchase')
        verbose_name_plural = _('Group Purchases')
        indexes = [
            models.Index(fields=['status', 'deadline'], name='group_purch_status_2f1c3a_idx'),
            models.Index(fields=['creator', 'status'], name='group_purch_creator_8d0e41_idx'),
            models.Index(fields=['created_at'], name='group_purch_created_5b7a92_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(target_quantity__gte=1),
                name='group_purchase_target_quantity_min'
            ),
            models.CheckConstraint(
                condition=models.Q(current_quantity__gte=0),
                name='group_purchase_current_quantity_min'
            ),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def is_open(self):
        return self.status == self.Status.OPEN

    @property
    def is_past_deadline(self):
        """True once the deadline has strictly passed."""
        return self.deadline is not None and self.deadline < timezone.now()

    @property
    def progress_percent(self):
        if self.target_quantity > 0:
            return min(round(self.current_quantity / self.target_quantity * 100, 2), 100)
        return 0

    @property
    def remaining_quantity(self):
        return max(self.target_quantity - self.current_quantity, 0)

    @property
    def savings_per_unit(self):
        if self.discounted_unit_price is None:
            return Decimal('0.00')
        return self.unit_price - self.discounted_unit_price

    @property
    def time_remaining(self):
        """Time left until the deadline, or None if there is none or it passed."""
        if self.deadline and self.deadline > timezone.now():
            return self.deadline - timezone.now()
        return None


class Participant(models.Model):
    """
    One user's commitment to a group purchase.
    The status is informational; every row counts toward the total.
    """

    class Status(models.TextChoices):
        INTERESTED = 'interested', _('Interested')
        COMMITTED = 'committed', _('Committed')
        PAID = 'paid', _('Paid')

    group_purchase = models.ForeignKey(
        GroupPurchase,
        on_delete=models.CASCADE,
        related_name='participants'
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='group_purchase_participations'
    )
    quantity = models.PositiveIntegerField(
        validators=[MinValueValidator(1)]
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.COMMITTED
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'group_purchase_participants'
        verbose_name = _('Participant')
        verbose_name_plural = _('Participants')
        constraints = [
            models.UniqueConstraint(
                fields=['group_purchase', 'user'],
                name='unique_participant_per_group_purchase'
            ),
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name='participant_quantity_min'
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'created_at'], name='group_purch_user_id_c41d07_idx'),
        ]
        ordering = ['created_at']

    def __str__(self):
        return f"{self.user.email} - {self.quantity} units - {self.group_purchase.title}"

    @property
    def total_price(self):
        """Price of this commitment at the discounted rate when one is set."""
        purchase = self.group_purchase
        price = (
            purchase.discounted_unit_price
            if purchase.discounted_unit_price is not None
            else purchase.unit_price
        )
        return self.quantity * price


class GroupPurchaseUpdate(models.Model):
    """
    Event log of changes to a group purchase.
    """

    class EventType(models.TextChoices):
        CREATED = 'created', _('Created')
        JOINED = 'joined', _('Participant joined')
        LEFT = 'left', _('Participant left')
        QUANTITY_CHANGED = 'quantity_changed', _('Participation changed')
        STATUS_CHANGE = 'status_change', _('Status changed')

    group_purchase = models.ForeignKey(
        GroupPurchase,
        on_delete=models.CASCADE,
        related_name='updates'
    )
    event_type = models.CharField(
        max_length=20,
        choices=EventType.choices
    )
    event_data = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'group_purchase_updates'
        verbose_name = _('Group Purchase Update')
        verbose_name_plural = _('Group Purchase Updates')
        indexes = [
            models.Index(fields=['group_purchase', 'created_at'], name='group_purch_group_p_9e3b16_idx'),
            models.Index(fields=['event_type'], name='group_purch_event_t_a70c5d_idx'),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.group_purchase.title} - {self.event_type} - {self.created_at}"
