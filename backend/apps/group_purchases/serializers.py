# apps/group_purchases/serializers.py

from rest_framework import serializers
from .models import GroupPurchase, Participant, GroupPurchaseUpdate
from apps.core.serializers import UserPublicSerializer
from .services.participant_ledger import MAX_QUANTITY


class GroupPurchaseListSerializer(serializers.ModelSerializer):
    """Lightweight for purchase listings"""
    creator = UserPublicSerializer(read_only=True)
    progress_percent = serializers.FloatField(read_only=True)
    remaining_quantity = serializers.IntegerField(read_only=True)
    time_remaining = serializers.SerializerMethodField()

    class Meta:
        model = GroupPurchase
        fields = [
            'id', 'title', 'vendor_name', 'creator', 'image_url',
            'target_quantity', 'current_quantity', 'remaining_quantity',
            'progress_percent', 'unit_price', 'discounted_unit_price',
            'deadline', 'time_remaining', 'status', 'created_at'
        ]

    def get_time_remaining(self, obj):
        if obj.deadline is None:
            return None
        if obj.time_remaining:
            total_seconds = int(obj.time_remaining.total_seconds())
            days = total_seconds // 86400
            hours = (total_seconds % 86400) // 3600
            minutes = (total_seconds % 3600) // 60
            if days:
                return f"{days}d {hours}h"
            return f"{hours}h {minutes}m"
        return "Ended"


class GroupPurchaseDetailSerializer(GroupPurchaseListSerializer):
    """Full purchase details"""
    savings_per_unit = serializers.DecimalField(
        max_digits=12, decimal_places=2, read_only=True
    )
    is_open = serializers.BooleanField(read_only=True)
    participants_count = serializers.SerializerMethodField()

    class Meta(GroupPurchaseListSerializer.Meta):
        fields = GroupPurchaseListSerializer.Meta.fields + [
            'description', 'vendor_contact', 'product_url',
            'savings_per_unit', 'is_open', 'participants_count', 'updated_at'
        ]

    def get_participants_count(self, obj):
        return obj.participants.count()


class GroupPurchaseCreateSerializer(serializers.Serializer):
    """
    Input for creating a group purchase.
    Only checks types and formats; quantity and price rules are enforced by
    the service so they come back with a stable error code.
    """
    title = serializers.CharField(max_length=200)
    description = serializers.CharField()
    target_quantity = serializers.IntegerField(max_value=MAX_QUANTITY)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    discounted_unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True
    )
    deadline = serializers.DateTimeField(required=False, allow_null=True)
    vendor_name = serializers.CharField(max_length=200)
    vendor_contact = serializers.CharField(
        max_length=200, required=False, allow_blank=True, default=''
    )
    product_url = serializers.URLField(
        max_length=500, required=False, allow_blank=True, default=''
    )
    image_url = serializers.URLField(
        max_length=500, required=False, allow_blank=True, default=''
    )


class JoinGroupPurchaseSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(max_value=MAX_QUANTITY)
    status = serializers.ChoiceField(
        choices=Participant.Status.choices,
        default=Participant.Status.COMMITTED
    )


class CancelGroupPurchaseSerializer(serializers.Serializer):
    reason = serializers.CharField(
        max_length=500, required=False, allow_blank=True
    )


class ParticipationUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(required=False, max_value=MAX_QUANTITY)
    status = serializers.ChoiceField(
        choices=Participant.Status.choices, required=False
    )

    def validate(self, attrs):
        if 'quantity' not in attrs and 'status' not in attrs:
            raise serializers.ValidationError(
                "Provide a quantity or a status to update"
            )
        return attrs


class ParticipantSerializer(serializers.ModelSerializer):
    """One participant of a group purchase"""
    user = UserPublicSerializer(read_only=True)
    total_price = serializers.DecimalField(
        max_digits=14, decimal_places=2, read_only=True
    )

    class Meta:
        model = Participant
        fields = [
            'id', 'group_purchase', 'user', 'quantity', 'status',
            'total_price', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class GroupPurchaseUpdateSerializer(serializers.ModelSerializer):
    """Event log entry"""

    class Meta:
        model = GroupPurchaseUpdate
        fields = ['id', 'event_type', 'event_data', 'created_at']
        read_only_fields = fields
