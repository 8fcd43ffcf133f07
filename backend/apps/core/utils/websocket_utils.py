"""
Channel layer helpers for pushing group purchase events to subscribers.
Services call these after a transaction commits.
"""
import logging
from typing import Dict, Any, Optional
from decimal import Decimal

from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

logger = logging.getLogger(__name__)


class GroupPurchaseBroadcaster:
    """
    Publishes group purchase events to the ``group_purchase_<id>`` group.
    Delivery is best effort: failures are logged and never raised.
    """

    def __init__(self):
        self._channel_layer = None

    @property
    def channel_layer(self):
        # Resolved lazily so test settings can swap the layer backend
        if self._channel_layer is None:
            self._channel_layer = get_channel_layer()
        return self._channel_layer

    def get_group_name(self, purchase_id: int) -> str:
        return f'group_purchase_{purchase_id}'

    def _send_to_group(self, purchase_id: int, event_type: str, data: Dict[str, Any]) -> bool:
        """
        Send an event to everyone listening on a purchase.

        Args:
            purchase_id: The group purchase ID
            event_type: Channels message type, e.g. 'group_purchase.progress'
            data: Event payload

        Returns:
            True if the message was handed to the channel layer
        """
        group_name = self.get_group_name(purchase_id)
        try:
            layer = self.channel_layer
            if layer is None:
                logger.debug(f"No channel layer configured, dropping {event_type}")
                return False

            async_to_sync(layer.group_send)(
                group_name,
                {
                    'type': event_type,
                    'data': self._prepare_data_for_json(data)
                }
            )
            logger.debug(f"Sent {event_type} to {group_name}")
            return True

        except Exception as e:
            logger.error(f"Error broadcasting {event_type} to {group_name}: {e}")
            return False

    def _prepare_data_for_json(self, data: Dict[str, Any]) -> Dict[str, Any]:
        prepared = {}
        for key, value in data.items():
            if isinstance(value, Decimal):
                prepared[key] = str(value)
            elif hasattr(value, 'isoformat'):
                prepared[key] = value.isoformat()
            else:
                prepared[key] = value
        return prepared

    def broadcast_status_change(
        self,
        purchase_id: int,
        old_status: str,
        new_status: str,
        reason: Optional[str] = None
    ) -> bool:
        """
        Announce a lifecycle transition (fulfilled, expired or cancelled).

        Args:
            purchase_id: The group purchase ID
            old_status: Status before the transition
            new_status: Status after the transition
            reason: Why the transition happened, if known
        """
        data = {
            'purchase_id': purchase_id,
            'old_status': old_status,
            'new_status': new_status,
        }

        if reason:
            data['reason'] = reason

        if new_status == 'fulfilled':
            data['message'] = 'Target quantity reached! This group purchase is fulfilled.'
        elif new_status == 'expired':
            data['message'] = 'The deadline passed before the target was reached.'
        elif new_status == 'cancelled':
            data['message'] = 'This group purchase has been cancelled by its creator.'

        return self._send_to_group(purchase_id, 'group_purchase.status_change', data)

    def broadcast_participant_joined(
        self,
        purchase_id: int,
        participant_name: str,
        quantity: int,
        new_total: int,
        participants_count: int
    ) -> bool:
        data = {
            'purchase_id': purchase_id,
            'participant_name': participant_name,
            'quantity': quantity,
            'new_total': new_total,
            'participants_count': participants_count,
            'message': f'{participant_name} joined with {quantity} units',
        }
        return self._send_to_group(purchase_id, 'group_purchase.participant_joined', data)

    def broadcast_participant_left(
        self,
        purchase_id: int,
        quantity: int,
        new_total: int,
        participants_count: int
    ) -> bool:
        data = {
            'purchase_id': purchase_id,
            'quantity': quantity,
            'new_total': new_total,
            'participants_count': participants_count,
            'message': f'A participant withdrew {quantity} units',
        }
        return self._send_to_group(purchase_id, 'group_purchase.participant_left', data)

    def broadcast_progress(
        self,
        purchase_id: int,
        current_quantity: int,
        target_quantity: int,
        progress_percent: float,
        time_remaining_seconds: Optional[int] = None
    ) -> bool:
        data = {
            'purchase_id': purchase_id,
            'current_quantity': current_quantity,
            'target_quantity': target_quantity,
            'progress_percent': progress_percent,
        }

        if time_remaining_seconds is not None:
            data['time_remaining_seconds'] = time_remaining_seconds

        return self._send_to_group(purchase_id, 'group_purchase.progress', data)


broadcaster = GroupPurchaseBroadcaster()
