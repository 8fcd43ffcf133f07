"""
API tests for group purchase endpoints.
Tests creation, joining, cancelling, leaving and the status code mapping.
"""
import pytest
from decimal import Decimal
from datetime import timedelta
from rest_framework import status
from rest_framework.test import APIClient
from django.urls import reverse
from django.utils import timezone

from apps.group_purchases.models import GroupPurchase, Participant
from apps.group_purchases.services.exceptions import ConcurrencyConflict
from apps.group_purchases.views import GroupPurchaseViewSet
from tests.conftest import (
    UserFactory, GroupPurchaseFactory, ParticipantFactory,
    GroupPurchaseUpdateFactory, add_participants
)


@pytest.mark.django_db
class TestGroupPurchaseCreateAPI:
    """Test group purchase creation endpoint."""

    def setup_method(self):
        self.client = APIClient()
        self.url = reverse('grouppurchase-list')
        self.user = UserFactory()
        self.data = {
            'title': 'Bulk 14k gold chain order',
            'description': 'Pooling for the vendor minimum',
            'target_quantity': 20,
            'unit_price': '120.00',
            'discounted_unit_price': '95.00',
            'vendor_name': 'Aurum Supply',
        }

    def test_authenticated_user_can_create(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, self.data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'open'
        assert response.data['current_quantity'] == 1
        assert response.data['participants_count'] == 1
        assert response.data['creator']['id'] == self.user.id
        assert Decimal(response.data['savings_per_unit']) == Decimal('25.00')

        purchase = GroupPurchase.objects.get(id=response.data['id'])
        assert purchase.creator == self.user

    def test_unauthenticated_cannot_create(self):
        response = self.client.post(self.url, self.data, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert not GroupPurchase.objects.exists()

    def test_missing_title_is_rejected(self):
        self.client.force_authenticate(self.user)
        del self.data['title']

        response = self.client.post(self.url, self.data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'title' in response.data

    def test_zero_target_returns_error_code(self):
        self.client.force_authenticate(self.user)
        self.data['target_quantity'] = 0

        response = self.client.post(self.url, self.data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'INVALID_QUANTITY'

    def test_discount_above_price_returns_error_code(self):
        self.client.force_authenticate(self.user)
        self.data['discounted_unit_price'] = '130.00'

        response = self.client.post(self.url, self.data, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'INVALID_PRICE'

    def test_target_of_one_is_created_fulfilled(self):
        self.client.force_authenticate(self.user)
        self.data['target_quantity'] = 1

        response = self.client.post(self.url, self.data, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == 'fulfilled'


@pytest.mark.django_db
class TestGroupPurchaseReadAPI:
    """Test public read endpoints."""

    def setup_method(self):
        self.client = APIClient()

    def test_list_is_public_and_paginated(self):
        GroupPurchaseFactory.create_batch(3)

        response = self.client.get(reverse('grouppurchase-list'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 3
        assert len(response.data['results']) == 3

    def test_list_filters_by_status(self):
        open_purchase = GroupPurchaseFactory()
        GroupPurchaseFactory(status=GroupPurchase.Status.CANCELLED)

        response = self.client.get(reverse('grouppurchase-list'), {'status': 'open'})

        assert [row['id'] for row in response.data['results']] == [open_purchase.id]

    def test_list_rejects_unknown_status(self):
        response = self.client.get(reverse('grouppurchase-list'), {'status': 'pending'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'INVALID_STATUS'

    def test_list_filters_by_vendor(self):
        GroupPurchaseFactory(vendor_name='Aurum Supply')
        GroupPurchaseFactory(vendor_name='Opal Direct')

        response = self.client.get(
            reverse('grouppurchase-list'), {'vendor_name': 'Aurum Supply'})

        assert response.data['count'] == 1
        assert response.data['results'][0]['vendor_name'] == 'Aurum Supply'

    def test_retrieve_returns_details(self):
        purchase = GroupPurchaseFactory(target_quantity=10)
        add_participants(purchase, 2, 3)

        response = self.client.get(reverse('grouppurchase-detail', args=[purchase.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['current_quantity'] == 5
        assert response.data['remaining_quantity'] == 5
        assert response.data['progress_percent'] == 50.0
        assert response.data['participants_count'] == 2
        assert response.data['is_open'] is True

    def test_retrieve_expires_overdue_purchase(self):
        purchase = GroupPurchaseFactory(deadline=timezone.now() - timedelta(minutes=1))

        response = self.client.get(reverse('grouppurchase-detail', args=[purchase.id]))

        assert response.data['status'] == 'expired'
        assert response.data['time_remaining'] == 'Ended'

    def test_retrieve_missing_purchase(self):
        response = self.client.get(reverse('grouppurchase-detail', args=[999999]))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error_code'] == 'NOT_FOUND'

    def test_participants_endpoint(self):
        purchase = GroupPurchaseFactory()
        add_participants(purchase, 4)

        response = self.client.get(
            reverse('grouppurchase-participants', args=[purchase.id]))

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 1
        assert response.data[0]['quantity'] == 4
        assert Decimal(response.data[0]['total_price']) == Decimal('480.00')

    def test_updates_endpoint(self):
        purchase = GroupPurchaseFactory()
        GroupPurchaseUpdateFactory(group_purchase=purchase, event_data={'quantity': 2})

        response = self.client.get(reverse('grouppurchase-updates', args=[purchase.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data[0]['event_type'] == 'joined'
        assert response.data[0]['event_data'] == {'quantity': 2}


@pytest.mark.django_db
class TestGroupPurchaseJoinAPI:
    """Test joining a group purchase."""

    def setup_method(self):
        self.client = APIClient()
        self.user = UserFactory()
        self.purchase = GroupPurchaseFactory(target_quantity=10)
        self.url = reverse('grouppurchase-join', args=[self.purchase.id])

    def test_join_returns_participant(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {'quantity': 3}, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['quantity'] == 3
        assert response.data['status'] == 'committed'
        assert response.data['user']['id'] == self.user.id
        self.purchase.refresh_from_db()
        assert self.purchase.current_quantity == 3

    def test_join_reaching_target_fulfills(self):
        self.client.force_authenticate(self.user)

        self.client.post(self.url, {'quantity': 10}, format='json')

        self.purchase.refresh_from_db()
        assert self.purchase.status == GroupPurchase.Status.FULFILLED

    def test_unauthenticated_cannot_join(self):
        response = self.client.post(self.url, {'quantity': 1}, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_duplicate_join(self):
        self.client.force_authenticate(self.user)
        self.client.post(self.url, {'quantity': 1}, format='json')

        response = self.client.post(self.url, {'quantity': 1}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'ALREADY_PARTICIPATING'

    def test_join_closed_purchase(self):
        self.purchase.status = GroupPurchase.Status.EXPIRED
        self.purchase.save()
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {'quantity': 1}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'NOT_OPEN'

    def test_join_missing_purchase(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(
            reverse('grouppurchase-join', args=[999999]), {'quantity': 1}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_zero_quantity(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {'quantity': 0}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'INVALID_QUANTITY'

    def test_quantity_above_column_range(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {'quantity': 2147483648}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'quantity' in response.data
        assert not self.purchase.participants.exists()

    def test_unknown_participant_status(self):
        self.client.force_authenticate(self.user)

        response = self.client.post(
            self.url, {'quantity': 1, 'status': 'maybe'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'status' in response.data

    def test_conflict_returns_409(self, mocker):
        mocker.patch.object(
            GroupPurchaseViewSet.service, '_join',
            side_effect=ConcurrencyConflict(self.purchase.id)
        )
        mocker.patch('apps.group_purchases.services.group_purchase_service.time.sleep')
        self.client.force_authenticate(self.user)

        response = self.client.post(self.url, {'quantity': 1}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error_code'] == 'CONCURRENCY_CONFLICT'


@pytest.mark.django_db
class TestGroupPurchaseCancelAPI:
    """Test cancelling a group purchase."""

    def setup_method(self):
        self.client = APIClient()
        self.creator = UserFactory()
        self.purchase = GroupPurchaseFactory(creator=self.creator)
        self.url = reverse('grouppurchase-cancel', args=[self.purchase.id])

    def test_creator_can_cancel(self):
        self.client.force_authenticate(self.creator)

        response = self.client.patch(self.url, {'reason': 'Vendor closed'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == 'cancelled'

    def test_other_user_is_forbidden(self):
        self.client.force_authenticate(UserFactory())

        response = self.client.patch(self.url, {}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['error_code'] == 'FORBIDDEN'
        self.purchase.refresh_from_db()
        assert self.purchase.status == GroupPurchase.Status.OPEN

    def test_cancel_fulfilled_purchase(self):
        self.purchase.status = GroupPurchase.Status.FULFILLED
        self.purchase.save()
        self.client.force_authenticate(self.creator)

        response = self.client.patch(self.url, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'NOT_OPEN'


@pytest.mark.django_db
class TestGroupPurchaseParticipationAPI:
    """Test leaving and updating participation."""

    def setup_method(self):
        self.client = APIClient()
        self.member = UserFactory()
        self.purchase = GroupPurchaseFactory(target_quantity=10)
        ParticipantFactory(group_purchase=self.purchase, user=self.member, quantity=3)
        self.purchase.current_quantity = 3
        self.purchase.save()

    def test_leave(self):
        self.client.force_authenticate(self.member)

        response = self.client.post(reverse('grouppurchase-leave', args=[self.purchase.id]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['current_quantity'] == 0
        assert not Participant.objects.filter(user=self.member).exists()

    def test_leave_without_participation(self):
        self.client.force_authenticate(UserFactory())

        response = self.client.post(reverse('grouppurchase-leave', args=[self.purchase.id]))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error_code'] == 'NOT_PARTICIPATING'

    def test_update_quantity(self):
        self.client.force_authenticate(self.member)

        response = self.client.patch(
            reverse('grouppurchase-participation', args=[self.purchase.id]),
            {'quantity': 5}, format='json'
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['quantity'] == 5
        self.purchase.refresh_from_db()
        assert self.purchase.current_quantity == 5

    def test_update_requires_a_field(self):
        self.client.force_authenticate(self.member)

        response = self.client.patch(
            reverse('grouppurchase-participation', args=[self.purchase.id]),
            {}, format='json'
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_created_and_participating_lists(self):
        self.client.force_authenticate(self.member)
        mine = GroupPurchaseFactory(creator=self.member)

        created = self.client.get(reverse('grouppurchase-created'))
        participating = self.client.get(reverse('grouppurchase-participating'))

        assert [row['id'] for row in created.data['results']] == [mine.id]
        assert [row['id'] for row in participating.data['results']] == [self.purchase.id]

    def test_my_lists_require_authentication(self):
        response = self.client.get(reverse('grouppurchase-created'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
