"""
Unit tests for ParticipantLedger.
"""
import pytest

from apps.group_purchases.models import Participant
from apps.group_purchases.services.exceptions import (
    AlreadyParticipating, InvalidQuantity, NotParticipating
)
from apps.group_purchases.services.participant_ledger import (
    ParticipantLedger, validate_quantity, MAX_QUANTITY
)
from tests.conftest import UserFactory, GroupPurchaseFactory, ParticipantFactory


@pytest.fixture
def ledger():
    return ParticipantLedger()


class TestValidateQuantity:

    @pytest.mark.parametrize('quantity', [1, 5, 1000])
    def test_accepts_positive_integers(self, quantity):
        assert validate_quantity(quantity) == quantity

    @pytest.mark.parametrize('quantity', [0, -3, 1.5, '2', None, True])
    def test_rejects_everything_else(self, quantity):
        with pytest.raises(InvalidQuantity) as exc_info:
            validate_quantity(quantity)

        assert exc_info.value.code == 'INVALID_QUANTITY'

    def test_message_names_the_field(self):
        with pytest.raises(InvalidQuantity, match='Target quantity'):
            validate_quantity(0, field='target_quantity')

    def test_accepts_column_maximum(self):
        assert validate_quantity(MAX_QUANTITY) == MAX_QUANTITY

    @pytest.mark.parametrize('quantity', [MAX_QUANTITY + 1, 2 ** 63])
    def test_rejects_values_above_column_maximum(self, quantity):
        with pytest.raises(InvalidQuantity, match='at most') as exc_info:
            validate_quantity(quantity)

        assert exc_info.value.code == 'INVALID_QUANTITY'


@pytest.mark.django_db
class TestAddParticipant:

    def test_inserts_row(self, ledger, open_purchase):
        user = UserFactory()

        participant = ledger.add_participant(open_purchase.id, user.id, 3)

        assert participant.pk is not None
        assert participant.quantity == 3
        assert participant.status == Participant.Status.COMMITTED
        assert Participant.objects.filter(group_purchase=open_purchase).count() == 1

    def test_stores_given_status(self, ledger, open_purchase):
        user = UserFactory()

        participant = ledger.add_participant(
            open_purchase.id, user.id, 2, Participant.Status.INTERESTED)

        assert participant.status == Participant.Status.INTERESTED

    def test_duplicate_user_is_rejected_regardless_of_quantity(self, ledger, open_purchase):
        user = UserFactory()
        ledger.add_participant(open_purchase.id, user.id, 2)

        with pytest.raises(AlreadyParticipating) as exc_info:
            ledger.add_participant(open_purchase.id, user.id, 7)

        assert exc_info.value.code == 'ALREADY_PARTICIPATING'
        assert Participant.objects.get(
            group_purchase=open_purchase, user=user).quantity == 2

    def test_same_user_can_join_different_purchases(self, ledger):
        user = UserFactory()
        first = GroupPurchaseFactory()
        second = GroupPurchaseFactory()

        ledger.add_participant(first.id, user.id, 1)
        ledger.add_participant(second.id, user.id, 1)

        assert Participant.objects.filter(user=user).count() == 2

    def test_zero_quantity_is_rejected(self, ledger, open_purchase):
        with pytest.raises(InvalidQuantity):
            ledger.add_participant(open_purchase.id, UserFactory().id, 0)

        assert not Participant.objects.exists()

    def test_unique_violation_is_translated(self, ledger, open_purchase, mocker):
        """A row inserted between the existence check and the insert."""
        user = UserFactory()
        ParticipantFactory(group_purchase=open_purchase, user=user)
        # Bypass the up-front existence check
        mocker.patch(
            'apps.group_purchases.services.participant_ledger.Participant.objects.filter',
            side_effect=[
                mocker.Mock(exists=mocker.Mock(return_value=False)),
                Participant.objects.filter(group_purchase_id=open_purchase.id, user_id=user.id),
            ]
        )

        with pytest.raises(AlreadyParticipating):
            ledger.add_participant(open_purchase.id, user.id, 4)


@pytest.mark.django_db
class TestRemoveParticipant:

    def test_deletes_row_and_returns_it(self, ledger, open_purchase):
        participant = ParticipantFactory(group_purchase=open_purchase, quantity=4)

        removed = ledger.remove_participant(open_purchase.id, participant.user_id)

        assert removed.quantity == 4
        assert not Participant.objects.filter(pk=participant.pk).exists()

    def test_missing_row_is_a_noop(self, ledger, open_purchase):
        assert ledger.remove_participant(open_purchase.id, UserFactory().id) is None


@pytest.mark.django_db
class TestUpdateParticipant:

    def test_changes_quantity(self, ledger, open_purchase):
        participant = ParticipantFactory(group_purchase=open_purchase, quantity=2)

        updated = ledger.update_participant(
            open_purchase.id, participant.user_id, quantity=6)

        participant.refresh_from_db()
        assert updated.quantity == 6
        assert participant.quantity == 6

    def test_changes_status_only(self, ledger, open_purchase):
        participant = ParticipantFactory(group_purchase=open_purchase, quantity=2)

        ledger.update_participant(
            open_purchase.id, participant.user_id, status=Participant.Status.PAID)

        participant.refresh_from_db()
        assert participant.status == Participant.Status.PAID
        assert participant.quantity == 2

    def test_missing_row_raises(self, ledger, open_purchase):
        with pytest.raises(NotParticipating):
            ledger.update_participant(open_purchase.id, UserFactory().id, quantity=2)

    def test_invalid_quantity_raises(self, ledger, open_purchase):
        participant = ParticipantFactory(group_purchase=open_purchase)

        with pytest.raises(InvalidQuantity):
            ledger.update_participant(open_purchase.id, participant.user_id, quantity=0)


@pytest.mark.django_db
class TestSumQuantities:

    def test_empty_ledger_sums_to_zero(self, ledger, open_purchase):
        assert ledger.sum_quantities(open_purchase.id) == 0

    def test_sums_all_statuses(self, ledger, open_purchase):
        ParticipantFactory(group_purchase=open_purchase, quantity=2,
                           status=Participant.Status.INTERESTED)
        ParticipantFactory(group_purchase=open_purchase, quantity=3,
                           status=Participant.Status.COMMITTED)
        ParticipantFactory(group_purchase=open_purchase, quantity=5,
                           status=Participant.Status.PAID)

        assert ledger.sum_quantities(open_purchase.id) == 10

    def test_ignores_other_purchases(self, ledger, open_purchase):
        ParticipantFactory(group_purchase=open_purchase, quantity=2)
        ParticipantFactory(quantity=40)

        assert ledger.sum_quantities(open_purchase.id) == 2

    def test_list_participants_in_join_order(self, ledger, open_purchase):
        first = ParticipantFactory(group_purchase=open_purchase)
        second = ParticipantFactory(group_purchase=open_purchase)

        assert list(ledger.list_participants(open_purchase.id)) == [first, second]
        assert ledger.count_participants(open_purchase.id) == 2
