"""
Pytest configuration and fixtures for Jewel Connect tests.
Provides factories for users, group purchases and participants.
"""
import os
import sys

import django

# Add the backend directory to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Configure Django settings before any model imports
os.environ.setdefault('DJANGO_SETTINGS_MODULE',
                      'jewel_connect.settings.test')
django.setup()

from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import factory  # noqa: E402
import pytest  # noqa: E402
from django.utils import timezone  # noqa: E402
from factory.django import DjangoModelFactory  # noqa: E402
from faker import Faker  # noqa: E402
from rest_framework.test import APIClient  # noqa: E402

from apps.core.models import User  # noqa: E402
from apps.group_purchases.models import (  # noqa: E402
    GroupPurchase, Participant, GroupPurchaseUpdate
)
from apps.group_purchases.services.group_purchase_service import (  # noqa: E402
    GroupPurchaseService
)

fake = Faker('en_GB')

GEMSTONES = ['sapphire', 'emerald', 'ruby', 'opal', 'tanzanite', 'aquamarine']


# ==================== Factory Classes ====================

class UserFactory(DjangoModelFactory):
    """Factory for creating test users."""

    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f'member{n}@example.com')
    username = factory.LazyAttribute(lambda o: o.email)
    first_name = factory.Faker('first_name')
    last_name = factory.Faker('last_name')
    company = factory.LazyAttribute(lambda _: f"{fake.last_name()} Jewellers")
    location = factory.Faker('city')
    is_active = True

    @factory.post_generation
    def password(self, create, extracted, **kwargs):
        if not create:
            return
        self.set_password(extracted or 'testpass123')
        self.save()


class GroupPurchaseFactory(DjangoModelFactory):
    """
    Factory for group purchases.
    Rows are inserted directly, so the ledger starts empty and
    current_quantity is 0 unless set explicitly.
    """

    class Meta:
        model = GroupPurchase

    creator = factory.SubFactory(UserFactory)
    title = factory.LazyAttribute(
        lambda _: f"Bulk {fake.random_element(GEMSTONES)} order")
    description = factory.Faker('text', max_nb_chars=300)
    vendor_name = factory.LazyAttribute(lambda _: f"{fake.company()[:180]} Gems")
    vendor_contact = factory.Faker('email')
    product_url = factory.Faker('url')
    image_url = ''
    target_quantity = 10
    current_quantity = 0
    unit_price = Decimal('150.00')
    discounted_unit_price = Decimal('120.00')
    deadline = factory.LazyFunction(lambda: timezone.now() + timedelta(days=7))
    status = GroupPurchase.Status.OPEN


class ParticipantFactory(DjangoModelFactory):
    """
    Factory for participant rows.
    Does not touch the purchase total; use add_participants() for that.
    """

    class Meta:
        model = Participant

    group_purchase = factory.SubFactory(GroupPurchaseFactory)
    user = factory.SubFactory(UserFactory)
    quantity = 1
    status = Participant.Status.COMMITTED


class GroupPurchaseUpdateFactory(DjangoModelFactory):

    class Meta:
        model = GroupPurchaseUpdate

    group_purchase = factory.SubFactory(GroupPurchaseFactory)
    event_type = GroupPurchaseUpdate.EventType.JOINED
    event_data = factory.LazyFunction(dict)


# ==================== Helper Functions ====================

def add_participants(purchase, *quantities):
    """
    Create participant rows and keep current_quantity in step with them.
    Returns the created participants.
    """
    participants = [
        ParticipantFactory(group_purchase=purchase, quantity=quantity)
        for quantity in quantities
    ]
    purchase.current_quantity = sum(
        p.quantity for p in purchase.participants.all())
    purchase.save(update_fields=['current_quantity'])
    return participants


def ledger_total(purchase):
    return sum(p.quantity for p in Participant.objects.filter(group_purchase=purchase))


# ==================== Pytest Fixtures ====================

@pytest.fixture
def test_user(db):
    """Create a test user."""
    user = UserFactory()
    user.raw_password = 'testpass123'
    return user


@pytest.fixture
def creator(db):
    return UserFactory(first_name='Ada', last_name='Stone')


@pytest.fixture
def open_purchase(db, creator):
    """Open purchase with target 10 and an empty ledger."""
    return GroupPurchaseFactory(creator=creator, target_quantity=10)


@pytest.fixture
def overdue_purchase(db, creator):
    """Open purchase whose deadline passed an hour ago."""
    return GroupPurchaseFactory(
        creator=creator,
        deadline=timezone.now() - timedelta(hours=1)
    )


@pytest.fixture
def group_purchase_service():
    return GroupPurchaseService()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def mock_broadcaster(mocker):
    """Replace the broadcaster used by the service."""
    return mocker.patch(
        'apps.group_purchases.services.group_purchase_service.broadcaster'
    )
