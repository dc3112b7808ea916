"""
Fixtures for trainer earnings module tests.
"""
import pytest
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

TRAINER_ID = 1
CLIENT_ID = 2
OTHER_CLIENT_ID = 3
MANAGER_ID = 9


@pytest.fixture
def platform_settings(db):
    """Create platform settings with the default 10% base rate."""
    from earnings.models import PlatformSettings

    return PlatformSettings.get_settings()


@pytest.fixture
def contacts(db):
    """Trainer, client and manager with UK mobile numbers."""
    from earnings.models import UserContact

    return {
        'trainer': UserContact.objects.create(
            user_id=TRAINER_ID, role='trainer', name='Sam Carter', phone='07700 900001'
        ),
        'client': UserContact.objects.create(
            user_id=CLIENT_ID, role='client', name='Alex Morgan', phone='07700 900002'
        ),
        'manager': UserContact.objects.create(
            user_id=MANAGER_ID, role='manager', name='Jo Blake', phone='07700 900009'
        ),
    }


@pytest.fixture
def promotion(db):
    """Active +20% promotion on the protein product."""
    from earnings.models import ProductPromotion

    now = timezone.now()
    return ProductPromotion.objects.create(
        product_id='prod-protein',
        bonus_rate=Decimal('0.2000'),
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=30),
        description='Spring protein push',
    )


@pytest.fixture
def bundle_items():
    """Two products and one service line."""
    return [
        {
            'type': 'product', 'product_id': 'prod-protein',
            'name': 'Whey Protein 2kg', 'quantity': 1, 'unit_price': Decimal('24.95'),
        },
        {
            'type': 'product', 'product_id': 'prod-rack',
            'name': 'Squat Rack', 'quantity': 1, 'unit_price': Decimal('699.95'),
        },
        {
            'type': 'service', 'product_id': 'pt-session',
            'name': 'PT Session', 'quantity': 1, 'unit_price': Decimal('75.00'),
        },
    ]


@pytest.fixture
def order(db, platform_settings, bundle_items):
    """Recorded but unpaid order."""
    from earnings.services import OrderService

    order, _ = OrderService.record_order(
        order_id='ORD-1001',
        trainer_id=TRAINER_ID,
        line_items=bundle_items,
        total_amount=Decimal('799.90'),
        client_id=CLIENT_ID,
        client_name='Alex Morgan',
        bundle_id='bundle-strength',
        bundle_title='Strength Starter',
    )
    return order


@pytest.fixture
def paid_order(db, order):
    """Order whose payment has been confirmed."""
    from earnings.services import OrderService

    OrderService.mark_paid(order.order_id)
    order.refresh_from_db()
    return order


@pytest.fixture
def delivery(db, paid_order):
    """Pending delivery of the protein product."""
    return paid_order.product_deliveries.get(product_name='Whey Protein 2kg')


def _move(delivery, **fields):
    from earnings.models import ProductDelivery

    ProductDelivery.objects.filter(pk=delivery.pk).update(**fields)
    delivery.refresh_from_db()
    return delivery


@pytest.fixture
def delivered(db, delivery):
    """Delivery handed over and awaiting the client."""
    return _move(delivery, status='delivered', delivered_at=timezone.now())


@pytest.fixture
def disputed(db, delivery):
    """Delivery the client has disputed."""
    return _move(
        delivery, status='disputed', delivered_at=timezone.now(),
        client_notes='Tub arrived split open',
    )


@pytest.fixture
def partnership(db, platform_settings):
    """Pending gold partnership."""
    from earnings.services import PartnershipService

    partnership, _ = PartnershipService.create_partnership(
        trainer_id=TRAINER_ID,
        business_id=501,
        package_tier='gold',
        business_name='Corner Cafe',
    )
    return partnership


@pytest.fixture
def client_with_session(client, db):
    """Client with a session for view tests."""
    session = client.session
    session.save()
    return client


@pytest.fixture
def login(client_with_session, contacts):
    """Set the acting user on the test client's session."""
    def _login(user_id):
        session = client_with_session.session
        session['user_id'] = user_id
        session.save()
        return client_with_session
    return _login
