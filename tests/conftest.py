import os
import tempfile
import uuid
from decimal import Decimal

import pytest

# SQLite file per test run unless a database is provided (e.g. by Docker)
os.environ.setdefault(
    'TEST_DATABASE_URL',
    'sqlite:///' + os.path.join(tempfile.gettempdir(), f'storefront-test-{os.getpid()}.db'),
)

from storefront import create_app
from storefront import database
from storefront.database import Base
from storefront.models import Profile, Address, Product, ProductVariant
from storefront.services.currency_service import ExchangeRateHolder
from storefront.services.events import EventBus
from storefront.services.guest_session_service import GuestSessionStore


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    database.create_all()
    yield app
    app.extensions['notifier'].close()
    app.extensions['rates'].close()
    database.db_session.remove()
    database.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Every test runs inside an app context and starts from empty tables."""
    app.extensions['rates'].set_rate(Decimal('35.00'), cache=False)
    with app.app_context():
        yield
    database.db_session.remove()
    with database.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Database session for testing."""
    session = database.get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def guest_store():
    """Guest session backed by a plain dict (stands in for the cookie)."""
    return GuestSessionStore(storage={})


@pytest.fixture
def rates():
    """Rate holder pinned at 35.00 TL per USD, no cache or push channel."""
    return ExchangeRateHolder(session_factory=database.session_scope, default_rate=Decimal('35.00'))


@pytest.fixture
def events():
    return EventBus()


def _profile(session, role='b2c', email=None, full_name='Test User'):
    suffix = str(uuid.uuid4())[:8]
    profile = Profile(role=role, email=email or f'user-{suffix}@test.com', full_name=full_name)
    session.add(profile)
    session.commit()
    return profile


@pytest.fixture
def customer(session):
    """Retail (b2c) profile."""
    return _profile(session, role='b2c', full_name='Ayşe Yılmaz')


@pytest.fixture
def dealer(session):
    """Wholesale (b2b) profile."""
    return _profile(session, role='b2b', full_name='Bayi Enerji')


@pytest.fixture
def admin_user(session):
    return _profile(session, role='admin', email='admin@test.com', full_name='Admin')


@pytest.fixture
def customer_address(session, customer):
    address = Address(
        profile_id=customer.id,
        full_name='Ayşe Yılmaz',
        phone='05321234567',
        city='Mersin',
        district='Yenişehir',
        address_line='Gazi Mah. 1. Sok. No:5',
        postal_code='33110',
    )
    session.add(address)
    session.commit()
    return address


@pytest.fixture
def product(session):
    product = Product(name='Solar Panel', slug=f'solar-panel-{uuid.uuid4().hex[:8]}', is_active=True)
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def make_variant(session, product):
    """Factory for variants of the test product."""
    def _make(name='450W Mono', base_price='100.00', stock=10, is_active=True, sku=None, **kwargs):
        variant = ProductVariant(
            product_id=product.id,
            name=name,
            sku=sku or f'SKU-{uuid.uuid4().hex[:6]}',
            base_price=Decimal(base_price),
            stock=stock,
            is_active=is_active,
            **kwargs
        )
        session.add(variant)
        session.commit()
        return variant
    return _make


@pytest.fixture
def panel(make_variant):
    """In-stock variant at 100.00 USD."""
    return make_variant(name='450W Mono', base_price='100.00', stock=10, sku='PNL-450')


@pytest.fixture
def inverter(make_variant):
    """In-stock variant at 250.00 USD."""
    return make_variant(name='5kW Inverter', base_price='250.00', stock=5, sku='INV-5K')


@pytest.fixture
def guest_contact():
    return {'email': 'guest@test.com', 'full_name': 'Mehmet Demir', 'phone': '05551234567'}


@pytest.fixture
def guest_address():
    return {
        'full_name': 'Mehmet Demir',
        'phone': '05551234567',
        'city': 'Mersin',
        'district': 'Mezitli',
        'address_line': 'Deniz Mah. 3. Cad. No:12',
    }
