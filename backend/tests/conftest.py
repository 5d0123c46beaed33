"""
Pytest fixtures for posledger backend tests.

Every test gets its own application bound to a fresh in-memory SQLite
database, so ledger state never leaks between tests.
"""

from decimal import Decimal

import pytest

from posledger import create_app
from posledger.extensions import db
from posledger.identity import CallerIdentity
from posledger.models import ItemVariant
from posledger.models.catalog import STORE_LARICHE
from posledger.services import cash_service, catalog_service, category_service


CASHIER_ID = "user_cashier_1"
OTHER_CASHIER_ID = "user_cashier_2"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'ALLOW_NEGATIVE_STOCK': True,
        'CORS_ALLOWED_ORIGINS': ['http://localhost:5173'],
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def cashier(app):
    return CallerIdentity(user_id=CASHIER_ID, role="CASHIER")


@pytest.fixture(scope='function')
def other_cashier(app):
    return CallerIdentity(user_id=OTHER_CASHIER_ID, role="CASHIER")


@pytest.fixture(scope='function')
def auth_headers():
    """Gateway headers the default identity resolver trusts."""
    return {"X-User-Id": CASHIER_ID, "X-User-Role": "cashier"}


@pytest.fixture(scope='function')
def category(app, cashier):
    return category_service.create_category(cashier, name="Dresses", code="DRS")


@pytest.fixture(scope='function')
def make_item(app, cashier, category):
    """Factory: create an item (optionally with variants) through the catalog service."""
    def _make(variant_groups=None, stock=0, store=STORE_LARICHE, selling_price="25.50", **kwargs):
        return catalog_service.create_item_with_variants(
            cashier,
            category_id=category.id,
            store=store,
            description=kwargs.pop("description", "Summer dress"),
            purchase_price=Decimal(kwargs.pop("purchase_price", "10.00")),
            selling_price=Decimal(selling_price),
            variant_groups=variant_groups,
            variant_defaults={"stock_quantity": stock},
            **kwargs,
        )
    return _make


@pytest.fixture(scope='function')
def variant_item(make_item):
    """Item with two variants (S, M), stock 0 each."""
    return make_item(variant_groups={"size": ["S", "M"]})


@pytest.fixture(scope='function')
def plain_item(make_item):
    """Item sold directly, without variants."""
    return make_item(description="Gift card")


@pytest.fixture(scope='function')
def variant_of():
    """Look up a variant of an item by attribute value."""
    def _find(item, **attributes):
        for variant in db.session.query(ItemVariant).filter_by(item_id=item.id).all():
            if all(variant.attributes.get(k) == v for k, v in attributes.items()):
                return variant
        raise LookupError(attributes)
    return _find


@pytest.fixture(scope='function')
def open_register(app, cashier):
    """Cashier's drawer opened with 100.00."""
    return cash_service.open_register(cashier, Decimal("100.00"))
