"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Must be set before shared.config.settings is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pos_api.main import app
from pos_api.models import (
    Base,
    Category,
    Customer,
    Order,
    OrderItem,
    OrderSession,
    Package,
    PackageItem,
    Product,
    RestaurantTable,
    SessionTotalsTrigger,
    User,
)
from pos_api.services.domain.order_calculation import apply_item_totals, order_totals
from pos_api.services.throttle import low_stock_throttle
from shared.config.constants import Roles
from shared.infrastructure.db import get_db
from shared.security.auth import sign_jwt


_order_counter = itertools.count(1)


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation, with the session totals trigger on.
    """
    Base.metadata.create_all(bind=engine)
    SessionTotalsTrigger.register()
    low_stock_throttle._sent.clear()

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        SessionTotalsTrigger.unregister()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Staff
# =============================================================================


def _user(db_session, user_id, email, role):
    user = User(id=user_id, email=email, full_name=email.split("@")[0].title(), role=role)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def seed_manager(db_session):
    return _user(db_session, 1, "manager@test.com", Roles.MANAGER)


@pytest.fixture
def seed_cashier(db_session):
    return _user(db_session, 2, "cashier@test.com", Roles.CASHIER)


@pytest.fixture
def seed_waiter(db_session):
    return _user(db_session, 3, "waiter@test.com", Roles.WAITER)


@pytest.fixture
def seed_cook(db_session):
    return _user(db_session, 4, "kitchen@test.com", Roles.KITCHEN)


def make_headers(user_id: int, *roles: str) -> dict[str, str]:
    """Bearer headers for a staff member, signed like the auth service does."""
    token = sign_jwt({"sub": str(user_id), "roles": list(roles), "email": f"user{user_id}@test.com"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager_headers(seed_manager):
    return make_headers(seed_manager.id, Roles.MANAGER)


@pytest.fixture
def cashier_headers(seed_cashier):
    return make_headers(seed_cashier.id, Roles.CASHIER)


@pytest.fixture
def waiter_headers(seed_waiter):
    return make_headers(seed_waiter.id, Roles.WAITER)


@pytest.fixture
def kitchen_headers(seed_cook):
    return make_headers(seed_cook.id, Roles.KITCHEN)


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def seed_food_category(db_session):
    category = Category(name="Main Dishes", default_destination="KITCHEN")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture
def seed_drinks_category(db_session):
    # No explicit destination: routed to the bar by name
    category = Category(name="Cold Drinks")
    db_session.add(category)
    db_session.commit()
    return category


def _product(db_session, category, name, price_cents, stock=100, reorder_level=5):
    product = Product(
        category_id=category.id if category else None,
        name=name,
        price_cents=price_cents,
        current_stock=stock,
        reorder_level=reorder_level,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture
def product_a(db_session, seed_food_category):
    return _product(db_session, seed_food_category, "Burger", 100)


@pytest.fixture
def product_b(db_session, seed_food_category):
    return _product(db_session, seed_food_category, "Fries", 20)


@pytest.fixture
def product_drink(db_session, seed_drinks_category):
    return _product(db_session, seed_drinks_category, "Lemonade", 30)


@pytest.fixture
def combo_package(db_session, product_a, product_b, product_drink):
    """Burger + 2 Fries + Lemonade."""
    package = Package(name="Combo", price_cents=150)
    package.items = [
        PackageItem(product_id=product_a.id, quantity=1),
        PackageItem(product_id=product_b.id, quantity=2),
        PackageItem(product_id=product_drink.id, quantity=1),
    ]
    db_session.add(package)
    db_session.commit()
    return package


# =============================================================================
# Tables, tabs, orders
# =============================================================================


@pytest.fixture
def seed_table(db_session):
    table = RestaurantTable(table_number="T17", capacity=4, status="AVAILABLE")
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture
def second_table(db_session):
    table = RestaurantTable(table_number="T18", capacity=2, status="AVAILABLE")
    db_session.add(table)
    db_session.commit()
    return table


@pytest.fixture
def seed_customer(db_session):
    customer = Customer(full_name="Ana Perez", phone="+56911111111")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def open_session(db_session, seed_table, seed_waiter):
    """An OPEN tab on T17, with the table marked occupied."""
    from pos_api.services.domain import TabService

    session, _ = TabService(db_session).open_tab(table_id=seed_table.id, opened_by=seed_waiter.id)
    return session


def make_order(
    db_session,
    lines,
    status="DRAFT",
    session=None,
    table=None,
):
    """
    Create an order from (product_or_package, quantity, unit_price_cents[, opts]) lines.

    opts is a dict with optional discount_cents / is_complimentary.
    Totals are computed the same way the services compute them.
    """
    order = Order(
        order_number=f"ORD-TEST-{next(_order_counter):04d}",
        status=status,
        session_id=session.id if session else None,
        table_id=table.id if table else (session.table_id if session else None),
    )
    for line in lines:
        target, quantity, unit_price = line[:3]
        opts = line[3] if len(line) > 3 else {}
        item = OrderItem(
            item_name=target.name,
            quantity=quantity,
            unit_price_cents=unit_price,
            discount_cents=opts.get("discount_cents", 0),
            is_complimentary=opts.get("is_complimentary", False),
        )
        if isinstance(target, Package):
            item.package_id = target.id
        else:
            item.product_id = target.id
        apply_item_totals(item)
        order.items.append(item)
    order_totals(order.items).apply_to(order)
    db_session.add(order)
    db_session.commit()
    return order


@pytest.fixture
def order_factory(db_session):
    def _make(lines, **kwargs):
        return make_order(db_session, lines, **kwargs)

    return _make


def reload(db_session, entity):
    """Drop cached state and read the row again."""
    db_session.expire_all()
    return db_session.get(type(entity), entity.id)


def session_row(db_session, session_id):
    db_session.expire_all()
    return db_session.get(OrderSession, session_id)
