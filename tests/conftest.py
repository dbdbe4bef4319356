# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - Every test gets its own in-memory SQLite database (StaticPool)
# - Sessions keep loaded state after commit (expire_on_commit=False)
# - The farm clock is frozen; 10:00 is inside working hours
# - Email delivery is disabled unless a test wires its own notifier
# ---------------------------------------------------------------------
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_ENABLED", "false")

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from farmsales.config.database import build_engine, get_db, init_database
from farmsales.core.dependencies import get_current_user, get_farm_clock, get_notification_service
from farmsales.core.security import Actor
from farmsales.main import app
from farmsales.models.base import Base
from farmsales.models.customer import Customer
from farmsales.models.order import OrderStatus
from farmsales.models.product import Category, Product, UnitType
from farmsales.schemas.order import OrderCreate, OrderItemCreate
from farmsales.schemas.snapshots import OrderItemSnapshot, ProductSnapshot
from farmsales.services.notification_service import NotificationService
from farmsales.services.order_service import OrderService
from farmsales.utils.date_utils import FixedClock

ADMIN = Actor(id="admin-1", role="Admin", name="Nimal")
SALES_REP = Actor(id="rep-1", role="Sales Rep", name="Kasun")
OTHER_REP = Actor(id="rep-2", role="Sales Rep", name="Ruwan")
GUARD = Actor(id="guard-1", role="Security Guard", name="Sunil")


# ---------- Database ----------
@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    init_database(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    """Two categories, products in every unit type and two customers."""
    thighs_cat = Category(code="BT", name="Broiler Thighs")
    eggs_cat = Category(code="EG", name="Eggs")
    db.add_all([thighs_cat, eggs_cat])

    thighs = Product(name="Chicken Thighs", unit_type=UnitType.KG, price=Decimal("100.00"),
                     quantity=Decimal("500"), category=thighs_cat)
    drumsticks = Product(name="Drumstick Pack", unit_type=UnitType.PACKS, weight_per_pack_kg=Decimal("0.500"),
                         price=Decimal("400.00"), quantity=Decimal("200"), category=thighs_cat)
    eggs = Product(name="Egg Tray", unit_type=UnitType.KG, price=Decimal("200.00"),
                   quantity=Decimal("300"), category=eggs_cat)
    spice = Product(name="Spice Mix", unit_type=UnitType.GRAM, grams_per_unit=Decimal("250"),
                    price=Decimal("50.00"), quantity=Decimal("100"))
    hamper = Product(name="Farm Hamper", unit_type=UnitType.PACKS, price=Decimal("1500.00"),
                     quantity=Decimal("20"))
    db.add_all([thighs, drumsticks, eggs, spice, hamper])

    with_email = Customer(name="Green Grocers", email="accounts@greengrocers.lk", phone="0771234567")
    no_email = Customer(name="Corner Shop")
    db.add_all([with_email, no_email])
    db.commit()

    return SimpleNamespace(
        thighs=thighs,
        drumsticks=drumsticks,
        eggs=eggs,
        spice=spice,
        hamper=hamper,
        customer=with_email,
        customer_no_email=no_email,
    )


# ---------- Clock and services ----------
@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 15, 10, 0))


@pytest.fixture
def off_hours_clock():
    return FixedClock(datetime(2024, 3, 15, 20, 30))


@pytest.fixture
def notifier():
    return NotificationService(enabled=False)


@pytest.fixture
def order_service(db, clock, notifier):
    return OrderService(db, clock=clock, notifier=notifier)


@pytest.fixture
def make_order(db, seed, order_service):
    """
    Create an order through the service, then force it into ``status``.

    ``lines`` is a list of ``(product, quantity)`` or ``(product, quantity, discount)``.
    """
    def _make(lines=None, status=OrderStatus.PENDING, customer=None, is_vat_applicable=False,
              assigned_to=SALES_REP.id, delivery_date=None):
        lines = lines or [(seed.thighs, Decimal("40")), (seed.eggs, Decimal("60"))]
        order = order_service.create_order(
            OrderCreate(
                customer_id=(customer or seed.customer).id,
                is_vat_applicable=is_vat_applicable,
                delivery_date=delivery_date,
                items=[
                    OrderItemCreate(
                        product_id=line[0].id,
                        quantity=line[1],
                        discount=line[2] if len(line) > 2 else None,
                    )
                    for line in lines
                ],
            ),
            ADMIN,
        )
        if status != OrderStatus.PENDING:
            order.status = status
            order.assigned_to = assigned_to
            order.vehicle_number = "LB-4521"
            db.commit()
        return order

    return _make


# ---------- Pure snapshots ----------
@pytest.fixture
def make_item():
    def _make(quantity, price="100", unit=UnitType.KG, discount=None, id=None, name="Item",
              category_code=None, category_name=None, weight_per_pack_kg=None, grams_per_unit=None):
        return OrderItemSnapshot(
            id=id,
            product=ProductSnapshot(
                name=name,
                unit_type=unit,
                weight_per_pack_kg=weight_per_pack_kg,
                grams_per_unit=grams_per_unit,
                category_code=category_code,
                category_name=category_name,
            ),
            quantity=Decimal(str(quantity)),
            price=Decimal(str(price)),
            discount=None if discount is None else Decimal(str(discount)),
        )

    return _make


# ---------- API ----------
@pytest.fixture
def current_actor():
    """Mutable holder so a test can switch users between requests."""
    return SimpleNamespace(actor=ADMIN)


@pytest.fixture
def client(db, clock, current_actor):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_actor.actor
    app.dependency_overrides[get_farm_clock] = lambda: clock
    app.dependency_overrides[get_notification_service] = lambda: NotificationService(enabled=False)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
