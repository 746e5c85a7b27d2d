import os

# Settings are read at import time; point them at throwaway targets first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LOG_DIR", "/tmp/studio-booking-test-logs")

from datetime import datetime  # noqa: E402
from itertools import count  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.core.auth_utils import create_access_token  # noqa: E402
from app.core.clock import FixedClock, get_clock  # noqa: E402
from app.db.session import Base, get_db  # noqa: E402
from app.main import create_app  # noqa: E402
from app.models.availability_rule import AvailabilityRule  # noqa: E402
from app.models.equipment import Equipment  # noqa: E402
from app.models.studio import Studio  # noqa: E402
from app.models.studio_service import StudioService  # noqa: E402
from app.services.payments import CheckoutRequest, build_line_items, get_payment_gateway  # noqa: E402

# Monday 2030-01-07 08:00
NOW = datetime(2030, 1, 7, 8, 0, 0)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


class FakeGateway:
    """Stands in for Razorpay: issues sequential order ids and checks a fixed signature."""

    VALID_SIGNATURE = "signed"

    def __init__(self):
        self._ids = count(1)
        self.checkouts = []

    def create_checkout(self, booking):
        return self._record(booking, f"order_{next(self._ids)}")

    def resume_checkout(self, booking):
        return self._record(booking, booking.order_id)

    def _record(self, booking, order_id):
        request = CheckoutRequest(
            order_id=order_id,
            amount=booking.price,
            currency=booking.currency,
            line_items=build_line_items(booking),
            key_id="rzp_test",
        )
        self.checkouts.append(request)
        return request

    def verify_signature(self, order_id, payment_id, signature):
        return signature == self.VALID_SIGNATURE


@pytest.fixture()
def gateway():
    return FakeGateway()


# ---------------------------------------------------------------------
# SEED HELPERS
# ---------------------------------------------------------------------
@pytest.fixture()
def make_studio(db):
    def _make(owner_id="owner-1", name="Blue Room", services=(("Recording", 1500.0),), equipment=(), rules=(), is_active=True):
        studio = Studio(owner_id=owner_id, name=name, is_active=is_active, currency="LKR")
        db.add(studio)
        db.flush()

        for service_name, price in services:
            db.add(StudioService(studio_id=studio.id, name=service_name, price=price, duration_mins=60))
        for item_name, day_rate in equipment:
            db.add(Equipment(studio_id=studio.id, name=item_name, day_rate=day_rate))
        for rule in rules:
            db.add(AvailabilityRule(studio_id=studio.id, **rule))

        db.commit()
        db.refresh(studio)
        return studio

    return _make


@pytest.fixture()
def studio(make_studio):
    return make_studio(equipment=(("Neumann U87", 2000.0),))


# ---------------------------------------------------------------------
# API
# ---------------------------------------------------------------------
@pytest.fixture()
def client(session_factory, clock, gateway):
    app = create_app(start_scheduler=False)

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    with TestClient(app) as test_client:
        yield test_client


def auth_headers(sub, role):
    return {"Authorization": f"Bearer {create_access_token({'sub': sub, 'role': role})}"}


@pytest.fixture()
def customer_headers():
    return auth_headers("customer-1", "customer")


@pytest.fixture()
def other_customer_headers():
    return auth_headers("customer-2", "customer")


@pytest.fixture()
def owner_headers():
    return auth_headers("owner-1", "studio")


@pytest.fixture()
def headers_for():
    return auth_headers
