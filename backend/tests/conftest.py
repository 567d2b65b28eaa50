# tests/conftest.py
"""Shared fixtures - real SQLAlchemy sessions on in-memory SQLite"""

import pytest
from datetime import timedelta

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from contact_sync.database import Base
from contact_sync.models import (
    Course,
    Customer,
    DigitalProduct,
    EmailContact,
    EmailTag,
    Enrollment,
    Purchase,
    User,
    utcnow,
)

STORE_ID = "store_1"
OTHER_STORE_ID = "store_2"


@pytest.fixture
def engine():
    """Fresh in-memory database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT support
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# CATALOG FIXTURES
# ============================================================================

@pytest.fixture
def store_id():
    return STORE_ID


@pytest.fixture
def techno_pack(db_session):
    """Free follow-gate sample pack"""
    product = DigitalProduct(
        store_id=STORE_ID,
        title="Dark Techno Essentials",
        description="Heavy kicks and rumbles",
        product_type="sample-pack",
        product_category="sample-pack",
        genre=["techno"],
        price=0
    )
    db_session.add(product)
    db_session.flush()
    return product


@pytest.fixture
def preset_pack(db_session):
    product = DigitalProduct(
        store_id=STORE_ID,
        title="Deep House Chords",
        description="Lush pads for late nights",
        product_type="preset-pack",
        product_category="preset-pack",
        genre=["house"],
        price=25
    )
    db_session.add(product)
    db_session.flush()
    return product


@pytest.fixture
def mixing_course(db_session):
    course = Course(
        store_id=STORE_ID,
        title="Mixing Fundamentals",
        slug="mixing-fundamentals",
        description="Balance, EQ and compression",
        category="Mixing",
        skill_level="beginner"
    )
    db_session.add(course)
    db_session.flush()
    return course


@pytest.fixture
def make_contact(db_session):
    """Factory for contacts with increasing created_at unless one is given"""
    base_time = utcnow() - timedelta(days=1)
    counter = {"n": 0}

    def _make(email, store_id=STORE_ID, **fields):
        counter["n"] += 1
        fields.setdefault("tag_ids", [])
        fields.setdefault("custom_fields", {})
        fields.setdefault("created_at", base_time + timedelta(seconds=counter["n"]))
        contact = EmailContact(
            store_id=store_id,
            email=email,
            updated_at=base_time,
            **fields
        )
        db_session.add(contact)
        db_session.flush()
        return contact

    return _make


@pytest.fixture
def make_enrollment(db_session):
    base_time = utcnow() - timedelta(days=1)
    counter = {"n": 0}

    def _make(user, course):
        counter["n"] += 1
        enrollment = Enrollment(
            user_id=user.id,
            course_id=course.id,
            created_at=base_time + timedelta(seconds=counter["n"])
        )
        db_session.add(enrollment)
        db_session.flush()
        return enrollment

    return _make


@pytest.fixture
def make_user(db_session):
    def _make(email, first_name=None, last_name=None):
        user = User(email=email, first_name=first_name, last_name=last_name)
        db_session.add(user)
        db_session.flush()
        return user

    return _make


@pytest.fixture
def make_purchase(db_session):
    """Creates the customer (if needed) and a purchase row"""
    base_time = utcnow() - timedelta(days=1)
    counter = {"n": 0}

    def _make(email, product=None, course=None, amount=10.0, status="completed", store_id=STORE_ID):
        counter["n"] += 1
        customer = db_session.query(Customer).filter(
            Customer.store_id == store_id,
            Customer.email == email
        ).first()
        if not customer:
            customer = Customer(store_id=store_id, email=email, name=email.split("@")[0], type="customer")
            db_session.add(customer)
            db_session.flush()

        purchase = Purchase(
            customer_id=customer.id,
            store_id=store_id,
            product_id=product.id if product else None,
            course_id=course.id if course else None,
            amount=amount,
            status=status,
            created_at=base_time + timedelta(seconds=counter["n"])
        )
        db_session.add(purchase)
        db_session.flush()
        return purchase

    return _make


@pytest.fixture
def contact_tag_names(db_session):
    """Names of the tags a contact holds, in attachment order"""
    def _names(contact):
        db_session.refresh(contact)
        tags = {tag.id: tag.name for tag in db_session.query(EmailTag).all()}
        return [tags[tag_id] for tag_id in contact.tag_ids]
    return _names


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: unit tests")
    config.addinivalue_line("markers", "integration: integration tests")
