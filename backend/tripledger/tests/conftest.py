"""
Shared fixtures: an in-memory database per test, plus user/trip builders.
"""
from datetime import date
from decimal import Decimal
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import tripledger.models  # noqa: F401
from tripledger.db.base import Base
from tripledger.db.session import get_db
from tripledger.core.security import create_access_token, get_password_hash
from tripledger.main import app
from tripledger.models.user import User
from tripledger.models.trip import TripMember, TripMemberRole, RsvpStatus
from tripledger.repositories.ledger import LedgerRepository
from tripledger.schemas.expense import ExpenseCreate
from tripledger.schemas.trip import TripCreate
from tripledger.services import expense_service, trip_service

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repo(db):
    return LedgerRepository(db)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def _make_user(username: str, display_name: str = None) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            display_name=display_name or username.title(),
            hashed_password=get_password_hash("secret-password"),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def users(make_user):
    """Three users: alice organizes, bob and carol are members."""
    return make_user("alice"), make_user("bob"), make_user("carol")


@pytest.fixture
def make_trip(repo):
    def _make_trip(owner: User, *members: User, base_currency: str = "USD"):
        trip = trip_service.create_trip(
            repo, owner.id, TripCreate(name="Lisbon", base_currency=base_currency)
        )
        for member in members:
            repo.add(TripMember(
                trip_id=trip.id,
                user_id=member.id,
                role=TripMemberRole.MEMBER,
                rsvp_status=RsvpStatus.ACCEPTED,
            ))
        repo.commit()
        return trip
    return _make_trip


@pytest.fixture
def trip(make_trip, users):
    alice, bob, carol = users
    return make_trip(alice, bob, carol)


@pytest.fixture
def add_expense(repo):
    """Record an expense in the trip's base currency, split equally among participants."""
    def _add_expense(trip, payer: User, amount, participants, currency: str = None,
                     fx_rate="1", on: date = date(2024, 5, 1)):
        data = ExpenseCreate(
            description="Dinner",
            amount=Decimal(str(amount)),
            currency=currency or trip.base_currency,
            fx_rate=Decimal(fx_rate),
            date=on,
            paid_by_id=payer.id,
            participant_ids=[p.id for p in participants],
        )
        return expense_service.create_expense(repo, trip.id, payer.id, data)
    return _add_expense


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        token = create_access_token(data={"sub": user.username, "user_id": user.id})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers
