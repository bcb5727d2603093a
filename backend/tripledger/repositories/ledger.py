"""
Persistence access for trips, expenses and settlements.

All queries here hide soft-deleted rows, so services never filter on
deleted_at themselves. The repository never commits on its own: the caller
owns the transaction and decides when to commit or roll back.
"""
from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session, joinedload, selectinload
from tripledger.models.user import User
from tripledger.models.trip import Trip, TripMember, SpendStatus
from tripledger.models.expense import Expense, CostAssignment
from tripledger.models.settlement import Settlement, Payment
from tripledger.models.timeline import TimelineItem
from tripledger.models.exchange_rate import ExchangeRate
from tripledger.services.balances import ExpenseSnapshot, AssignmentSnapshot, UserRef


def user_ref(user: User) -> UserRef:
    return UserRef(id=user.id, name=user.name, email=user.email, photo_url=user.photo_url)


class LedgerRepository:
    """Query and write helpers scoped to a single SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    # Transaction control

    def add(self, obj):
        self.db.add(obj)
        return obj

    def delete(self, obj):
        self.db.delete(obj)

    def flush(self):
        self.db.flush()

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def refresh(self, obj):
        self.db.refresh(obj)
        return obj

    # Users

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    # Trips and members

    def get_trip(self, trip_id: int, lock: bool = False) -> Optional[Trip]:
        query = self.db.query(Trip).filter(Trip.id == trip_id, Trip.deleted_at.is_(None))
        if lock:
            # Row lock held until commit; refresh any copy already in the session
            query = query.with_for_update().populate_existing()
        return query.first()

    def list_trips_for_user(self, user_id: int) -> List[Trip]:
        return (
            self.db.query(Trip)
            .join(TripMember, TripMember.trip_id == Trip.id)
            .filter(
                TripMember.user_id == user_id,
                TripMember.deleted_at.is_(None),
                Trip.deleted_at.is_(None),
            )
            .order_by(Trip.created_at.desc(), Trip.id.desc())
            .all()
        )

    def get_member(self, trip_id: int, user_id: int, include_deleted: bool = False) -> Optional[TripMember]:
        query = self.db.query(TripMember).filter(
            TripMember.trip_id == trip_id,
            TripMember.user_id == user_id,
        )
        if not include_deleted:
            query = query.filter(TripMember.deleted_at.is_(None))
        return query.first()

    def list_members(self, trip_id: int) -> List[TripMember]:
        return (
            self.db.query(TripMember)
            .options(joinedload(TripMember.user))
            .filter(TripMember.trip_id == trip_id, TripMember.deleted_at.is_(None))
            .order_by(TripMember.id)
            .all()
        )

    def set_spend_status(self, trip: Trip, status: SpendStatus) -> Trip:
        trip.spend_status = status
        return trip

    # Expenses

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        return (
            self.db.query(Expense)
            .options(
                joinedload(Expense.paid_by),
                selectinload(Expense.assignments).joinedload(CostAssignment.user),
            )
            .filter(Expense.id == expense_id, Expense.deleted_at.is_(None))
            .first()
        )

    def list_expense_rows(self, trip_id: int) -> List[Expense]:
        return (
            self.db.query(Expense)
            .options(
                joinedload(Expense.paid_by),
                selectinload(Expense.assignments).joinedload(CostAssignment.user),
            )
            .filter(Expense.trip_id == trip_id, Expense.deleted_at.is_(None))
            .order_by(Expense.date.asc(), Expense.id.asc())
            .all()
        )

    def list_expenses(self, trip_id: int) -> List[ExpenseSnapshot]:
        """Live expenses of a trip as snapshots, oldest first."""
        return [
            ExpenseSnapshot(
                id=expense.id,
                amount=expense.amount,
                currency=expense.currency,
                fx_rate=expense.fx_rate,
                normalized_amount=expense.normalized_amount,
                date=expense.date,
                status=expense.status.value,
                paid_by=user_ref(expense.paid_by),
                category_id=expense.category_id,
                assignments=tuple(
                    AssignmentSnapshot(
                        user=user_ref(a.user),
                        share_amount=a.share_amount,
                        normalized_share_amount=a.normalized_share_amount,
                        split_type=a.split_type.value,
                    )
                    for a in sorted(expense.assignments, key=lambda a: a.id)
                ),
            )
            for expense in self.list_expense_rows(trip_id)
        ]

    def get_assignment(self, assignment_id: int) -> Optional[CostAssignment]:
        return (
            self.db.query(CostAssignment)
            .join(Expense, Expense.id == CostAssignment.expense_id)
            .filter(CostAssignment.id == assignment_id, Expense.deleted_at.is_(None))
            .first()
        )

    def delete_assignments(self, expense: Expense):
        for assignment in list(expense.assignments):
            expense.assignments.remove(assignment)
            self.delete(assignment)

    # Settlements

    def list_settlements(self, trip_id: int) -> List[Settlement]:
        return (
            self.db.query(Settlement)
            .options(
                joinedload(Settlement.from_user),
                joinedload(Settlement.to_user),
                selectinload(Settlement.payments).joinedload(Payment.recorded_by),
            )
            .filter(Settlement.trip_id == trip_id, Settlement.deleted_at.is_(None))
            .order_by(Settlement.id)
            .all()
        )

    def get_settlement(self, settlement_id: int) -> Optional[Settlement]:
        return (
            self.db.query(Settlement)
            .options(selectinload(Settlement.payments))
            .filter(Settlement.id == settlement_id, Settlement.deleted_at.is_(None))
            .first()
        )

    def get_payment(self, settlement_id: int, payment_id: int) -> Optional[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.id == payment_id, Payment.settlement_id == settlement_id)
            .first()
        )

    def clear_settlements(self, trip_id: int) -> int:
        """Soft-delete every live settlement of the trip; returns how many."""
        now = datetime.utcnow()
        return (
            self.db.query(Settlement)
            .filter(Settlement.trip_id == trip_id, Settlement.deleted_at.is_(None))
            .update({Settlement.deleted_at: now}, synchronize_session="fetch")
        )

    def replace_settlements(self, trip_id: int, rows: Iterable[dict]) -> List[Settlement]:
        """Clear live settlements and insert the given rows in their place."""
        self.clear_settlements(trip_id)
        created = [self.add(Settlement(trip_id=trip_id, **row)) for row in rows]
        self.db.flush()
        return created

    # Exchange rates

    def get_cached_rate(self, trip_id: int, on_date, currency: str) -> Optional[ExchangeRate]:
        return (
            self.db.query(ExchangeRate)
            .filter(
                ExchangeRate.trip_id == trip_id,
                ExchangeRate.date == on_date,
                ExchangeRate.currency == currency,
            )
            .first()
        )

    # Timeline

    def list_timeline(self, trip_id: int) -> List[TimelineItem]:
        return (
            self.db.query(TimelineItem)
            .filter(TimelineItem.trip_id == trip_id, TimelineItem.deleted_at.is_(None))
            .order_by(TimelineItem.date.is_(None), TimelineItem.date, TimelineItem.id)
            .all()
        )

    def get_timeline_item(self, trip_id: int, item_id: int) -> Optional[TimelineItem]:
        return (
            self.db.query(TimelineItem)
            .filter(
                TimelineItem.id == item_id,
                TimelineItem.trip_id == trip_id,
                TimelineItem.deleted_at.is_(None),
            )
            .first()
        )
