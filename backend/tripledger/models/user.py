"""
User model for authentication and display.
"""
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel


class User(BaseModel):
    """User account; balances show display_name, falling back to email."""
    __tablename__ = "users"

    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=True)
    photo_url = Column(String(500), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    memberships = relationship("TripMember", back_populates="user")
    expenses_paid = relationship("Expense", foreign_keys="Expense.paid_by_id", back_populates="paid_by")
    assignments = relationship("CostAssignment", back_populates="user")

    @property
    def name(self) -> str:
        return self.display_name or self.email
