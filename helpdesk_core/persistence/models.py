"""
Helpdesk core database models
"""

from sqlalchemy import (
    Boolean, DateTime, Integer, String, Text,
    CheckConstraint, Column, FetchedValue, ForeignKey
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class User(Base):
    """
    Model representing one end-user of the helpdesk, who may author any number of tickets
    """

    __tablename__ = "users"

    id = Column(Integer, nullable=False, primary_key=True, autoincrement=True, unique=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password = Column(String(255), nullable=False)
    """Hash of the user's password, never the password itself"""
    is_manager = Column(Boolean, nullable=False, default=False)
    """Flag granting the capabilities to manage tickets and users of other people"""
    created = Column(DateTime, server_default=func.now())
    modified = Column(DateTime, server_onupdate=FetchedValue(), server_default=func.now(), onupdate=func.now())

    # Tickets must be reassigned or deleted first, the database rejects deleting their author
    tickets = relationship("Ticket", back_populates="author", passive_deletes="all", order_by="Ticket.id")

    def __repr__(self) -> str:
        return f"User(id={self.id}, name={self.name!r}, is_manager={self.is_manager})"


class Ticket(Base):
    """
    Model representing a single support ticket created by (or on behalf of) its author
    """

    __tablename__ = "tickets"

    id = Column(Integer, nullable=False, primary_key=True, autoincrement=True, unique=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(1), nullable=False, default="A")
    """Status of the ticket: active (A), completed (C), on hold (H) or cancelled (X)"""
    created = Column(DateTime, server_default=func.now())
    modified = Column(DateTime, server_onupdate=FetchedValue(), server_default=func.now(), onupdate=func.now())

    author = relationship("User", back_populates="tickets")

    __table_args__ = (
        CheckConstraint("status IN ('A', 'C', 'H', 'X')", name="known_ticket_status"),
    )

    def __repr__(self) -> str:
        return f"Ticket(id={self.id}, user_id={self.user_id}, status={self.status!r})"
