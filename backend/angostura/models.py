from __future__ import annotations
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import declarative_base, Mapped, mapped_column, relationship
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)


Base = declarative_base()

STATUS_AVAILABLE = "available"
STATUS_FULLY_BOOKED = "fully-booked"
STATUS_CANCELLED = "cancelled"
EVENT_STATUSES = (STATUS_AVAILABLE, STATUS_FULLY_BOOKED, STATUS_CANCELLED)

DIFFICULTIES = ("Beginner", "Intermediate", "Advanced")


class AuthUser(Base):
    __tablename__ = "auth_users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<AuthUser id={self.id} email={self.email}>"


class AuthSession(Base):
    __tablename__ = "auth_sessions"
    token: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("auth_users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<AuthSession user_id={self.user_id} expires_at={self.expires_at}>"


class UserProfile(Base):
    __tablename__ = "user_profiles"
    id: Mapped[int] = mapped_column(Integer, ForeignKey("auth_users.id", ondelete="CASCADE"), primary_key=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    country_of_residence: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city_town_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_provider: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    registrations = relationship("EventRegistration", back_populates="user")

    def __repr__(self):
        return f"<UserProfile id={self.id} username={self.username}>"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("seats_available >= 0", name="ck_events_seats_available_non_negative"),
        CheckConstraint("total_seats >= 1", name="ck_events_total_seats_positive"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(20), nullable=False, default="Beginner")
    seats_available: Mapped[int] = mapped_column(Integer, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_AVAILABLE)
    event_start_location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_owner_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    registrations = relationship("EventRegistration", back_populates="event", passive_deletes=True)

    def __repr__(self):
        return f"<Event id={self.id} title={self.title} seats_available={self.seats_available} status={self.status}>"


class EventRegistration(Base):
    __tablename__ = "event_registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_event_registrations_user_event"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=False)
    event_id: Mapped[int] = mapped_column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    seats_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    registration_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="registrations")
    user = relationship("UserProfile", back_populates="registrations")

    def __repr__(self):
        return f"<EventRegistration id={self.id} user_id={self.user_id} event_id={self.event_id} seats={self.seats_requested}>"
