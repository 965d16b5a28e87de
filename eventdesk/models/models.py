from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from eventdesk.extensions import db, bcrypt

JSONType = JSON().with_variant(JSONB, 'postgresql')

MAX_FAILED_LOGINS = 5
LOCKOUT_MINUTES = 15


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


class TimestampedBase(db.Model):
    """Abstract base providing id/created/updated columns."""

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserRole(Enum):
    STUDENT = "student"
    ADMIN = "admin"
    SUPER_ADMIN = "superAdmin"


class PaymentStatus(Enum):
    COMPLETED = "completed"
    PENDING = "pending"


class EmailStatus(Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EmailType(Enum):
    REGISTRATION_CONFIRMATION = "registration_confirmation"
    RESULT_NOTIFICATION = "result_notification"
    DELETION_NOTICE = "deletion_notice"
    CUSTOM = "custom"


class Account(TimestampedBase):
    """A registrant or administrator login."""

    __tablename__ = "account"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(32))
    school: Mapped[str | None] = mapped_column(String(255))
    active: Mapped[bool] = mapped_column('is_active', Boolean, nullable=False, default=True)
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    audit_logs: Mapped[list["AuditLog"]] = relationship(back_populates="account")

    def set_password(self, password: str) -> None:
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        except ValueError:
            return False

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def is_active(self) -> bool:  # Flask-Login compatibility
        return bool(self.active)

    @property
    def is_anonymous(self) -> bool:
        return False

    def get_id(self) -> str:
        return self.id

    def is_account_locked(self) -> bool:
        """Check if account is currently locked."""
        locked_until = as_utc(self.locked_until)
        if locked_until:
            if utcnow() < locked_until:
                return True
            # Unlock if lock period expired
            self.locked_until = None
            self.failed_login_attempts = 0
        return False

    def record_failed_login(self) -> None:
        """Record a failed login attempt and lock account if threshold exceeded."""
        self.failed_login_attempts += 1
        if self.failed_login_attempts >= MAX_FAILED_LOGINS:
            self.locked_until = utcnow() + timedelta(minutes=LOCKOUT_MINUTES)

    def reset_failed_login_attempts(self) -> None:
        self.failed_login_attempts = 0
        self.locked_until = None


class Administrator(TimestampedBase):
    """Authoritative role record. Absence of a row means the student role."""

    __tablename__ = "administrator"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    account_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("account.id", ondelete="SET NULL"),
        index=True,
    )
    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, name="user_role", native_enum=False),
        nullable=False,
        default=UserRole.ADMIN,
    )
    display_name: Mapped[str | None] = mapped_column(String(255))
    added_by: Mapped[str | None] = mapped_column(String(255))

    account: Mapped[Account | None] = relationship()


class Event(TimestampedBase):
    __tablename__ = "event"
    __table_args__ = (
        Index("ix_event_deleted_at", "deleted_at"),
    )

    # Hex ids keep the payment invoice reference splittable on "-"
    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: uuid.uuid4().hex,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    full_description: Mapped[str | None] = mapped_column(Text)
    dates: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    time: Mapped[str | None] = mapped_column(String(100))
    location: Mapped[str | None] = mapped_column(String(255))
    venue: Mapped[str | None] = mapped_column(String(255))
    image: Mapped[str | None] = mapped_column(String(512))
    logo: Mapped[str | None] = mapped_column(String(512))
    eligibility: Mapped[str | None] = mapped_column(Text)
    agenda: Mapped[list | None] = mapped_column(JSONType, default=list)
    tags: Mapped[list | None] = mapped_column(JSONType, default=list)
    categories: Mapped[list | None] = mapped_column(JSONType, default=list)
    color_theme: Mapped[str | None] = mapped_column(String(32))

    # Payment configuration
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amount: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False))
    category_amounts: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    send_pdf_on_registration: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    results_published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[str | None] = mapped_column(String(36))
    created_by_name: Mapped[str | None] = mapped_column(String(255))

    registrations: Mapped[list["Registration"]] = relationship(
        primaryjoin="Event.id == foreign(Registration.event_id)",
        back_populates="event",
        cascade="all, delete-orphan",
    )

    @property
    def category_list(self) -> list[str]:
        return [c for c in (self.categories or []) if isinstance(c, str) and c.strip()]

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Registration(TimestampedBase):
    __tablename__ = "registration"
    __table_args__ = (
        # At most one active registration per (event, email)
        Index(
            "uq_registration_event_email_active",
            "event_id",
            "email",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
        Index("ix_registration_deleted_at", "deleted_at"),
    )

    # Human-readable id, REG-YYYYMMDD-XXXXX
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    # Loose reference; a captured payment is recorded even if its event is gone
    event_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    account_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("account.id", ondelete="SET NULL"),
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    school: Mapped[str] = mapped_column(String(255), nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(String(255))

    position: Mapped[int | None] = mapped_column(Integer)
    payment_status: Mapped[PaymentStatus | None] = mapped_column(
        SqlEnum(PaymentStatus, name="payment_status", native_enum=False),
        nullable=True,
    )
    transaction_id: Mapped[str | None] = mapped_column(String(128))
    amount_paid: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False))
    result_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    event: Mapped[Event | None] = relationship(
        primaryjoin="Event.id == foreign(Registration.event_id)",
        back_populates="registrations",
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class School(TimestampedBase):
    __tablename__ = "school"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class EmailMessage(TimestampedBase):
    __tablename__ = "email_message"
    __table_args__ = (
        Index("ix_email_status", "status"),
    )

    to_email: Mapped[str] = mapped_column(String(255), nullable=False)
    to_name: Mapped[str | None] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    email_type: Mapped[EmailType] = mapped_column(
        SqlEnum(EmailType, name="email_type", native_enum=False),
        nullable=False,
        default=EmailType.CUSTOM,
    )
    status: Mapped[EmailStatus] = mapped_column(
        SqlEnum(EmailStatus, name="email_status", native_enum=False),
        nullable=False,
        default=EmailStatus.QUEUED,
    )
    backend: Mapped[str | None] = mapped_column(String(32))
    html_content: Mapped[str | None] = mapped_column(Text)
    attachment_name: Mapped[str | None] = mapped_column(String(255))
    error_message: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # Loose references; the registration may be rolled back or purged
    event_id: Mapped[str | None] = mapped_column(String(36), index=True)
    registration_id: Mapped[str | None] = mapped_column(String(32), index=True)


class AuditLog(TimestampedBase):
    __tablename__ = "audit_log"

    account_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("account.id", ondelete="SET NULL"),
        index=True,
    )
    actor_email: Mapped[str | None] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(128), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict | None] = mapped_column(JSONType, default=dict)

    account: Mapped[Account | None] = relationship(back_populates="audit_logs")
