from .models import (
    Account,
    Administrator,
    AuditLog,
    EmailMessage,
    EmailStatus,
    EmailType,
    Event,
    JSONType,
    PaymentStatus,
    Registration,
    School,
    TimestampedBase,
    UserRole,
    as_utc,
    isoformat,
    utcnow,
)

__all__ = [
    "Account",
    "Administrator",
    "AuditLog",
    "EmailMessage",
    "EmailStatus",
    "EmailType",
    "Event",
    "JSONType",
    "PaymentStatus",
    "Registration",
    "School",
    "TimestampedBase",
    "UserRole",
    "as_utc",
    "isoformat",
    "utcnow",
]
