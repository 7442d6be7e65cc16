"""Database models for WebQ."""

from .audit import AuditEvent, AuditEventType, AuditSeverity
from .base import Base, PortableJSON, PortableUUID, TimestampMixin, UTCDateTime
from .erasure import (
    ChallengeAttempt,
    DeletionVerificationCode,
    ErasureLock,
    ErasureRequestRecord,
    ErasureStepResultRecord,
)
from .portal import (
    Account,
    ClientOnboarding,
    ClientProject,
    CookieConsentLog,
    DesignDelivery,
    DesignDeliveryFile,
    DesignFeedback,
    DesignOrder,
    Notification,
    Profile,
    ProjectCredential,
    ProjectFile,
    ProjectTicket,
    TicketMessage,
    TimelineMessage,
    UserRole,
)

__all__ = [
    "Base",
    "PortableJSON",
    "PortableUUID",
    "TimestampMixin",
    "UTCDateTime",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditSeverity",
    # Erasure coordination
    "ChallengeAttempt",
    "DeletionVerificationCode",
    "ErasureLock",
    "ErasureRequestRecord",
    "ErasureStepResultRecord",
    # Portal
    "Account",
    "ClientOnboarding",
    "ClientProject",
    "CookieConsentLog",
    "DesignDelivery",
    "DesignDeliveryFile",
    "DesignFeedback",
    "DesignOrder",
    "Notification",
    "Profile",
    "ProjectCredential",
    "ProjectFile",
    "ProjectTicket",
    "TicketMessage",
    "TimelineMessage",
    "UserRole",
]
