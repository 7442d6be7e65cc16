"""Tenant data erasure.

Permanently deletes everything an account or anonymous session owns,
across relational records, binary object storage and the identity record.
Account erasure is authorized by a single-use verification code, session
erasure by a human-verification challenge with lockout.

Usage:
    from webq.erasure import TenantTarget, VerificationCodeProof, get_erasure_coordinator

    coordinator = get_erasure_coordinator()
    request = await coordinator.request_erasure(
        TenantTarget(account_id=account_id),
        VerificationCodeProof(code=code),
    )
"""

from webq.erasure.challenge import ChallengeGate
from webq.erasure.codes import VerificationCodeStore
from webq.erasure.coordinator import (
    ErasureCoordinator,
    ErasureNotifier,
    LoggingNotifier,
    build_erasure_coordinator,
    get_erasure_coordinator,
    initialize_erasure_coordinator,
)
from webq.erasure.executor import ErasureExecutor
from webq.erasure.locks import DatabaseExecutionLock, ExecutionLock, RedisExecutionLock
from webq.erasure.planner import DependencyPlanner
from webq.erasure.repository import ErasureRequestRepository
from webq.erasure.stores import SqlIdentityStore, SqlRecordStore
from webq.erasure.types import (
    Challenge,
    ChallengeLockedError,
    ChallengeProof,
    ChallengeResult,
    DeletionPlan,
    DeletionStep,
    DeletionTier,
    ErasureAlreadyInProgressError,
    ErasureError,
    ErasureRequest,
    ErasureRequestNotFoundError,
    ErasureStatus,
    ErasureUnauthorizedError,
    ExecutionReport,
    FailureKind,
    IdentityDeletionFailedError,
    RelationshipGraphError,
    SessionTarget,
    StepFailedError,
    StepResult,
    StepStatus,
    TargetKind,
    TenantTarget,
    VerificationCodeProof,
)

__all__ = [
    # Components
    "ChallengeGate",
    "VerificationCodeStore",
    "DependencyPlanner",
    "ErasureExecutor",
    "ErasureCoordinator",
    "ErasureRequestRepository",
    "SqlRecordStore",
    "SqlIdentityStore",
    # Locks
    "ExecutionLock",
    "DatabaseExecutionLock",
    "RedisExecutionLock",
    # Notification
    "ErasureNotifier",
    "LoggingNotifier",
    # Service
    "build_erasure_coordinator",
    "get_erasure_coordinator",
    "initialize_erasure_coordinator",
    # Types
    "TargetKind",
    "TenantTarget",
    "SessionTarget",
    "VerificationCodeProof",
    "ChallengeProof",
    "Challenge",
    "ChallengeResult",
    "DeletionPlan",
    "DeletionTier",
    "DeletionStep",
    "StepStatus",
    "StepResult",
    "ExecutionReport",
    "ErasureStatus",
    "FailureKind",
    "ErasureRequest",
    # Exceptions
    "ErasureError",
    "ErasureUnauthorizedError",
    "ChallengeLockedError",
    "ErasureAlreadyInProgressError",
    "ErasureRequestNotFoundError",
    "StepFailedError",
    "IdentityDeletionFailedError",
    "RelationshipGraphError",
]
