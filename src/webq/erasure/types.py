"""Type definitions for tenant data erasure.

This module defines erasure targets, the proofs that authorize an erasure,
deletion plans and their execution results, and the erasure exceptions.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_utils.compat import uuid7

from webq.utils.exceptions import WebqError


# =============================================================================
# Targets
# =============================================================================


class TargetKind(str, Enum):
    """Kind of entity whose data is erased."""

    ACCOUNT = "account"
    """A paying client account and everything it owns."""

    SESSION = "session"
    """An anonymous visitor's cookie/consent session."""


class TenantTarget(BaseModel):
    """An account whose owned records, objects and identity are erased."""

    kind: Literal[TargetKind.ACCOUNT] = TargetKind.ACCOUNT
    account_id: UUID

    model_config = {"frozen": True}

    @property
    def target_id(self) -> UUID:
        return self.account_id

    @property
    def lock_key(self) -> str:
        return f"{self.kind.value}:{self.account_id}"


class SessionTarget(BaseModel):
    """An anonymous session whose consent log rows are erased."""

    kind: Literal[TargetKind.SESSION] = TargetKind.SESSION
    session_id: UUID

    model_config = {"frozen": True}

    @property
    def target_id(self) -> UUID:
        return self.session_id

    @property
    def lock_key(self) -> str:
        return f"{self.kind.value}:{self.session_id}"


ErasureTarget = Annotated[TenantTarget | SessionTarget, Field(discriminator="kind")]


def make_target(kind: TargetKind | str, target_id: UUID) -> TenantTarget | SessionTarget:
    """Rebuild a target from its persisted kind and id."""
    if TargetKind(kind) == TargetKind.ACCOUNT:
        return TenantTarget(account_id=target_id)
    return SessionTarget(session_id=target_id)


# =============================================================================
# Proofs
# =============================================================================


class VerificationCodeProof(BaseModel):
    """Proof of control over an account: a code delivered out of band."""

    code: str

    model_config = {"frozen": True}


class ChallengeProof(BaseModel):
    """Proof that an anonymous requester is human."""

    fingerprint: str
    """Server-derived requester fingerprint."""

    answer: str
    """Answer to the challenge most recently issued to the fingerprint."""

    model_config = {"frozen": True}


ErasureProof = VerificationCodeProof | ChallengeProof


class Challenge(BaseModel):
    """Arithmetic challenge issued to an anonymous requester."""

    prompt: str
    """Human-readable question, e.g. ``"7 × 3"``."""

    expected_answer_hash: str
    """Keyed hash of the answer; the plain answer never leaves the gate."""


class ChallengeResult(BaseModel):
    """Outcome of a challenge submission that did not trigger a lockout."""

    ok: bool
    remaining_attempts: int


# =============================================================================
# Deletion plans
# =============================================================================


class SelectorLink(BaseModel):
    """One hop of a row selector: ``collection.column`` references the next hop."""

    collection: str
    column: str
    key: str = "id"
    """Column of ``collection`` that the previous hop references."""

    model_config = {"frozen": True}


class RowSelector(BaseModel):
    """Selects the rows of ``links[0].collection`` owned by a target.

    Each link's column references the key of the following link's
    collection; the last link's column holds the target id itself.
    """

    links: tuple[SelectorLink, ...]
    target_value: UUID

    model_config = {"frozen": True}

    @property
    def collection(self) -> str:
        return self.links[0].collection


class BucketRef(BaseModel):
    """Column holding object-storage references and the buckets it may point into."""

    column: str
    buckets: tuple[str, ...]

    model_config = {"frozen": True}


class DeletionStep(BaseModel):
    """Delete every selected row of one collection, objects first."""

    collection: str
    selector: RowSelector
    bucket_refs: tuple[BucketRef, ...] = ()
    identity: bool = False
    """True for the step that removes the target's identity record."""

    model_config = {"frozen": True}


class DeletionTier(BaseModel):
    """Steps with no mutual ordering; they run after every earlier tier."""

    index: int
    steps: tuple[DeletionStep, ...]

    model_config = {"frozen": True}


class DeletionPlan(BaseModel):
    """Ordered tiers that erase one target."""

    target_kind: TargetKind
    target_id: UUID
    tiers: tuple[DeletionTier, ...]

    model_config = {"frozen": True}

    @property
    def steps(self) -> list[DeletionStep]:
        return [step for tier in self.tiers for step in tier.steps]

    def tier_of(self, collection: str) -> int:
        """Tier index of ``collection``.

        Raises:
            KeyError: If the plan has no step for ``collection``
        """
        for tier in self.tiers:
            if any(step.collection == collection for step in tier.steps):
                return tier.index
        raise KeyError(collection)


# =============================================================================
# Execution
# =============================================================================


class StepStatus(str, Enum):
    """Outcome of one deletion step."""

    SUCCEEDED = "succeeded"
    """Rows and/or objects were deleted."""

    ALREADY_ABSENT = "already_absent"
    """Nothing matched; counts as success."""

    FAILED = "failed"
    """A row or object deletion errored; the step may be retried."""


class ErasureStatus(str, Enum):
    """Lifecycle of an erasure request."""

    PLANNED = "planned"
    EXECUTING = "executing"
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"


class FailureKind(str, Enum):
    """Why a request ended in PARTIAL_FAILURE."""

    DATA_DEBRIS = "data_debris"
    """Identity gone but some owned rows or objects remain."""

    IDENTITY_RETAINED = "identity_retained"
    """The identity record could not be deleted; needs manual follow-up."""

    INTERRUPTED = "interrupted"
    """Execution was cut short (timeout or crash) and must be resumed."""


class StepResult(BaseModel):
    """Recorded outcome of one executed step."""

    collection: str
    tier: int
    status: StepStatus
    identity: bool = False
    rows_deleted: int = 0
    objects_deleted: int = 0
    objects_absent: int = 0
    error: str | None = None
    attempt: int = 1
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED


class ExecutionReport(BaseModel):
    """Aggregate result of walking a plan once."""

    status: ErasureStatus
    failure_kind: FailureKind | None = None
    results: list[StepResult] = Field(default_factory=list)

    @property
    def failures(self) -> list[StepResult]:
        return [r for r in self.results if r.failed]


class ErasureRequest(BaseModel):
    """Complete record of an erasure request."""

    request_id: UUID = Field(default_factory=uuid7)
    target_kind: TargetKind
    target_id: UUID
    status: ErasureStatus = ErasureStatus.PLANNED
    failure_kind: FailureKind | None = None
    plan: DeletionPlan
    attempts: int = 0
    """Number of times the plan has been executed."""

    step_results: list[StepResult] = Field(default_factory=list)
    """Append-only history across all attempts."""

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    def add_step_result(self, result: StepResult) -> None:
        """Append a step outcome; earlier outcomes are never rewritten."""
        self.step_results.append(result)

    @property
    def step_failure_count(self) -> int:
        """Failed steps of the latest attempt."""
        return sum(1 for r in self.step_results if r.attempt == self.attempts and r.failed)


# =============================================================================
# Exceptions
# =============================================================================


class ErasureError(WebqError):
    """Base class for erasure errors."""

    pass


class ErasureUnauthorizedError(ErasureError):
    """Proof was missing, wrong, expired, already used or of the wrong kind.

    The message is intentionally generic.
    """

    def __init__(self, message: str = "Erasure not authorized"):
        super().__init__(message)


class ChallengeLockedError(ErasureError):
    """Fingerprint is locked out after too many wrong answers.

    Attributes:
        remaining_seconds: Seconds until the lockout expires
    """

    def __init__(self, remaining_seconds: int):
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Too many failed attempts; retry in {remaining_seconds}s")


class ErasureAlreadyInProgressError(ErasureError):
    """Another erasure of the same target holds the execution lock.

    Attributes:
        target_key: Lock key of the busy target
    """

    def __init__(self, target_key: str):
        self.target_key = target_key
        super().__init__(f"Erasure already in progress for {target_key}")


class ErasureRequestNotFoundError(ErasureError):
    """No persisted request with the given id."""

    def __init__(self, request_id: UUID):
        self.request_id = request_id
        super().__init__(f"Erasure request {request_id} not found")


class StepFailedError(ErasureError):
    """A single deletion step failed; recorded, never propagated by the executor.

    Attributes:
        collection: Collection the step targeted
    """

    def __init__(self, collection: str, reason: str):
        self.collection = collection
        self.reason = reason
        super().__init__(f"Deletion of {collection} failed: {reason}")


class IdentityDeletionFailedError(StepFailedError):
    """The identity record could not be deleted."""

    pass


class RelationshipGraphError(ErasureError):
    """The static relationship graph is malformed (programming error)."""

    pass
