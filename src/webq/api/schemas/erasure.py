"""Request and response schemas for the erasure API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from webq.erasure.types import (
    ErasureRequest,
    ErasureStatus,
    FailureKind,
    StepStatus,
    TargetKind,
)


# =============================================================================
# Requests
# =============================================================================


class AccountErasureRequest(BaseModel):
    """Erase an account with the verification code sent to its owner."""

    target_id: UUID
    code: str = Field(..., min_length=1, max_length=128)


class SessionErasureRequest(BaseModel):
    """Erase the consent records of an anonymous browser session."""

    session_id: UUID
    answer: str = Field(..., min_length=1, max_length=16)

    @field_validator("session_id")
    @classmethod
    def require_uuid4(cls, value: UUID) -> UUID:
        """Session ids are generated client-side as random (v4) UUIDs."""
        if value.version != 4:
            raise ValueError("session_id must be a version 4 UUID")
        return value


# =============================================================================
# Responses
# =============================================================================


class ErasureResponse(BaseModel):
    """Disposition of an erasure request."""

    success: bool
    partial: bool = False
    message: str
    request_id: UUID
    status: ErasureStatus
    failure_kind: FailureKind | None = None

    @classmethod
    def from_request(cls, request: ErasureRequest) -> "ErasureResponse":
        if request.status == ErasureStatus.COMPLETED:
            message = "All data was permanently deleted"
        elif request.failure_kind == FailureKind.IDENTITY_RETAINED:
            message = "Data was deleted but the account record could not be removed"
        else:
            message = "Some data could not be deleted; the request can be resumed"
        return cls(
            success=request.status == ErasureStatus.COMPLETED,
            partial=request.status == ErasureStatus.PARTIAL_FAILURE,
            message=message,
            request_id=request.request_id,
            status=request.status,
            failure_kind=request.failure_kind,
        )


class ChallengeResponse(BaseModel):
    """Challenge shown to an anonymous requester."""

    prompt: str


class VerificationCodeResponse(BaseModel):
    """Freshly issued code, returned to the operator tooling that delivers it."""

    target_id: UUID
    code: str
    expires_in_seconds: int


class StepResultSchema(BaseModel):
    collection: str
    tier: int
    status: StepStatus
    identity: bool
    rows_deleted: int
    objects_deleted: int
    objects_absent: int
    error: str | None
    attempt: int
    recorded_at: datetime


class ErasureRequestDetail(BaseModel):
    """Full state of a persisted request."""

    request_id: UUID
    target_kind: TargetKind
    target_id: UUID
    status: ErasureStatus
    failure_kind: FailureKind | None
    attempts: int
    step_failure_count: int
    step_results: list[StepResultSchema]
    created_at: datetime
    completed_at: datetime | None

    @classmethod
    def from_request(cls, request: ErasureRequest) -> "ErasureRequestDetail":
        return cls(
            request_id=request.request_id,
            target_kind=request.target_kind,
            target_id=request.target_id,
            status=request.status,
            failure_kind=request.failure_kind,
            attempts=request.attempts,
            step_failure_count=request.step_failure_count,
            step_results=[
                StepResultSchema.model_validate(r.model_dump()) for r in request.step_results
            ],
            created_at=request.created_at,
            completed_at=request.completed_at,
        )
