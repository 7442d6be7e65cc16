"""API schemas for request/response validation."""

from .erasure import (
    AccountErasureRequest,
    ChallengeResponse,
    ErasureRequestDetail,
    ErasureResponse,
    SessionErasureRequest,
    StepResultSchema,
    VerificationCodeResponse,
)
from .errors import APIError, ErrorCode
from .health import ComponentHealth, HealthDetailResponse, HealthResponse, HealthStatus

__all__ = [
    # Error schemas
    "APIError",
    "ErrorCode",
    # Health schemas
    "ComponentHealth",
    "HealthDetailResponse",
    "HealthResponse",
    "HealthStatus",
    # Erasure schemas
    "AccountErasureRequest",
    "ChallengeResponse",
    "ErasureRequestDetail",
    "ErasureResponse",
    "SessionErasureRequest",
    "StepResultSchema",
    "VerificationCodeResponse",
]
