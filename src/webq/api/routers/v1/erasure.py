"""Erasure endpoints.

Public endpoints let an account holder (with a verification code) or an
anonymous visitor (with a solved challenge) erase their data. Operator
endpoints issue codes and inspect or resume requests.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from webq.api.dependencies import (
    get_app_settings,
    get_coordinator,
    get_requester_fingerprint,
)
from webq.api.schemas.erasure import (
    AccountErasureRequest,
    ChallengeResponse,
    ErasureRequestDetail,
    ErasureResponse,
    SessionErasureRequest,
    VerificationCodeResponse,
)
from webq.api.schemas.errors import APIError
from webq.config.settings import Settings
from webq.erasure.coordinator import ErasureCoordinator
from webq.erasure.types import (
    ChallengeProof,
    ErasureRequest,
    ErasureStatus,
    SessionTarget,
    TenantTarget,
    VerificationCodeProof,
)

router = APIRouter(prefix="/erasure", tags=["erasure"])

Coordinator = Annotated[ErasureCoordinator, Depends(get_coordinator)]

ERROR_RESPONSES = {
    401: {"model": APIError, "description": "Proof invalid, expired or already used"},
    409: {"model": APIError, "description": "Erasure already in progress"},
    429: {"model": APIError, "description": "Requester locked out"},
}


def _disposition(request: ErasureRequest) -> JSONResponse:
    body = ErasureResponse.from_request(request)
    status_code = (
        status.HTTP_200_OK
        if request.status == ErasureStatus.COMPLETED
        else status.HTTP_500_INTERNAL_SERVER_ERROR
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


# =============================================================================
# Public
# =============================================================================


@router.post(
    "/accounts",
    response_model=ErasureResponse,
    responses={500: {"model": ErasureResponse}, **ERROR_RESPONSES},
    summary="Erase an account",
)
async def erase_account(body: AccountErasureRequest, coordinator: Coordinator) -> JSONResponse:
    """Erase every record, file and the identity of an account.

    Returns 200 when everything was deleted and 500 with ``partial: true``
    when some cleanup failed.
    """
    request = await coordinator.request_erasure(
        TenantTarget(account_id=body.target_id),
        VerificationCodeProof(code=body.code),
    )
    return _disposition(request)


@router.post(
    "/sessions/challenge",
    response_model=ChallengeResponse,
    responses={429: ERROR_RESPONSES[429]},
    summary="Get a human-verification challenge",
)
async def issue_challenge(
    coordinator: Coordinator,
    fingerprint: Annotated[str, Depends(get_requester_fingerprint)],
) -> ChallengeResponse:
    challenge = await coordinator.issue_challenge(fingerprint)
    return ChallengeResponse(prompt=challenge.prompt)


@router.post(
    "/sessions",
    response_model=ErasureResponse,
    responses={500: {"model": ErasureResponse}, **ERROR_RESPONSES},
    summary="Erase an anonymous session's consent records",
)
async def erase_session(
    body: SessionErasureRequest,
    coordinator: Coordinator,
    fingerprint: Annotated[str, Depends(get_requester_fingerprint)],
) -> JSONResponse:
    """Erase consent-log rows of a cookie session after a solved challenge.

    A session with no stored records still completes successfully.
    """
    request = await coordinator.request_erasure(
        SessionTarget(session_id=body.session_id),
        ChallengeProof(fingerprint=fingerprint, answer=body.answer),
    )
    return _disposition(request)


# =============================================================================
# Operator
# =============================================================================


@router.post(
    "/accounts/{target_id}/codes",
    response_model=VerificationCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an account erasure verification code",
)
async def issue_code(
    target_id: UUID,
    coordinator: Coordinator,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> VerificationCodeResponse:
    """Issue a code; the caller is responsible for delivering it."""
    code = await coordinator.issue_verification_code(target_id)
    return VerificationCodeResponse(
        target_id=target_id,
        code=code,
        expires_in_seconds=settings.erasure.code_ttl_seconds,
    )


@router.get(
    "/requests/{request_id}",
    response_model=ErasureRequestDetail,
    responses={404: {"model": APIError}},
    summary="Get an erasure request",
)
async def get_request(request_id: UUID, coordinator: Coordinator) -> ErasureRequestDetail:
    return ErasureRequestDetail.from_request(await coordinator.get_request(request_id))


@router.post(
    "/requests/{request_id}/resume",
    response_model=ErasureRequestDetail,
    responses={404: {"model": APIError}, 409: ERROR_RESPONSES[409]},
    summary="Resume an incomplete erasure request",
)
async def resume_request(request_id: UUID, coordinator: Coordinator) -> ErasureRequestDetail:
    return ErasureRequestDetail.from_request(await coordinator.resume(request_id))
