"""
Signup Routes

Served on the platform host only.

POST   /signup/sessions                 → start a registration session
GET    /signup/sessions/{id}            → read the draft
PATCH  /signup/sessions/{id}            → apply preview edits
DELETE /signup/sessions/{id}            → abandon the draft
GET    /signup/sessions/{id}/preview    → live preview with availability hint
POST   /signup/sessions/{id}/commit     → create the blog
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from multiblog.container import Platform
from multiblog.dependencies import get_owner_ref, get_platform, require_platform_host
from multiblog.exceptions import SessionNotFoundError
from multiblog.schemas.signup import (
    CommitResponse,
    PreviewResponse,
    SignupSessionCreate,
    SignupSessionResponse,
    SignupSessionUpdate,
)
from multiblog.services.provisioning import ProvisioningOutcome, ProvisioningState, RejectionReason

router = APIRouter(dependencies=[Depends(require_platform_host)])
logger = logging.getLogger(__name__)

_REJECTION_STATUS = {
    RejectionReason.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectionReason.OWNER_MISSING: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.OWNER_MISMATCH: status.HTTP_403_FORBIDDEN,
    RejectionReason.SUBDOMAIN_TAKEN: status.HTTP_409_CONFLICT,
    RejectionReason.EMAIL_REGISTERED: status.HTTP_409_CONFLICT,
    RejectionReason.COMMIT_TIMEOUT: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _commit_status(outcome: ProvisioningOutcome) -> int:
    if outcome.state == ProvisioningState.COMMITTED:
        return status.HTTP_201_CREATED
    if outcome.state == ProvisioningState.EXPIRED:
        return status.HTTP_410_GONE
    return _REJECTION_STATUS.get(outcome.reason, status.HTTP_422_UNPROCESSABLE_ENTITY)


@router.post("/sessions", response_model=SignupSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session_route(payload: SignupSessionCreate, platform: Platform = Depends(get_platform)):
    session_id = await platform.store.create(**payload.model_dump(exclude_none=True))
    return await platform.store.get(session_id)


@router.get("/sessions/{session_id}", response_model=SignupSessionResponse)
async def get_session_route(session_id: str, platform: Platform = Depends(get_platform)):
    return await platform.store.get(session_id)


@router.patch("/sessions/{session_id}", response_model=SignupSessionResponse)
async def update_session_route(
    session_id: str,
    payload: SignupSessionUpdate,
    platform: Platform = Depends(get_platform),
):
    return await platform.store.update(session_id, **payload.model_dump(exclude_unset=True))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_session_route(session_id: str, platform: Platform = Depends(get_platform)) -> None:
    if not await platform.store.discard(session_id):
        raise SessionNotFoundError(session_id)


@router.get("/sessions/{session_id}/preview", response_model=PreviewResponse)
async def preview_route(session_id: str, platform: Platform = Depends(get_platform)):
    preview = await platform.workflow.preview(session_id)
    return PreviewResponse.model_validate(preview)


@router.post("/sessions/{session_id}/commit", response_model=CommitResponse)
async def commit_route(
    session_id: str,
    response: Response,
    owner_ref: str | None = Depends(get_owner_ref),
    platform: Platform = Depends(get_platform),
) -> CommitResponse:
    """
    Create the tenant and its skeleton blog.

    Rejections are reported in the body with a matching status code; a
    ``retryable`` outcome may be committed again with the same session.
    """
    outcome = await platform.workflow.commit(session_id, owner_ref)
    response.status_code = _commit_status(outcome)
    url = None
    if outcome.committed:
        url = f"https://{outcome.subdomain}.{platform.settings.platform_domain}"
    return CommitResponse(
        session_id=outcome.session_id,
        state=outcome.state.value,
        tenant_id=outcome.tenant_id,
        subdomain=outcome.subdomain,
        url=url,
        reason=outcome.reason.value if outcome.reason else None,
        suggestions=list(outcome.suggestions),
        retryable=outcome.retryable,
        attempts=outcome.attempts,
    )
