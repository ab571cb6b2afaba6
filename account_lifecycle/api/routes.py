"""HTTP route definitions for the account lifecycle service."""

from __future__ import annotations

import hmac
import logging
from datetime import datetime
from typing import Any

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from ..config import get_settings
from ..domain.contracts import CleanupCandidate, CleanupRunResult, LifecycleConfig, PreviewResult
from ..domain.service import LifecycleService
from ..locking.run_lock import RunInProgressError
from ..security.tokens import decode_admin_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class ThresholdsResponse(BaseModel):
    retention_days: int
    warn_lead_days: int
    warn_threshold_days: int

    @classmethod
    def from_domain(cls, config: LifecycleConfig) -> "ThresholdsResponse":
        return cls(
            retention_days=config.retention_days,
            warn_lead_days=config.warn_lead_days,
            warn_threshold_days=config.warn_threshold_days,
        )


class CleanupRunResponse(BaseModel):
    """Counts of successful actions taken by one automatic run."""

    ok: bool = True
    warned: int
    deleted: int
    checked: int
    max_warnings_per_run: int
    include_content_owners: bool
    auto_delete_enabled: bool
    config: ThresholdsResponse
    now: datetime

    @classmethod
    def from_domain(cls, result: CleanupRunResult) -> "CleanupRunResponse":
        return cls(
            warned=result.warned,
            deleted=result.deleted,
            checked=result.checked,
            max_warnings_per_run=result.max_warnings_per_run,
            include_content_owners=result.include_content_owners,
            auto_delete_enabled=result.auto_delete_enabled,
            config=ThresholdsResponse.from_domain(result.config),
            now=result.now,
        )


class CandidateResponse(BaseModel):
    """Serialised representation of a `CleanupCandidate`."""

    account_id: str
    email: str
    name: str
    role: str
    last_activity: datetime
    warn_at: datetime
    delete_at: datetime
    inactivity_warned_at: datetime | None
    scheduled_deletion_at: datetime | None
    email_opt_out: bool
    overdue: bool
    reason: str

    @classmethod
    def from_domain(cls, candidate: CleanupCandidate) -> "CandidateResponse":
        return cls(
            account_id=candidate.account_id,
            email=candidate.email,
            name=candidate.name,
            role=candidate.role,
            last_activity=candidate.last_activity,
            warn_at=candidate.warn_at,
            delete_at=candidate.delete_at,
            inactivity_warned_at=candidate.inactivity_warned_at,
            scheduled_deletion_at=candidate.scheduled_deletion_at,
            email_opt_out=candidate.email_opt_out,
            overdue=candidate.overdue,
            reason=candidate.reason,
        )


class PreviewTotals(BaseModel):
    checked: int
    warn_candidates: int
    delete_candidates: int


class PreviewResponse(BaseModel):
    """Accounts the next run would warn or delete; nothing is changed."""

    ok: bool = True
    config: ThresholdsResponse
    include_content_owners: bool
    totals: PreviewTotals
    warn_candidates: list[CandidateResponse]
    delete_candidates: list[CandidateResponse]
    now: datetime

    @classmethod
    def from_domain(cls, result: PreviewResult) -> "PreviewResponse":
        return cls(
            config=ThresholdsResponse.from_domain(result.config),
            include_content_owners=result.include_content_owners,
            totals=PreviewTotals(
                checked=result.checked,
                warn_candidates=len(result.warn_candidates),
                delete_candidates=len(result.delete_candidates),
            ),
            warn_candidates=[CandidateResponse.from_domain(c) for c in result.warn_candidates],
            delete_candidates=[CandidateResponse.from_domain(c) for c in result.delete_candidates],
            now=result.now,
        )


class PreviewRequest(BaseModel):
    """Thresholds for a preview; invalid values are corrected, not rejected."""

    model_config = ConfigDict(populate_by_name=True)

    retention_days: Any = Field(default=None, alias="days")
    warn_lead_days: Any = Field(default=None, alias="warnDays")


class SendWarningsRequest(PreviewRequest):
    account_ids: list[str] = Field(default_factory=list, alias="userIds")


class DeleteAccountsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    account_ids: list[str] = Field(default_factory=list, alias="userIds")
    confirm: bool = False


class SendWarningsResponse(BaseModel):
    ok: bool = True
    sent: int


class DeleteAccountsResponse(BaseModel):
    ok: bool = True
    deleted: int


class DiagnosticsResponse(BaseModel):
    ok: bool = True
    counts: dict[str, int]
    include_content_owners: bool
    auto_delete_enabled: bool


class UnsubscribeResponse(BaseModel):
    ok: bool = True
    updated: bool


def get_service(request: Request) -> LifecycleService:
    """Resolve the `LifecycleService` stored on the FastAPI application state."""
    service: LifecycleService = request.app.state.lifecycle_service
    return service


def require_admin(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    """Accept only bearer tokens issued to the configured administrator."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")
    try:
        return decode_admin_token(token.strip())
    except (jwt.PyJWTError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized") from exc


def require_cleanup_secret(secret: str | None = Header(default=None, alias="x-cleanup-secret")) -> None:
    """Guard the cron endpoint with the shared cleanup secret."""
    expected = get_settings().cleanup_secret
    incoming = (secret or "").strip()
    if not expected or not hmac.compare_digest(incoming.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthorized")


@router.post("/admin/cleanup/inactive", response_model=CleanupRunResponse)
def run_inactive_cleanup(
    days: str | None = Query(default=None),
    warn_days: str | None = Query(default=None, alias="warnDays"),
    max_warnings: str | None = Query(default=None, alias="maxWarnings"),
    _: None = Depends(require_cleanup_secret),
    service: LifecycleService = Depends(get_service),
) -> CleanupRunResponse:
    """Run the automatic inactivity cleanup; called by the scheduler."""
    try:
        result = service.run_cleanup(days, warn_days, max_warnings)
    except RunInProgressError as exc:
        logger.warning("cleanup trigger rejected: %s", exc)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return CleanupRunResponse.from_domain(result)


@router.post("/admin/cleanup/preview", response_model=PreviewResponse)
def preview_inactive_cleanup(
    payload: PreviewRequest,
    _: dict[str, Any] = Depends(require_admin),
    service: LifecycleService = Depends(get_service),
) -> PreviewResponse:
    """Show which accounts the next run would warn and delete."""
    result = service.preview(payload.retention_days, payload.warn_lead_days)
    return PreviewResponse.from_domain(result)


@router.post("/admin/cleanup/send-warnings", response_model=SendWarningsResponse)
def send_warnings(
    payload: SendWarningsRequest,
    _: dict[str, Any] = Depends(require_admin),
    service: LifecycleService = Depends(get_service),
) -> SendWarningsResponse:
    """Warn selected accounts that are currently inside the warn window."""
    if not payload.account_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userIds is required")
    try:
        result = service.send_warnings(payload.account_ids, payload.retention_days, payload.warn_lead_days)
    except RunInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return SendWarningsResponse(sent=result.sent)


@router.post("/admin/cleanup/delete-users", response_model=DeleteAccountsResponse)
def delete_accounts(
    payload: DeleteAccountsRequest,
    _: dict[str, Any] = Depends(require_admin),
    service: LifecycleService = Depends(get_service),
) -> DeleteAccountsResponse:
    """Delete selected accounts regardless of their lifecycle bucket."""
    if not payload.account_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userIds is required")
    if not payload.confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="confirmation required: pass confirm=true to delete accounts",
        )
    result = service.delete_accounts(payload.account_ids)
    return DeleteAccountsResponse(deleted=result.deleted)


@router.get("/admin/diagnostics", response_model=DiagnosticsResponse)
def diagnostics(
    _: dict[str, Any] = Depends(require_admin),
    service: LifecycleService = Depends(get_service),
) -> DiagnosticsResponse:
    return DiagnosticsResponse(**service.diagnostics())


@router.api_route("/mail/unsubscribe", methods=["GET", "POST"], response_model=UnsubscribeResponse)
def unsubscribe(
    token: str = Query(default=""),
    service: LifecycleService = Depends(get_service),
) -> UnsubscribeResponse:
    """Opt the token's account out of inactivity emails (and therefore of deletion)."""
    try:
        updated = service.unsubscribe(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return UnsubscribeResponse(updated=updated)
