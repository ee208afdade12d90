"""
repair_kernel.services.approval_service -- Customer approval workflow.

Responsibility:
    Issues single-use approval links, verifies them, and records the
    customer's irreversible decision together with its cascade onto the
    job's PROPOSED line items and, on approval, the job's move to
    APPROVED_READY.

Architecture position:
    Kernel > Services.  Owns its units (auto_commit).  Uses
    JobLifecycleService, LineItemService and EventLogService in flush-only
    mode inside those units.

Invariants enforced:
    - Only ``HMAC-SHA256(secret, token)`` is stored; comparison is
      constant-time.
    - At most one request per job.  Re-issuing replaces the hash, so every
      earlier link stops working.
    - A decision is a compare-and-set: ``UPDATE approval_requests ... WHERE
      status = 'SENT' AND decided_at IS NULL AND customer_token_hash = ?``
      must match exactly one row, otherwise the unit is abandoned.  A second
      decision on the same link therefore changes nothing.
    - A decision locks the job row before the request row (the order
      ``request_approval`` uses) and checks WAITING_APPROVAL on the locked
      row, so a concurrent staff transition either completes first and
      voids the link, or waits for the decision.
    - A decision never touches items that are not PROPOSED.
    - The customer sees two outcomes only: RECORDED or NOT_AVAILABLE.  Why a
      link is not available is logged server-side and never returned.

Failure modes:
    - ForbiddenError / JobNotFoundError on ``request_approval``.
    - InvalidTransitionError if approval is requested outside DIAGNOSIS.
    - ApprovalNotAvailableError from ``verify`` / ``get_customer_view``.
    - ValidationError for a decision other than approve/decline.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from repair_kernel.domain.access import require_management
from repair_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalIssue,
    ApprovalRequestRecord,
    ApprovalStatus,
    CustomerApprovalView,
    DecisionOutcome,
    can_decide,
)
from repair_kernel.domain.clock import Clock
from repair_kernel.domain.dtos import LineItemStatus
from repair_kernel.domain.events import (
    ApprovalDecidedPayload,
    ApprovalSentPayload,
    JobEventType,
)
from repair_kernel.domain.principal import Principal
from repair_kernel.domain.settings import WorkflowSettings
from repair_kernel.domain.transitions import JobState
from repair_kernel.exceptions import (
    ApprovalAlreadyDecidedError,
    ApprovalNotAvailableError,
    InvalidTransitionError,
)
from repair_kernel.logging_config import get_logger
from repair_kernel.models.approval import ApprovalRequestModel
from repair_kernel.models.job import Job
from repair_kernel.models.shop import Shop
from repair_kernel.services.base import WorkflowService, coerce_uuid, load_tenant_job
from repair_kernel.services.event_log import EventLogService
from repair_kernel.services.job_lifecycle_service import JobLifecycleService
from repair_kernel.services.line_item_service import LineItemService
from repair_kernel.services.media_service import MediaService
from repair_kernel.utils.tokens import (
    build_approval_url,
    generate_token,
    hash_token,
    verify_token,
)

logger = get_logger("services.approval")


class ApprovalService(WorkflowService):
    """
    Contract:
        ``request_approval`` is actor-gated.  ``verify``,
        ``get_customer_view`` and ``decide`` take only the capability URL's
        ``(job_id, token)``: the token is the credential.

    Usage:
        issue = approvals.request_approval(advisor, job.id)
        # deliver issue.url to the customer
        approvals.decide(job.id, token_from_url, "approve")
    """

    def __init__(
        self,
        session: Session,
        settings: WorkflowSettings,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        super().__init__(session, clock, auto_commit)
        self.settings = settings
        self._events = EventLogService(session, self.clock)
        self._lifecycle = JobLifecycleService(session, settings, self.clock, auto_commit=False)
        self._items = LineItemService(session, self.clock, auto_commit=False)
        self._media = MediaService(session, self.clock, auto_commit=False)

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def request_approval(self, principal: Principal, job_id: UUID | str) -> ApprovalIssue:
        """
        Issue (or re-issue) the job's approval link and move the job to
        WAITING_APPROVAL.

        Postconditions:
            - The request row holds the new token hash, status SENT,
              ``sent_at=now`` and no decision.
            - APPROVAL_SENT and STATE_CHANGE events are appended in the same
              unit.

        Returns:
            ApprovalIssue carrying the raw token.  It is not recoverable
            later.
        """

        def work() -> ApprovalIssue:
            job = load_tenant_job(self.session, principal.shop_id, job_id, for_update=True)
            require_management(principal, "request_approval")
            if job.state != JobState.DIAGNOSIS.value:
                raise InvalidTransitionError(job.state, JobState.WAITING_APPROVAL.value)

            token = generate_token(self.settings.token_bytes)
            token_hash = hash_token(token, self.settings.approval_secret)
            now = self.clock.now()

            request = self._load_request(job.id, for_update=True)
            reissue = request is not None
            if request is None:
                request = ApprovalRequestModel(job_id=job.id)
                self.session.add(request)
            request.customer_token_hash = token_hash
            request.status = ApprovalStatus.SENT.value
            request.sent_at = now
            request.decided_at = None
            self.session.flush()

            url = build_approval_url(self.settings.public_base_url, job.id, token)
            self._events.append(
                job.id,
                JobEventType.APPROVAL_SENT,
                ApprovalSentPayload(url=url),
                actor_id=principal.id,
            )
            self._lifecycle.record_transition(job, JobState.WAITING_APPROVAL, principal.id)

            logger.info(
                "approval_requested",
                extra={"job_id": str(job.id), "reissue": reissue},
            )
            return ApprovalIssue(job_id=job.id, token=token, url=url, sent_at=now)

        return self._run_unit("request_approval", principal, work, job_id=job_id)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self, job_id: UUID | str, token: str | None) -> ApprovalRequestRecord:
        """
        Check a capability URL.

        Raises:
            ApprovalNotAvailableError: Missing request, wrong or superseded
                token, already decided, or the job has left
                WAITING_APPROVAL.
        """
        return self._run_unit(
            "verify_approval",
            None,
            lambda: self._verify(job_id, token)[0].to_dto(),
            job_id=job_id,
        )

    def get_customer_view(self, job_id: UUID | str, token: str | None) -> CustomerApprovalView:
        """What the customer sees on GET of the approval link."""

        def work() -> CustomerApprovalView:
            request, job = self._verify(job_id, token)
            shop = self.session.get(Shop, job.shop_id)
            items = tuple(
                item for item in self._items.list_items(job.id)
                if item.status is LineItemStatus.PROPOSED
            )
            return CustomerApprovalView(
                job_id=job.id,
                shop_name=shop.name,
                job_number=job.job_number,
                title=job.title,
                vehicle_description=job.vehicle.describe(),
                items=items,
                media=tuple(self._media.list_media(job.id)),
                sent_at=request.sent_at,
            )

        return self._run_unit("get_customer_view", None, work, job_id=job_id)

    def _load_request(self, job_id: UUID, for_update: bool = False) -> ApprovalRequestModel | None:
        stmt = select(ApprovalRequestModel).where(ApprovalRequestModel.job_id == job_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _load_job(self, job_id: UUID, for_update: bool = False) -> Job | None:
        stmt = select(Job).where(Job.id == job_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _verify(
        self,
        job_id: UUID | str,
        token: str | None,
        for_update: bool = False,
    ) -> tuple[ApprovalRequestModel, Job]:
        # Lock order matches request_approval: job row, then request row.
        # The state check below reads the locked job row.
        parsed = coerce_uuid(job_id)
        job = self._load_job(parsed, for_update) if parsed is not None else None
        request = self._load_request(parsed, for_update) if job is not None else None

        reason = None
        if request is None:
            reason = "no_request"
        elif not verify_token(token, self.settings.approval_secret, request.customer_token_hash):
            reason = "token_mismatch"
        elif request.decided_at is not None:
            reason = "already_decided"
        elif request.status != ApprovalStatus.SENT.value:
            reason = "not_sent"
        elif job.state != JobState.WAITING_APPROVAL.value:
            reason = "job_not_waiting"

        if reason is not None:
            logger.info("approval_token_rejected", extra={"reason": reason})
            raise ApprovalNotAvailableError(str(job_id))
        return request, job

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def decide(
        self,
        job_id: UUID | str,
        token: str | None,
        decision: ApprovalDecision | str,
    ) -> DecisionOutcome:
        """
        Record the customer's decision.

        Postconditions (RECORDED):
            - Request status APPROVED/DECLINED with ``decided_at=now``.
            - Every PROPOSED item moved to APPROVED/DECLINED.
            - APPROVAL_DECIDED event without actor.
            - On approve: job moved to APPROVED_READY by a system transition.

        Returns:
            RECORDED, or NOT_AVAILABLE for a bad, stale or consumed link
            (nothing changed).

        Raises:
            ValidationError: ``decision`` is not approve/decline.
        """
        choice = ApprovalDecision.parse(decision)

        def work() -> DecisionOutcome:
            request, job = self._verify(job_id, token, for_update=True)
            if not can_decide(request.status, choice.request_status):
                raise ApprovalAlreadyDecidedError(str(job.id))
            now = self.clock.now()

            result = self.session.execute(
                update(ApprovalRequestModel)
                .where(
                    ApprovalRequestModel.job_id == job.id,
                    ApprovalRequestModel.status == ApprovalStatus.SENT.value,
                    ApprovalRequestModel.decided_at.is_(None),
                    ApprovalRequestModel.customer_token_hash == request.customer_token_hash,
                )
                .values(status=choice.request_status.value, decided_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ApprovalAlreadyDecidedError(str(job.id))
            self.session.expire(request)

            item_count = self._items.cascade_decision(job.id, choice)
            self._events.append(
                job.id,
                JobEventType.APPROVAL_DECIDED,
                ApprovalDecidedPayload(decision=choice.value),
                actor_id=None,
            )
            if choice is ApprovalDecision.APPROVE:
                self._lifecycle.apply_system_transition(job, JobState.APPROVED_READY)

            logger.info(
                "approval_decided",
                extra={
                    "job_id": str(job.id),
                    "decision": choice.value,
                    "item_count": item_count,
                },
            )
            return DecisionOutcome.RECORDED

        try:
            return self._run_unit("decide_approval", None, work, job_id=job_id)
        except (ApprovalNotAvailableError, ApprovalAlreadyDecidedError) as exc:
            logger.info(
                "approval_decision_rejected",
                extra={"error_code": exc.code},
            )
            return DecisionOutcome.NOT_AVAILABLE
