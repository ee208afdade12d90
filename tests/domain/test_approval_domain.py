"""
Tests for approval value objects (``repair_kernel.domain.approval``) and
``WorkflowSettings``.
"""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from repair_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    ApprovalDecision,
    ApprovalIssue,
    ApprovalRequestRecord,
    ApprovalStatus,
    CustomerApprovalView,
    can_decide,
)
from repair_kernel.domain.dtos import (
    LineItemRecord,
    LineItemStatus,
    LineItemType,
    items_total,
)
from repair_kernel.domain.settings import WorkflowSettings
from repair_kernel.exceptions import ValidationError

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestApprovalStatus:

    def test_only_sent_has_outgoing_moves(self):
        assert APPROVAL_TRANSITIONS[ApprovalStatus.SENT] == {
            ApprovalStatus.APPROVED, ApprovalStatus.DECLINED,
        }
        assert APPROVAL_TRANSITIONS[ApprovalStatus.APPROVED] == frozenset()
        assert APPROVAL_TRANSITIONS[ApprovalStatus.DECLINED] == frozenset()

    @pytest.mark.parametrize("current,target,allowed", [
        (ApprovalStatus.SENT, ApprovalStatus.APPROVED, True),
        (ApprovalStatus.SENT, ApprovalStatus.DECLINED, True),
        ("SENT", ApprovalStatus.DECLINED, True),
        (ApprovalStatus.APPROVED, ApprovalStatus.DECLINED, False),
        (ApprovalStatus.DECLINED, ApprovalStatus.APPROVED, False),
        (ApprovalStatus.SENT, ApprovalStatus.SENT, False),
        ("WITHDRAWN", ApprovalStatus.APPROVED, False),
    ])
    def test_can_decide(self, current, target, allowed):
        assert can_decide(current, target) is allowed

    def test_is_live(self):
        job_id = uuid4()
        live = ApprovalRequestRecord(uuid4(), job_id, ApprovalStatus.SENT, NOW)
        done = ApprovalRequestRecord(uuid4(), job_id, ApprovalStatus.APPROVED, NOW, NOW)
        assert live.is_live
        assert not done.is_live


class TestApprovalDecision:

    def test_parse(self):
        assert ApprovalDecision.parse("approve") is ApprovalDecision.APPROVE
        assert ApprovalDecision.parse(ApprovalDecision.DECLINE) is ApprovalDecision.DECLINE

    @pytest.mark.parametrize("value", ["APPROVE", "yes", "", None])
    def test_parse_rejects_other_values(self, value):
        with pytest.raises(ValidationError) as exc_info:
            ApprovalDecision.parse(value)
        assert exc_info.value.field == "decision"

    def test_cascade_targets(self):
        assert ApprovalDecision.APPROVE.request_status is ApprovalStatus.APPROVED
        assert ApprovalDecision.APPROVE.item_status is LineItemStatus.APPROVED
        assert ApprovalDecision.DECLINE.request_status is ApprovalStatus.DECLINED
        assert ApprovalDecision.DECLINE.item_status is LineItemStatus.DECLINED


class TestIssueAndView:

    def test_issue_repr_hides_token(self):
        issue = ApprovalIssue(uuid4(), "cafebabe" * 4, "https://x.test/approve?t=...", NOW)
        assert "cafebabe" not in repr(issue)

    def test_view_total(self):
        job_id = uuid4()
        items = tuple(
            LineItemRecord(
                id=uuid4(), job_id=job_id, type=LineItemType.PART, name=name, qty=qty,
                unit_price=price, labor_hours=None, taxable=True,
                status=LineItemStatus.PROPOSED, sort_order=i, created_at=NOW,
            )
            for i, (name, qty, price) in enumerate([("Pads", 1, 8900), ("Fluid", 2, 2400)], 1)
        )
        view = CustomerApprovalView(
            job_id=job_id, shop_name="OcconoAuto", job_number=1001, title="Brakes",
            vehicle_description="2019 Honda Civic", items=items, media=(), sent_at=NOW,
        )
        assert view.total_cents == 13700

    def test_items_total_by_status(self):
        job_id = uuid4()
        items = [
            LineItemRecord(
                id=uuid4(), job_id=job_id, type=LineItemType.LABOR, name=name, qty=1,
                unit_price=price, labor_hours=None, taxable=True,
                status=status, sort_order=i, created_at=NOW,
            )
            for i, (name, price, status) in enumerate([
                ("Pads", 8900, LineItemStatus.DECLINED),
                ("Rotors", 4500, LineItemStatus.APPROVED),
                ("Caliper", 12000, LineItemStatus.PROPOSED),
                ("Flush", 3000, LineItemStatus.PROPOSED),
            ], 1)
        ]
        assert items_total(items, LineItemStatus.PROPOSED) == 15000
        assert items_total(items, LineItemStatus.APPROVED) == 4500
        assert items_total(items, LineItemStatus.DECLINED) == 8900
        assert items_total([], LineItemStatus.PROPOSED) == 0


class TestWorkflowSettings:

    def test_defaults(self):
        settings = WorkflowSettings(approval_secret="s")
        assert settings.first_job_number == 1001
        assert settings.token_bytes == 16
        assert settings.job_number_max_retries == 5

    def test_repr_hides_secret(self):
        assert "hunter2" not in repr(WorkflowSettings(approval_secret="hunter2"))

    @pytest.mark.parametrize("overrides", [
        {"approval_secret": ""},
        {"approval_secret": "s", "token_bytes": 8},
        {"approval_secret": "s", "first_job_number": 0},
        {"approval_secret": "s", "job_number_max_retries": 0},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            WorkflowSettings(**overrides)
