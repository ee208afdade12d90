"""
Pytest fixtures for the repair kernel test suite.

Provides:
- A file-backed SQLite database per test (tables + immutability listeners)
- Sessions for single-threaded tests and a tracked session factory for
  threaded tests
- A demo shop with an owner, an advisor and two technicians
- Service fixtures wired to a deterministic clock
- Structured log capture

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the per-test SQLite file.  The schema is dropped and recreated per test.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from repair_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from repair_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from repair_kernel.domain.clock import DeterministicClock
from repair_kernel.domain.dtos import (
    JobRecord,
    LineItemType,
    NewJobFields,
    NewLineItem,
    ShopRecord,
    UserRecord,
)
from repair_kernel.domain.principal import Principal, Role
from repair_kernel.domain.settings import WorkflowSettings
from repair_kernel.domain.transitions import JobState
from repair_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from repair_kernel.selectors.job_selector import JobSelector
from repair_kernel.services.approval_service import ApprovalService
from repair_kernel.services.job_lifecycle_service import JobLifecycleService
from repair_kernel.services.line_item_service import LineItemService
from repair_kernel.services.media_service import MediaService
from repair_kernel.services.shop_directory_service import ShopDirectoryService

TEST_APPROVAL_SECRET = "test-approval-secret"
TEST_BASE_URL = "https://shop.example.test"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture repair_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, lifecycle):
            lifecycle.create_job(...)
            logs = captured_logs()
            assert any(r["message"] == "job_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("repair_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "concurrency: mark test as using several threads and connections"
    )
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_engine(tmp_path):
    """A fresh database per test.

    Immutability listeners are registered for the duration of the test.
    """
    url = os.environ.get("DATABASE_URL") or f"sqlite:///{tmp_path / 'repair.db'}"
    eng = init_engine_from_url(url, pool_size=10, max_overflow=10, pool_timeout=10)
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    unregister_immutability_listeners()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def session_factory(db_engine):
    """Provide a tracked session factory for creating sessions in threads.

    Each thread should create its own session using this factory.  On
    teardown every tracked session is rolled back and closed.
    """
    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()

    def tracked_factory():
        with lock:
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    for s in created_sessions:
        s.rollback()
        s.close()


# =============================================================================
# Clock and settings
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


@pytest.fixture
def settings() -> WorkflowSettings:
    return WorkflowSettings(
        approval_secret=TEST_APPROVAL_SECRET,
        public_base_url=TEST_BASE_URL,
    )


# =============================================================================
# Shop and people
# =============================================================================


@dataclass(frozen=True)
class ShopStaff:
    shop: ShopRecord
    owner: UserRecord
    advisor: UserRecord
    tech: UserRecord
    other_tech: UserRecord

    @staticmethod
    def principal(user: UserRecord) -> Principal:
        return Principal(id=user.id, role=user.role, shop_id=user.shop_id)


def _create_shop(session, clock, name, first_job_number=1001) -> ShopStaff:
    directory = ShopDirectoryService(session, clock, first_job_number)
    shop = directory.create_shop(name)
    slug = name.lower().replace(" ", "")
    staff = ShopStaff(
        shop=shop,
        owner=directory.add_user(shop.id, "Olivia Owner", f"owner@{slug}.test", Role.OWNER),
        advisor=directory.add_user(shop.id, "Adam Advisor", f"advisor@{slug}.test", Role.ADVISOR),
        tech=directory.add_user(shop.id, "Tina Tech", f"tech@{slug}.test", Role.TECH),
        other_tech=directory.add_user(shop.id, "Omar Tech", f"tech2@{slug}.test", Role.TECH),
    )
    session.commit()
    return staff


@pytest.fixture
def staff(session, deterministic_clock) -> ShopStaff:
    return _create_shop(session, deterministic_clock, "OcconoAuto")


@pytest.fixture
def other_staff(session, deterministic_clock, staff) -> ShopStaff:
    """A second, unrelated shop."""
    return _create_shop(session, deterministic_clock, "Rival Garage")


@pytest.fixture
def owner(staff) -> Principal:
    return staff.principal(staff.owner)


@pytest.fixture
def advisor(staff) -> Principal:
    return staff.principal(staff.advisor)


@pytest.fixture
def tech(staff) -> Principal:
    return staff.principal(staff.tech)


@pytest.fixture
def other_tech(staff) -> Principal:
    return staff.principal(staff.other_tech)


@pytest.fixture
def foreign_advisor(other_staff) -> Principal:
    return other_staff.principal(other_staff.advisor)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def lifecycle(session, settings, deterministic_clock) -> JobLifecycleService:
    return JobLifecycleService(session, settings, deterministic_clock)


@pytest.fixture
def line_items(session, deterministic_clock) -> LineItemService:
    return LineItemService(session, deterministic_clock)


@pytest.fixture
def media(session, deterministic_clock) -> MediaService:
    return MediaService(session, deterministic_clock)


@pytest.fixture
def approvals(session, settings, deterministic_clock) -> ApprovalService:
    return ApprovalService(session, settings, deterministic_clock)


@pytest.fixture
def job_selector(session) -> JobSelector:
    return JobSelector(session)


# =============================================================================
# Job factories
# =============================================================================


@pytest.fixture
def make_job(lifecycle, advisor, staff):
    """Factory fixture: create a job through the lifecycle service.

    ``state`` walks the job forward from CHECKED_IN up to DIAGNOSIS; use
    ``waiting_job`` for WAITING_APPROVAL.
    """

    def _make(
        title: str = "Brake noise",
        customer_name: str = "Dana Reyes",
        assign: bool = True,
        state: JobState = JobState.CHECKED_IN,
        **fields,
    ) -> JobRecord:
        job = lifecycle.create_job(advisor, NewJobFields(
            title=title,
            customer_name=customer_name,
            vehicle_year=fields.pop("vehicle_year", 2019),
            vehicle_make=fields.pop("vehicle_make", "Honda"),
            vehicle_model=fields.pop("vehicle_model", "Civic"),
            assigned_tech_id=staff.tech.id if assign else None,
            **fields,
        ))
        if state is JobState.DIAGNOSIS:
            job = lifecycle.transition_job(advisor, job.id, JobState.DIAGNOSIS)
        return job

    return _make


@pytest.fixture
def add_estimate(line_items, advisor):
    """Factory fixture: the standard two-line estimate (8900 + 2 x 2400)."""

    def _add(job_id):
        return [
            line_items.add_line_item(advisor, job_id, NewLineItem(
                type=LineItemType.LABOR, name="Front brake pads", qty=1, unit_price=8900,
            )),
            line_items.add_line_item(advisor, job_id, NewLineItem(
                type=LineItemType.PART, name="Brake fluid", qty=2, unit_price=2400,
            )),
        ]

    return _add


@pytest.fixture
def waiting_job(make_job, add_estimate, approvals, advisor):
    """A job in WAITING_APPROVAL with two PROPOSED items.

    Returns ``(job, issue)``; ``issue.token`` is the live credential.
    """
    job = make_job(state=JobState.DIAGNOSIS)
    add_estimate(job.id)
    issue = approvals.request_approval(advisor, job.id)
    return job, issue
