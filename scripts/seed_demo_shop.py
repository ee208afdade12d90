#!/usr/bin/env python3
"""
Seed the database with a demo shop and jobs across the workflow.

Drops all tables, recreates them, registers the immutability listeners,
then drives every job through the workflow services -- nothing is inserted
behind their back, so the event log of each job is complete.

Usage:
    REPAIR_APPROVAL_SECRET=dev-secret python3 scripts/seed_demo_shop.py
    REPAIR_APPROVAL_SECRET=dev-secret python3 scripts/seed_demo_shop.py \\
        --database-url sqlite:////tmp/repair_demo.db
"""

import argparse
import sys
from decimal import Decimal
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

SHOP_NAME = "OcconoAuto"


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a demo repair shop")
    parser.add_argument("--config", help="Path to a workflow configuration YAML file")
    parser.add_argument("--database-url", help="Override the configured database URL")
    args = parser.parse_args()

    from repair_config import ConfigError, get_active_config
    from repair_config.bridges import build_workflow_settings
    from repair_kernel.db.engine import (
        create_tables,
        drop_tables,
        get_session,
        init_engine_from_url,
        session_scope,
    )
    from repair_kernel.db.immutability import register_immutability_listeners
    from repair_kernel.db.types import cents_to_display
    from repair_kernel.domain.approval import ApprovalDecision
    from repair_kernel.domain.dtos import (
        JobPriority,
        LineItemType,
        MediaType,
        NewJobFields,
        NewLineItem,
    )
    from repair_kernel.domain.principal import Principal, Role
    from repair_kernel.domain.transitions import JobState
    from repair_kernel.services import (
        ApprovalService,
        JobLifecycleService,
        LineItemService,
        MediaService,
        ShopDirectoryService,
        proposed_total,
    )

    try:
        config = get_active_config(args.config)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1
    settings = build_workflow_settings(config)

    init_engine_from_url(args.database_url or config.database_url)
    drop_tables()
    create_tables()
    register_immutability_listeners()

    with session_scope() as session:
        directory = ShopDirectoryService(session, first_job_number=settings.first_job_number)
        shop = directory.create_shop(SHOP_NAME)
        owner = directory.add_user(shop.id, "Olivia Occono", "owner@occonoauto.test", Role.OWNER)
        advisor = directory.add_user(shop.id, "Sam Advisor", "advisor@occonoauto.test", Role.ADVISOR)
        tech = directory.add_user(shop.id, "Tariq Tech", "tech@occonoauto.test", Role.TECH)

    as_owner = Principal(id=owner.id, role=Role.OWNER, shop_id=shop.id)
    as_advisor = Principal(id=advisor.id, role=Role.ADVISOR, shop_id=shop.id)
    as_tech = Principal(id=tech.id, role=Role.TECH, shop_id=shop.id)

    session = get_session()
    try:
        lifecycle = JobLifecycleService(session, settings)
        items = LineItemService(session)
        media = MediaService(session)
        approvals = ApprovalService(session, settings)

        def intake(title, customer, year, make, model, **extra):
            return lifecycle.create_job(as_advisor, NewJobFields(
                title=title,
                customer_name=customer,
                vehicle_year=year,
                vehicle_make=make,
                vehicle_model=model,
                assigned_tech_id=tech.id,
                **extra,
            ))

        def estimate(job_id):
            items.add_line_item(as_advisor, job_id, NewLineItem(
                type=LineItemType.LABOR, name="Front brake pads", qty=1,
                unit_price=8900, labor_hours=Decimal("1.5"),
            ))
            items.add_line_item(as_advisor, job_id, NewLineItem(
                type=LineItemType.PART, name="Brake fluid", qty=2, unit_price=2400,
            ))

        # 1. Just checked in
        intake("Squeaky brakes", "Dana Reyes", 2019, "Honda", "Civic",
               priority=JobPriority.HIGH, customer_phone="555-0101")

        # 2. Under diagnosis, with a note from the tech
        job = intake("Check engine light", "Lee Park", 2015, "Ford", "F-150")
        lifecycle.transition_job(as_tech, job.id, JobState.DIAGNOSIS)
        lifecycle.add_note(as_tech, job.id, "P0420 stored, checking O2 sensors")

        # 3. Waiting on the customer
        job = intake("Brake service", "Morgan Lee", 2020, "Toyota", "Camry", vehicle_trim="SE")
        lifecycle.transition_job(as_tech, job.id, JobState.DIAGNOSIS)
        estimate(job.id)
        media.add_media(as_advisor, job.id, MediaType.PHOTO,
                        "https://media.occonoauto.test/pads.jpg", "Worn front pads")
        pending = approvals.request_approval(as_advisor, job.id)
        pending_total = proposed_total(items.list_items(job.id))

        # 4. Approved and in repair
        job = intake("Brake service", "Riley Chen", 2017, "Subaru", "Outback")
        lifecycle.transition_job(as_tech, job.id, JobState.DIAGNOSIS)
        estimate(job.id)
        issue = approvals.request_approval(as_advisor, job.id)
        approvals.decide(job.id, issue.token, ApprovalDecision.APPROVE)
        lifecycle.transition_job(as_tech, job.id, JobState.IN_REPAIR)

        # 5. Estimate declined and revised
        job = intake("Suspension noise", "Jordan Blake", 2012, "BMW", "328i")
        lifecycle.transition_job(as_tech, job.id, JobState.DIAGNOSIS)
        estimate(job.id)
        issue = approvals.request_approval(as_advisor, job.id)
        approvals.decide(job.id, issue.token, ApprovalDecision.DECLINE)
        lifecycle.transition_job(as_advisor, job.id, JobState.DIAGNOSIS,
                                 reason="Customer declined, re-quote with aftermarket parts")

        # 6. Finished and closed
        job = intake("Oil change", "Casey Nguyen", 2021, "Mazda", "CX-5", vehicle_odometer=42000)
        lifecycle.transition_job(as_tech, job.id, JobState.DIAGNOSIS)
        items.add_line_item(as_advisor, job.id, NewLineItem(
            type=LineItemType.FEE, name="Oil change package", unit_price=6900,
        ))
        issue = approvals.request_approval(as_advisor, job.id)
        approvals.decide(job.id, issue.token, ApprovalDecision.APPROVE)
        for state in (JobState.IN_REPAIR, JobState.QUALITY_CHECK, JobState.READY_PICKUP):
            lifecycle.transition_job(as_tech, job.id, state)
        lifecycle.transition_job(as_owner, job.id, JobState.CLOSED)
    finally:
        session.close()

    print(f"Seeded {SHOP_NAME} ({shop.id})")
    print(f"  owner   {owner.email}  {owner.id}")
    print(f"  advisor {advisor.email}  {advisor.id}")
    print(f"  tech    {tech.email}  {tech.id}")
    print(f"  pending approval link: {pending.url}")
    print(f"  pending estimate: {cents_to_display(pending_total)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
