"""
Repair Kernel - Job Workflow Engine

A transactional workflow engine for repair jobs with:
- Role-gated state transitions over a fixed workflow graph
- Append-only per-job event history
- Tenant-scoped sequential job numbering
- Single-use capability tokens for customer approval
- Atomic approval cascade into line items
"""

__version__ = "0.1.0"
