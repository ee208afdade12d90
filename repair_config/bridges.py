"""
Config -> Kernel Bridges.

Functions that convert a WorkflowConfig into kernel inputs.  These live in
repair_config (the producer) because the kernel must NEVER import
repair_config.

Usage:
    from repair_config import get_active_config
    from repair_config.bridges import build_workflow_settings

    config = get_active_config()
    settings = build_workflow_settings(config)
    lifecycle = JobLifecycleService(session, settings)
"""

from __future__ import annotations

from repair_config.schema import WorkflowConfig
from repair_kernel.domain.settings import WorkflowSettings


def build_workflow_settings(config: WorkflowConfig) -> WorkflowSettings:
    """The service-facing subset of a WorkflowConfig."""
    return WorkflowSettings(
        approval_secret=config.approval_secret,
        public_base_url=config.public_base_url,
        first_job_number=config.first_job_number,
        job_number_max_retries=config.job_number_max_retries,
        token_bytes=config.token_bytes,
    )
