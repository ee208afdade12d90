"""
WorkflowSettings -- the runtime knobs the kernel services read.

The kernel never reads configuration files or environment variables.
``repair_config.bridges.build_workflow_settings`` produces this value from
the active configuration; tests construct it directly.
"""

from __future__ import annotations

from dataclasses import dataclass

from repair_kernel.utils.tokens import MIN_TOKEN_BYTES


@dataclass(frozen=True)
class WorkflowSettings:
    """
    Contract: frozen; validated at construction.

    ``approval_secret`` is the HMAC key for approval tokens.  It is excluded
    from ``repr`` so it cannot leak into logs or tracebacks.
    """

    approval_secret: str
    public_base_url: str = "http://localhost:3000"
    first_job_number: int = 1001
    job_number_max_retries: int = 5
    token_bytes: int = MIN_TOKEN_BYTES

    def __post_init__(self) -> None:
        if not self.approval_secret:
            raise ValueError("approval_secret must not be empty")
        if self.token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be >= {MIN_TOKEN_BYTES}")
        if self.first_job_number < 1:
            raise ValueError("first_job_number must be >= 1")
        if self.job_number_max_retries < 1:
            raise ValueError("job_number_max_retries must be >= 1")

    def __repr__(self) -> str:
        return (
            f"WorkflowSettings(public_base_url={self.public_base_url!r}, "
            f"first_job_number={self.first_job_number}, "
            f"job_number_max_retries={self.job_number_max_retries}, "
            f"token_bytes={self.token_bytes}, approval_secret='***')"
        )
