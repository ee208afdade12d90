"""
WorkflowConfig schema.

The human-authored YAML is parsed by the loader into these frozen types.
``WorkflowConfig`` is the only runtime artifact: it carries the resolved
approval secret, never the YAML's name for it alone.

Key distinction:
  YAML fragment   = source artifact (reviewable, versioned, no secrets)
  WorkflowConfig  = runtime artifact (validated, frozen, secret resolved)
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DATABASE_URL = "sqlite:///repair.db"
DEFAULT_PUBLIC_BASE_URL = "http://localhost:3000"
DEFAULT_APPROVAL_SECRET_ENV = "REPAIR_APPROVAL_SECRET"
DEFAULT_FIRST_JOB_NUMBER = 1001
DEFAULT_JOB_NUMBER_MAX_RETRIES = 5
DEFAULT_TOKEN_BYTES = 16


@dataclass(frozen=True)
class DatabaseDef:
    url: str = DEFAULT_DATABASE_URL


@dataclass(frozen=True)
class ApprovalDef:
    """Approval link settings.  ``secret_env`` names the variable, not the secret."""

    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    secret_env: str = DEFAULT_APPROVAL_SECRET_ENV
    token_bytes: int = DEFAULT_TOKEN_BYTES


@dataclass(frozen=True)
class JobNumberDef:
    first: int = DEFAULT_FIRST_JOB_NUMBER
    max_retries: int = DEFAULT_JOB_NUMBER_MAX_RETRIES


@dataclass(frozen=True)
class WorkflowConfig:
    """Validated runtime configuration for the repair workflow."""

    config_id: str
    version: int
    checksum: str
    database_url: str = DEFAULT_DATABASE_URL
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    approval_secret_env: str = DEFAULT_APPROVAL_SECRET_ENV
    approval_secret: str = field(default="", repr=False)
    first_job_number: int = DEFAULT_FIRST_JOB_NUMBER
    job_number_max_retries: int = DEFAULT_JOB_NUMBER_MAX_RETRIES
    token_bytes: int = DEFAULT_TOKEN_BYTES
