"""
Configuration Validator (``repair_config.validator``).

Responsibility
--------------
Checks the parsed sections before a ``WorkflowConfig`` is produced.  All
problems are collected, not just the first, so a broken file is fixed in
one pass.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``)  -> no
  ``WorkflowConfig`` is produced; the loader raises ``ConfigError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlparse

from repair_config.schema import ApprovalDef, DatabaseDef, JobNumberDef

MIN_TOKEN_BYTES = 16


class ConfigError(Exception):
    """The configuration cannot be turned into a WorkflowConfig.

    Attributes:
        errors: Every problem found, one message each.
    """

    code: str = "CONFIG_INVALID"

    def __init__(self, errors: list[str] | str):
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_sections(
    database: DatabaseDef,
    approval: ApprovalDef,
    job_numbers: JobNumberDef,
) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if not isinstance(database.url, str) or not database.url.strip():
        result.add_error("database.url must be a non-empty string")

    parsed = urlparse(approval.public_base_url if isinstance(approval.public_base_url, str) else "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        result.add_error(
            f"approval.public_base_url must be an absolute http(s) URL, "
            f"got {approval.public_base_url!r}"
        )
    if not isinstance(approval.secret_env, str) or not approval.secret_env.strip():
        result.add_error("approval.secret_env must name an environment variable")
    if not _is_int(approval.token_bytes) or approval.token_bytes < MIN_TOKEN_BYTES:
        result.add_error(f"approval.token_bytes must be an integer >= {MIN_TOKEN_BYTES}")

    if not _is_int(job_numbers.first) or job_numbers.first < 1:
        result.add_error("job_numbers.first must be an integer >= 1")
    if not _is_int(job_numbers.max_retries) or job_numbers.max_retries < 1:
        result.add_error("job_numbers.max_retries must be an integer >= 1")

    return result
