"""
Configuration Loader (``repair_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a validated
``WorkflowConfig``.  The single public entry point for runtime config is
``repair_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Unknown keys are errors, so a misspelled setting never silently falls
  back to its default.
* The approval secret is read from the environment variable the file
  names; it is never stored in YAML.
* ``compute_checksum`` is deterministic over the parsed document and
  identifies the configuration in the CONFIG_TRACE record.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Structural or value problems, or an unset secret  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping

import yaml

from repair_config.schema import ApprovalDef, DatabaseDef, JobNumberDef, WorkflowConfig
from repair_config.validator import ConfigError, validate_sections

_TOP_LEVEL_KEYS = frozenset({"config_id", "version", "database", "approval", "job_numbers"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON form of a parsed document."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], name: str, allowed: set[str], errors: list[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        errors.append(f"{name} must be a mapping")
        return {}
    for key in sorted(set(section) - allowed):
        errors.append(f"unknown key {name}.{key}")
    return {k: v for k, v in section.items() if k in allowed}


def parse_database(data: dict[str, Any], errors: list[str]) -> DatabaseDef:
    return DatabaseDef(**_section(data, "database", {"url"}, errors))


def parse_approval(data: dict[str, Any], errors: list[str]) -> ApprovalDef:
    section = _section(
        data, "approval", {"public_base_url", "secret_env", "token_bytes"}, errors,
    )
    approval = ApprovalDef(**section)
    if isinstance(approval.public_base_url, str):
        approval = ApprovalDef(
            public_base_url=approval.public_base_url.rstrip("/"),
            secret_env=approval.secret_env,
            token_bytes=approval.token_bytes,
        )
    return approval


def parse_job_numbers(data: dict[str, Any], errors: list[str]) -> JobNumberDef:
    return JobNumberDef(**_section(data, "job_numbers", {"first", "max_retries"}, errors))


def parse_workflow_config(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> WorkflowConfig:
    """
    Parse and validate a configuration document.

    Preconditions:
        - ``data`` is the dict produced by ``load_yaml_file``.
    Postconditions:
        - Returns a frozen ``WorkflowConfig`` with the secret resolved.
    Raises:
        ConfigError: with every problem found.
    """
    if not isinstance(data, dict):
        raise ConfigError("configuration root must be a mapping")

    errors = [f"unknown key {key}" for key in sorted(set(data) - _TOP_LEVEL_KEYS)]
    database = parse_database(data, errors)
    approval = parse_approval(data, errors)
    job_numbers = parse_job_numbers(data, errors)

    errors.extend(validate_sections(database, approval, job_numbers).errors)

    secret = None
    if not errors:
        secret = environ.get(approval.secret_env)
        if not secret:
            errors.append(
                f"approval secret environment variable {approval.secret_env} is not set"
            )
    if errors:
        raise ConfigError(errors)

    return WorkflowConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        database_url=database.url,
        public_base_url=approval.public_base_url,
        approval_secret_env=approval.secret_env,
        approval_secret=secret,
        first_job_number=job_numbers.first,
        job_number_max_retries=job_numbers.max_retries,
        token_bytes=approval.token_bytes,
    )
