"""
repair_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration.  This package sits above ``repair_kernel``.  The kernel
    MUST NEVER import from ``repair_config``; ``bridges`` translates the
    config into kernel inputs (``WorkflowSettings``).

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ConfigError`` -- schema or value problems, or the approval secret
      environment variable is unset.

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``CONFIG_TRACE``
    log entry with the config_id, version and checksum.  The secret is
    never part of it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

from repair_config.loader import load_yaml_file, parse_workflow_config
from repair_config.schema import WorkflowConfig
from repair_config.validator import ConfigError

_logger = logging.getLogger("repair_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> WorkflowConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            ``repair_config/sets/default.yaml``.
        environ: Where the approval secret is looked up.  Defaults to
            ``os.environ``.

    Returns:
        A validated, frozen ``WorkflowConfig``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ConfigError: If validation fails or the secret is unset.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    environment = os.environ if environ is None else environ

    config = parse_workflow_config(load_yaml_file(path), environment)

    _logger.info(
        "CONFIG_TRACE",
        extra={
            "trace_type": "CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
            "first_job_number": config.first_job_number,
            "token_bytes": config.token_bytes,
        },
    )
    return config


__all__ = ["ConfigError", "WorkflowConfig", "get_active_config"]
