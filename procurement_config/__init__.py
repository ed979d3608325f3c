"""
procurement_config -- single public entrypoint for procurement configuration.

Responsibility:
    ``get_active_config()`` is the only way services obtain settings and
    approval-routing workflow definitions.  YAML loading stays internal.

Architecture position:
    Configuration -- sits above ``procurement_kernel`` and below
    ``procurement_modules``.  The kernel never imports from here.

Failure modes:
    - ``FileNotFoundError`` -- no ``procurement.yaml`` in the directory.
    - ``ValueError`` / ``KeyError`` -- structural validation failures.
"""

from __future__ import annotations

from pathlib import Path

from procurement_config.loader import load_yaml_file, parse_config
from procurement_config.schema import (
    ProcurementConfig,
    ProcurementSettings,
    WorkflowDefinitionDef,
)
from procurement_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "defaults"
CONFIG_FILENAME = "procurement.yaml"


def get_active_config(config_dir: Path | None = None) -> ProcurementConfig:
    """Load, validate and return the active procurement configuration.

    Args:
        config_dir: Directory holding ``procurement.yaml``.  Defaults to
            the packaged ``procurement_config/defaults/``.
    """
    path = Path(config_dir or _DEFAULT_CONFIG_DIR) / CONFIG_FILENAME
    config = parse_config(load_yaml_file(path), source=str(path))

    _logger.info(
        "procurement_config_loaded",
        extra={
            "source": config.source,
            "checksum": config.checksum,
            "workflow_count": len(config.workflows),
            "default_currency": config.settings.default_currency,
        },
    )
    return config


__all__ = [
    "CONFIG_FILENAME",
    "ProcurementConfig",
    "ProcurementSettings",
    "WorkflowDefinitionDef",
    "get_active_config",
]
