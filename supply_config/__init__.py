"""
supply_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_active_config()`` is the ONLY way services obtain configuration.
    It loads a YAML configuration set, validates it and returns a frozen
    ``SupplyConfig``.

Architecture position:
    Configuration layer.  Sits above ``supply_kernel`` and below
    ``supply_services`` / ``supply_modules``.  The kernel MUST NEVER import
    from this package.

Failure modes:
    - ``FileNotFoundError`` -- configuration file does not exist.
    - ``ConfigurationError`` -- validation failed; carries every error.

Audit relevance:
    Every successful call emits a ``supply_config_loaded`` log entry with
    the config_id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from supply_config.loader import load_config_file
from supply_config.schema import (
    CAPABILITY_TAXONOMY,
    BudgetPolicy,
    DatabaseConfig,
    RbacConfig,
    RequestPolicy,
    RoleGrant,
    SupplyConfig,
)
from supply_config.validator import validate_configuration
from supply_kernel.exceptions import ConfigurationError
from supply_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> SupplyConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration set.
            Defaults to supply_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If validation reports errors.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_config_file(path)

    validation = validate_configuration(config)
    for warning in validation.warnings:
        logger.warning("supply_config_warning", extra={"warning": warning})
    if not validation.is_valid:
        logger.error(
            "supply_config_invalid",
            extra={"config_path": str(path), "errors": validation.errors},
        )
        raise ConfigurationError(validation.errors)

    logger.info(
        "supply_config_loaded",
        extra={
            "config_id": config.config_id,
            "version": config.version,
            "checksum": config.checksum,
            "role_count": len(config.rbac.roles),
        },
    )
    return config


__all__ = [
    "CAPABILITY_TAXONOMY",
    "BudgetPolicy",
    "DatabaseConfig",
    "RbacConfig",
    "RequestPolicy",
    "RoleGrant",
    "SupplyConfig",
    "get_active_config",
]
