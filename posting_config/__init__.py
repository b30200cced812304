"""
posting_config -- single public entrypoint for posting configuration.

Responsibility:
    ``get_posting_config()`` loads a YAML configuration set (number series
    catalogue, chart-of-accounts seed, account-role bindings), validates
    it and returns a frozen ``PostingConfigSet``.

Architecture position:
    Configuration.  Sits above ``posting_kernel``; the kernel never imports
    from ``posting_config``.  Bridges in ``posting_config.bridges`` turn a
    config set into kernel inputs.

Failure modes:
    - ``ConfigLoadError`` for a missing or malformed file and for a
      configuration that fails validation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from posting_config.loader import load_config_set
from posting_config.schema import AccountDef, PostingConfigSet, RoleBindingDef, SeriesDef
from posting_config.validator import validate_configuration
from posting_kernel.exceptions import ConfigLoadError

_logger = logging.getLogger("posting_kernel.config")

_DEFAULT_CONFIG = Path(__file__).parent / "sets" / "default.yaml"


def get_posting_config(path: Path | str | None = None) -> PostingConfigSet:
    """
    Load and validate a configuration set.

    Args:
        path: YAML file to load.  Defaults to ``posting_config/sets/default.yaml``.

    Raises:
        ConfigLoadError: the file cannot be loaded or fails validation.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG
    config = load_config_set(config_path)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ConfigLoadError(str(config_path), "; ".join(validation.errors))

    _logger.info(
        "posting_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "series_count": len(config.number_series),
            "account_count": len(config.chart_of_accounts),
            "role_binding_count": len(config.role_bindings),
        },
    )
    return config


__all__ = [
    "AccountDef",
    "PostingConfigSet",
    "RoleBindingDef",
    "SeriesDef",
    "get_posting_config",
]
