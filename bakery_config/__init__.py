"""
bakery_config -- single public entrypoint for payment engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  YAML loading is internal tooling and never
    exposed to services.

Architecture position:
    Configuration -- sits above ``bakery_kernel`` and below
    ``bakery_services``.  The kernel and engines MUST NEVER import from
    ``bakery_config``; services receive a ``PaymentEngineConfig``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` -- a value fails schema validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BAKERY_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from bakery_config.loader import load_engine_config
from bakery_config.schema import PaymentEngineConfig

_logger = logging.getLogger("bakery.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(path: Path | str | None = None) -> PaymentEngineConfig:
    """
    The ONLY public configuration entrypoint.

    Args:
        path: Override path to a YAML configuration file.
            Defaults to bakery_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_FILE
    config = load_engine_config(config_path)

    _logger.info(
        "BAKERY_CONFIG_TRACE",
        extra={
            "trace_type": "BAKERY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "settlement_currency": config.settlement_currency,
            "local_currency": config.local_currency,
            "source": str(config_path),
        },
    )
    return config


__all__ = ["PaymentEngineConfig", "get_active_config"]
