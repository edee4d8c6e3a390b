"""
Configuration Loader (``bakery_config.loader``).

Responsibility
--------------
Loads YAML configuration files and parses them into the typed
``bakery_config.schema`` dataclasses.  Services never call this
directly; the runtime entry point is ``bakery_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from the schema's validation.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from bakery_config.schema import PaymentEngineConfig
from bakery_kernel.utils.hashing import hash_payload


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization of ``data``."""
    return hash_payload(data)


def parse_engine_config(data: dict[str, Any], checksum: str = "") -> PaymentEngineConfig:
    """
    Parse a ``PaymentEngineConfig`` from a dict.

    Missing sections fall back to the schema defaults.
    """
    defaults = PaymentEngineConfig()
    currencies = data.get("currencies", {}) or {}
    references = data.get("references", {}) or {}

    return PaymentEngineConfig(
        settlement_currency=currencies.get("settlement", defaults.settlement_currency),
        local_currency=currencies.get("local", defaults.local_currency),
        tolerance_minor_units=int(data.get("tolerance_minor_units", defaults.tolerance_minor_units)),
        reference_digits=int(references.get("digits", defaults.reference_digits)),
        reject_pending_duplicates=bool(
            references.get("reject_pending_duplicates", defaults.reject_pending_duplicates)
        ),
        batch_id_prefix=str(data.get("batch_id_prefix", defaults.batch_id_prefix)),
        default_actor=str(data.get("default_actor", defaults.default_actor)),
        config_id=str(data.get("config_id", defaults.config_id)),
        version=int(data.get("version", defaults.version)),
        checksum=checksum,
    )


def load_engine_config(path: Path) -> PaymentEngineConfig:
    data = load_yaml_file(path)
    return parse_engine_config(data, checksum=compute_checksum(data))
