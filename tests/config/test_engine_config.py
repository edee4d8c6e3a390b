"""Tests for the payment engine configuration (schema, loader, entry point)."""

from datetime import date
from pathlib import Path

import pytest
import yaml

from bakery_config import get_active_config
from bakery_config.loader import compute_checksum, load_yaml_file, parse_engine_config
from bakery_config.schema import PaymentEngineConfig
from bakery_kernel.domain.tolerance import Tolerance
from bakery_kernel.utils.hashing import hash_payload


def write_yaml(tmp_path: Path, data) -> Path:
    path = tmp_path / "engine.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestSchema:

    def test_defaults(self):
        config = PaymentEngineConfig.with_defaults()
        assert config.settlement_currency == "USD"
        assert config.local_currency == "VES"
        assert config.tolerance == Tolerance(1)
        assert config.reference_digits == 6
        assert not config.reject_pending_duplicates

    def test_currencies_normalized(self):
        config = PaymentEngineConfig(settlement_currency="usd", local_currency=" cop ")
        assert (config.settlement_currency, config.local_currency) == ("USD", "COP")

    @pytest.mark.parametrize("kwargs", [
        {"settlement_currency": "USD", "local_currency": "USD"},
        {"local_currency": "ZZZ"},
        {"tolerance_minor_units": -1},
        {"reference_digits": 0},
        {"batch_id_prefix": ""},
    ])
    def test_invalid_values_refused(self, kwargs):
        with pytest.raises(ValueError):
            PaymentEngineConfig(**kwargs)


class TestLoader:

    def test_parse_full_document(self):
        config = parse_engine_config({
            "config_id": "branch-norte",
            "version": 3,
            "currencies": {"settlement": "USD", "local": "VED"},
            "tolerance_minor_units": 2,
            "references": {"digits": 8, "reject_pending_duplicates": True},
            "batch_id_prefix": "PAY-N",
            "default_actor": "cashier",
        }, checksum="abc")

        assert config.config_id == "branch-norte"
        assert config.version == 3
        assert config.local_currency == "VED"
        assert config.tolerance_minor_units == 2
        assert config.reference_digits == 8
        assert config.reject_pending_duplicates
        assert config.batch_id_prefix == "PAY-N"
        assert config.default_actor == "cashier"
        assert config.checksum == "abc"

    def test_missing_sections_use_defaults(self):
        assert parse_engine_config({}) == PaymentEngineConfig()

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            load_yaml_file(path)

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_checksum_matches_payload_hash(self):
        data = {"currencies": {"settlement": "USD"}, "as_of": date(2024, 3, 1)}
        assert compute_checksum(data) == hash_payload(data)


class TestGetActiveConfig:

    def test_default_file(self):
        config = get_active_config()
        assert config.config_id == "bakery-default"
        assert config.settlement_currency == "USD"
        assert len(config.checksum) == 64

    def test_explicit_path(self, tmp_path):
        path = write_yaml(tmp_path, {"config_id": "test", "references": {"digits": 4}})
        config = get_active_config(path)
        assert config.config_id == "test"
        assert config.reference_digits == 4

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_emits_config_trace(self, captured_logs):
        get_active_config()
        traces = [r for r in captured_logs() if r["message"] == "BAKERY_CONFIG_TRACE"]
        assert traces[0]["config_id"] == "bakery-default"
        assert traces[0]["trace_type"] == "BAKERY_CONFIG_TRACE"
