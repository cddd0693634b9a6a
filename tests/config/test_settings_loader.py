"""
Settings loading and validation.

Verifies:
- The packaged defaults load and carry the documented values
- Resolution order: explicit path, then BOATYARD_SETTINGS_FILE, then defaults
- Every validation problem is reported in one ValueError
- Checksums are stable for identical input
- Each load emits a BOATYARD_CONFIG_TRACE log record
"""

from decimal import Decimal

import pytest
import yaml

from boatyard_config import SETTINGS_FILE_ENV, get_active_settings
from boatyard_config.loader import compute_checksum, load_yaml_file, parse_settings

MINIMAL = {
    "settings_id": "yard-test",
    "version": 2,
    "pricing": {"currency": "eur", "default_vat_rate": "9", "cost_estimation_ratio": "0.5"},
    "roles": {"admin": ["emergency:unlock"], "viewer": []},
    "production_stages": [
        {"code": "HULL", "name": "Hull", "order": 2},
        {"code": "PREP", "name": "Preparation", "order": 1, "estimated_days": 4},
    ],
}


def _write(tmp_path, data, name="settings.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:
    def test_packaged_defaults(self, settings):
        assert settings.settings_id == "boatyard-default"
        assert settings.currency == "EUR"
        assert settings.default_vat_rate == Decimal("21")
        assert settings.cost_estimation_ratio == Decimal("0.6")
        assert settings.optimistic_retry_attempts == 3
        assert settings.project_number_prefix == "PRJ"
        assert settings.catalog_version_prefix == "catalog"
        assert settings.library.catalog_version is None

    def test_default_roles(self, settings):
        permissions = settings.role_permissions
        assert set(permissions) == {"ADMIN", "MANAGER", "SALES", "PRODUCTION", "VIEWER"}
        assert "emergency:unlock" in permissions["ADMIN"]
        assert "emergency:unlock" not in permissions["MANAGER"]
        assert "amendment:approve" in permissions["MANAGER"]
        assert "amendment:approve" not in permissions["SALES"]

    def test_default_stages(self, settings):
        stages = settings.production_stages
        assert len(stages) == 9
        assert [s.order for s in stages] == list(range(1, 10))
        assert stages[0].code == "PREP"
        assert stages[-1].code == "FINAL"


class TestResolution:
    def test_explicit_path(self, tmp_path):
        settings = get_active_settings(_write(tmp_path, MINIMAL))
        assert settings.settings_id == "yard-test"
        assert settings.version == 2

    def test_environment_variable(self, tmp_path, monkeypatch):
        monkeypatch.setenv(SETTINGS_FILE_ENV, str(_write(tmp_path, MINIMAL)))
        assert get_active_settings().settings_id == "yard-test"

    def test_explicit_path_wins_over_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv(SETTINGS_FILE_ENV, str(_write(tmp_path, MINIMAL)))
        other = _write(tmp_path, {**MINIMAL, "settings_id": "explicit"}, "other.yaml")
        assert get_active_settings(other).settings_id == "explicit"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")

    def test_trace_logged(self, tmp_path, captured_logs):
        settings = get_active_settings(_write(tmp_path, MINIMAL))

        (record,) = [r for r in captured_logs() if r["message"] == "BOATYARD_CONFIG_TRACE"]
        assert record["logger"] == "boatyard_kernel.config"
        assert record["settings_id"] == "yard-test"
        assert record["checksum"] == settings.checksum
        assert record["stage_count"] == 2


class TestParsing:
    def test_normalization(self):
        settings = parse_settings(MINIMAL)
        assert settings.currency == "EUR"
        assert [r.name for r in settings.roles] == ["ADMIN", "VIEWER"]
        assert [s.code for s in settings.production_stages] == ["PREP", "HULL"]
        assert settings.production_stages[1].estimated_days == 0

    def test_numbers_parsed_as_decimal(self):
        data = {**MINIMAL, "pricing": {"default_vat_rate": 21.5}}
        assert parse_settings(data).default_vat_rate == Decimal("21.5")

    def test_library_catalog(self):
        data = {
            **MINIMAL,
            "library": {
                "catalog_version": "catalog-2025-q1",
                "template_versions": {"quote": "tpl-9", "contract": "tpl-4"},
                "procedure_versions": ["proc-a"],
            },
        }
        library = parse_settings(data).library
        assert library.catalog_version == "catalog-2025-q1"
        assert library.template_versions == (("contract", "tpl-4"), ("quote", "tpl-9"))
        assert library.procedure_versions == ("proc-a",)

    def test_all_errors_reported(self):
        data = {
            "pricing": {
                "default_vat_rate": "150",
                "cost_estimation_ratio": "0",
                "currency": "EURO",
            },
            "concurrency": {"optimistic_retry_attempts": 0},
            "roles": {"ADMIN": ["launch:missiles"]},
            "production_stages": [
                {"code": "HULL", "name": "Hull", "order": 1},
                {"code": "HULL", "name": "Hull again", "order": 2},
                {"name": "No code", "order": 3},
            ],
        }
        with pytest.raises(ValueError) as exc_info:
            parse_settings(data)

        message = str(exc_info.value)
        assert message.startswith("Settings validation failed:")
        for fragment in (
            "pricing.default_vat_rate must be between 0 and 100",
            "pricing.cost_estimation_ratio",
            "pricing.currency",
            "concurrency.optimistic_retry_attempts",
            "unknown permissions: launch:missiles",
            "production_stages[2] is invalid",
            "codes must be unique",
        ):
            assert fragment in message

    def test_non_numeric_rate(self):
        with pytest.raises(ValueError, match="must be a number"):
            parse_settings({**MINIMAL, "pricing": {"default_vat_rate": "lots"}})

    def test_roles_and_stages_required(self):
        with pytest.raises(ValueError) as exc_info:
            parse_settings({})
        assert "roles must define at least one role" in str(exc_info.value)
        assert "production_stages must define at least one stage" in str(exc_info.value)


class TestYamlFile:
    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)


class TestChecksum:
    def test_stable_and_order_independent(self):
        reordered = dict(reversed(list(MINIMAL.items())))
        assert compute_checksum(MINIMAL) == compute_checksum(reordered)
        assert len(compute_checksum(MINIMAL)) == 64

    def test_changes_with_content(self):
        assert compute_checksum(MINIMAL) != compute_checksum({**MINIMAL, "version": 3})
        assert parse_settings(MINIMAL).checksum == compute_checksum(MINIMAL)
