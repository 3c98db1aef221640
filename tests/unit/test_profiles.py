"""Unit tests for risk profiles and application settings."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from sar_engine.config import PROJECT_ROOT, Settings
from sar_engine.core.errors import ConfigurationError
from sar_engine.core.profiles import (
    BUILTIN_PROFILES,
    GENERIC_USD,
    INDIA_INR,
    derive_profile,
    get_profile,
    load_profile,
    profile_from_dict,
)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(profiles_dir=tmp_path, _env_file=None)


class TestBuiltinProfiles:
    def test_registry(self) -> None:
        assert set(BUILTIN_PROFILES) == {"generic-USD", "india-INR"}

    def test_versions_distinct(self) -> None:
        assert GENERIC_USD.rule_engine_version == "generic-USD/1.0.0"
        assert INDIA_INR.rule_engine_version == "india-INR/2.0.0"

    def test_jurisdiction_sets_disjoint(self) -> None:
        for profile in BUILTIN_PROFILES.values():
            assert not profile.high_risk_countries & profile.medium_risk_countries

    def test_profiles_are_frozen(self) -> None:
        with pytest.raises(Exception):
            GENERIC_USD.version = "9.9.9"  # type: ignore[misc]

    def test_rate_lookup_is_case_insensitive(self) -> None:
        assert GENERIC_USD.rate_for(" inr ") == Decimal("0.012")
        assert GENERIC_USD.rate_for("XYZ") is None


class TestProfileInvariants:
    def test_overlapping_jurisdictions(self) -> None:
        with pytest.raises(ConfigurationError, match="overlap: KP"):
            derive_profile(GENERIC_USD, medium_risk_countries=frozenset({"KP", "PK"}))

    def test_non_ascending_bands(self) -> None:
        bands = GENERIC_USD.bands.model_copy(update={"high": 80})
        with pytest.raises(ConfigurationError, match="classification bands"):
            derive_profile(GENERIC_USD, bands=bands)

    def test_amount_tiers_must_descend(self) -> None:
        tiers = GENERIC_USD.amount_tiers.model_copy(update={"large": Decimal("200000")})
        with pytest.raises(ConfigurationError, match="amount tiers"):
            derive_profile(GENERIC_USD, amount_tiers=tiers)

    def test_inverted_structuring_band(self) -> None:
        band = GENERIC_USD.structuring.model_copy(update={"lower": Decimal("9999.99"), "upper": Decimal("9000")})
        with pytest.raises(ConfigurationError, match="structuring band"):
            derive_profile(GENERIC_USD, structuring=band)

    def test_reference_rate_must_be_one(self) -> None:
        rates = {**GENERIC_USD.conversion_rates, "USD": Decimal("1.1")}
        with pytest.raises(ConfigurationError, match="conversion rate 1"):
            derive_profile(GENERIC_USD, conversion_rates=rates)

    def test_deviation_thresholds_ordered(self) -> None:
        dev = INDIA_INR.deviation.model_copy(update={"extreme": Decimal("1")})
        with pytest.raises(ConfigurationError, match="extreme deviation"):
            derive_profile(INDIA_INR, deviation=dev)

    def test_field_type_errors_become_configuration_errors(self) -> None:
        data = {**{f: getattr(GENERIC_USD, f) for f in type(GENERIC_USD).model_fields}}
        data["summary_concerns"] = 0
        with pytest.raises(ConfigurationError):
            profile_from_dict(data)


class TestProfileLoading:
    def test_load_bundled_json_profile(self) -> None:
        profile = load_profile(PROJECT_ROOT / "data" / "profiles" / "uk-GBP.json")
        assert profile.reference_currency == "GBP"
        assert profile.smurfing is None
        assert profile.round_amounts.unit == Decimal("5000")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_profile(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        p = tmp_path / "broken.json"
        p.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_profile(p)

    def test_get_builtin(self, settings: Settings) -> None:
        assert get_profile("india-INR", settings) is INDIA_INR

    def test_get_default(self, settings: Settings) -> None:
        assert get_profile(None, settings) is GENERIC_USD

    def test_get_from_profiles_dir(self, settings: Settings) -> None:
        source = PROJECT_ROOT / "data" / "profiles" / "uk-GBP.json"
        raw = json.loads(source.read_text(encoding="utf-8"))
        raw["name"] = "custom"
        (settings.profiles_dir / "custom.json").write_text(json.dumps(raw), encoding="utf-8")
        assert get_profile("custom", settings).name == "custom"

    def test_unknown_profile(self, settings: Settings) -> None:
        with pytest.raises(ConfigurationError, match="Unknown risk profile"):
            get_profile("mars-XYZ", settings)


class TestSettings:
    def test_defaults(self) -> None:
        s = Settings(_env_file=None)
        assert s.default_profile == "generic-USD"
        assert s.sar_score_threshold == 50

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SAR_DEFAULT_PROFILE", "india-INR")
        monkeypatch.setenv("SAR_SAR_SCORE_THRESHOLD", "60")
        s = Settings(_env_file=None)
        assert s.default_profile == "india-INR"
        assert s.sar_score_threshold == 60
